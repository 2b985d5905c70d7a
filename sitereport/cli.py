"""CLI for site reports: render PDF/HTML reports and plan maps from a snapshot."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_NOTHING = 2


def _out_dir(args) -> Path:
    from sitereport.config import get_settings

    out = Path(args.out or get_settings().export.output_dir)
    out.mkdir(parents=True, exist_ok=True)
    return out


async def cmd_pdf(args) -> int:
    """Write the PDF report for a snapshot."""
    from sitereport.schemas import ExportStatus
    from sitereport.services.export import ExportGate, export_report
    from sitereport.services.snapshot import load_snapshot

    snapshot = await load_snapshot(args.snapshot)
    out = _out_dir(args)

    def save(filename: str, content: bytes) -> None:
        (out / filename).write_bytes(content)

    result = await export_report(snapshot, ExportGate(), save=save)
    if result.status == ExportStatus.NOTHING_TO_EXPORT:
        print("No observations to export")
        return EXIT_NOTHING
    if not result.ok:
        print(f"Export failed: {result.error}")
        return EXIT_FAILED

    print(f"Report written: {out / result.filename} ({result.page_count} pages)")
    if result.skipped_plans:
        print(f"  Skipped plans: {', '.join(result.skipped_plans)}")
    if result.skipped_findings:
        print(f"  Skipped findings: {', '.join(str(n) for n in result.skipped_findings)}")
    if result.skipped_photos:
        print(f"  Skipped photos: {result.skipped_photos}")
    return EXIT_OK


async def cmd_html(args) -> int:
    """Write the HTML preview report for a snapshot."""
    from sitereport.services.report_generator import generate_report
    from sitereport.services.export import report_filename
    from sitereport.services.snapshot import load_snapshot

    snapshot = await load_snapshot(args.snapshot)
    html = await generate_report(snapshot)
    if html is None:
        print("No observations to export")
        return EXIT_NOTHING

    path = _out_dir(args) / (Path(report_filename(snapshot.project.name)).stem + ".html")
    path.write_text(html, encoding="utf-8")
    print(f"HTML report written: {path}")
    return EXIT_OK


async def cmd_maps(args) -> int:
    """Write one full-resolution annotated JPEG per plan that has findings."""
    from sitereport.schemas import number_findings
    from sitereport.services.plan_compositor import PlanCompositeError, composite_plan
    from sitereport.services.snapshot import load_snapshot

    snapshot = await load_snapshot(args.snapshot)
    findings = number_findings(snapshot.observations)
    out = _out_dir(args)

    written = 0
    for plan in snapshot.plans:
        plan_findings = [f for f in findings if f.observation.plan_id == plan.id]
        if not plan_findings:
            continue
        try:
            result = await composite_plan(plan, plan_findings)
        except PlanCompositeError as e:
            print(f"  Skipping plan {plan.name}: {e}")
            continue
        path = out / f"{plan.id}.jpg"
        path.write_bytes(result.jpeg)
        print(f"  {plan.name}: {path} ({result.width}x{result.height}, {len(result.pins)} pins)")
        written += 1

    if written == 0:
        print("No plan maps to export")
        return EXIT_NOTHING
    return EXIT_OK


def main():
    parser = argparse.ArgumentParser(description="Site inspection report CLI")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    for name, help_text in (
        ("pdf", "Render the PDF site report"),
        ("html", "Render the HTML preview report"),
        ("maps", "Render annotated plan images"),
    ):
        sp = subparsers.add_parser(name, help=help_text)
        sp.add_argument("snapshot", help="Project snapshot JSON file")
        sp.add_argument("--out", default="", help="Output directory (defaults to export.output_dir)")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {"pdf": cmd_pdf, "html": cmd_html, "maps": cmd_maps}
    try:
        code = asyncio.run(commands[args.command](args))
    except (OSError, ValidationError) as e:
        print(f"Cannot load snapshot {args.snapshot}: {e}")
        code = EXIT_FAILED
    sys.exit(code)


if __name__ == "__main__":
    main()
