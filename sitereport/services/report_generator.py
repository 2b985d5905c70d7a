"""Generate the HTML site report preview using Jinja2."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from sitereport.config import get_settings
from sitereport.schemas import ProjectSnapshot, number_findings
from sitereport.services.image_store import ImageDecodeError, open_image_sync, to_data_url
from sitereport.services.pins import priority_color
from sitereport.services.plan_compositor import PlanCompositeError, composite_plan

logger = logging.getLogger(__name__)

_settings = get_settings()

_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
_env = Environment(loader=FileSystemLoader(str(_TEMPLATE_DIR)), autoescape=True)


def _photo_urls(payloads: list[str]) -> list[dict]:
    """Data URLs, keyed by original position, for the photos that decode."""
    urls = []
    for idx, payload in enumerate(payloads, start=1):
        try:
            open_image_sync(payload)
        except ImageDecodeError as e:
            logger.warning(f"Dropping photo {idx} from preview: {e}")
            continue
        src = payload if payload.startswith("data:") else f"data:image/jpeg;base64,{payload}"
        urls.append({"index": idx, "src": src})
    return urls


async def generate_report(snapshot: ProjectSnapshot, generated_at: datetime | None = None) -> str | None:
    """Render an HTML report for a snapshot. Returns None when there are no findings.

    Plan maps are composited at preview size rather than full resolution.
    """
    findings = number_findings(snapshot.observations)
    if not findings:
        return None

    jobs = []
    for plan in snapshot.plans:
        plan_findings = [f for f in findings if f.observation.plan_id == plan.id]
        if plan_findings:
            jobs.append((plan, composite_plan(plan, plan_findings, max_size=_settings.compositor.preview_max_size)))
    results = await asyncio.gather(*(job for _, job in jobs), return_exceptions=True)

    maps = []
    for (plan, _), result in zip(jobs, results):
        if isinstance(result, PlanCompositeError):
            logger.error(f"Skipping map for plan {plan.id}: {result}")
            continue
        if isinstance(result, BaseException):
            raise result
        maps.append({"name": plan.name, "image": to_data_url(result.jpeg)})

    items = []
    for finding in findings:
        obs = finding.observation
        items.append({
            "number": finding.number,
            "priority": obs.priority.value,
            "color": priority_color(obs.priority),
            "location": snapshot.plan_name(obs.plan_id),
            "trade": obs.trade or "N/A",
            "responsible": obs.responsible_party or "N/A",
            "responsible_summary": obs.responsible_party or "GC",
            "note": obs.note,
            "recommended_action": obs.recommended_action,
            "tags": obs.tags,
            "date": obs.timestamp.strftime("%Y-%m-%d"),
            "photos": await asyncio.to_thread(_photo_urls, list(obs.images)),
        })

    template = _env.get_template("report.html.j2")
    return template.render(
        project=snapshot.project,
        weather=snapshot.weather,
        maps=maps,
        findings=items,
        report_date=(generated_at or datetime.now(timezone.utc)).strftime("%B %d, %Y"),
    )
