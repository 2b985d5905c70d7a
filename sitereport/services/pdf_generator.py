"""PDF site report generation using reportlab.

Page order: cover + findings summary, one map page per plan with findings,
then the detailed findings section.
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

from reportlab.lib.colors import HexColor
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from sitereport.config import CompositorConfig, ExportConfig, ReportStyle, get_settings
from sitereport.schemas import ExportStatus, Finding, ProjectSnapshot, ReportResult, number_findings
from sitereport.services.image_store import ImageDecodeError, encode_jpeg, open_image_sync
from sitereport.services.layout import BODY_FONT, BOLD_FONT, FindingBlock, LayoutEngine, fit_line
from sitereport.services.pins import priority_color
from sitereport.services.plan_compositor import CompositedPlan, PlanCompositeError, composite_plan

logger = logging.getLogger(__name__)

_settings = get_settings()

_TEXT = HexColor("#212121")
_MUTED = HexColor("#646464")
_FAINT = HexColor("#969696")
_RULE = HexColor("#c8c8c8")
_BLOCK_RULE = HexColor("#e6e6e6")
_TABLE_HEAD = HexColor("#2563eb")
_TABLE_ZEBRA = HexColor("#f5f7fa")
_WHITE = HexColor("#ffffff")

# (title, width in mm)
_SUMMARY_COLUMNS = [
    ("#", 10), ("Date", 22), ("Priority", 20), ("Trade", 28), ("Description", 60), ("Responsible", 30),
]
_SUMMARY_NOTE_CHARS = 50

_MAP_BOX_MM = (170.0, 220.0)
_PHOTO_MAX_PX = 1200


def report_filename(project_name: str, config: ExportConfig | None = None) -> str:
    """``<name>_SiteReport.pdf`` with every non-alphanumeric character substituted."""
    config = config or _settings.export
    stem = re.sub(r"[^A-Za-z0-9]", config.filename_substitute, project_name)
    return f"{stem}{config.filename_suffix}"


class NumberedCanvas(canvas.Canvas):
    """Canvas that defers page output so each page can show ``Page X of Y``."""

    def __init__(self, *args, **kwargs):
        canvas.Canvas.__init__(self, *args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        n = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self.draw_page_number(n)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)

    def draw_page_number(self, page_count):
        self.setFont(BODY_FONT, 8)
        self.setFillColor(_FAINT)
        w, h = self._pagesize
        self.drawRightString(w - 20 * mm, 10 * mm, f"Page {self._pageNumber} of {page_count}")


@dataclass
class PreparedPhoto:
    index: int
    width: int
    height: int
    jpeg: bytes


@dataclass
class _Assets:
    maps: dict[str, CompositedPlan | PlanCompositeError] = field(default_factory=dict)
    photos: dict[int, list[PreparedPhoto]] = field(default_factory=dict)
    skipped_photos: int = 0


def _prepare_photo_sync(index: int, payload: str) -> PreparedPhoto:
    img = open_image_sync(payload)
    img.thumbnail((_PHOTO_MAX_PX, _PHOTO_MAX_PX))
    return PreparedPhoto(index, img.width, img.height, encode_jpeg(img))


async def _prepare_photo(index: int, payload: str) -> PreparedPhoto:
    """Async wrapper for _prepare_photo_sync; ``index`` is the photo's 1-based position."""
    return await asyncio.to_thread(_prepare_photo_sync, index, payload)


async def _prepare_assets(
    snapshot: ProjectSnapshot,
    findings: list[Finding],
    style: ReportStyle,
    config: CompositorConfig,
) -> _Assets:
    """Decode every plan and photo up front; pages are placed only after this returns."""
    assets = _Assets()

    plan_jobs = {}
    for plan in snapshot.plans:
        plan_findings = [f for f in findings if f.observation.plan_id == plan.id]
        if plan_findings:
            plan_jobs[plan.id] = composite_plan(plan, plan_findings, style=style, config=config)
    results = await asyncio.gather(*plan_jobs.values(), return_exceptions=True)
    for plan_id, result in zip(plan_jobs.keys(), results):
        if isinstance(result, BaseException) and not isinstance(result, PlanCompositeError):
            raise result
        assets.maps[plan_id] = result

    for finding in findings:
        decoded = await asyncio.gather(
            *(_prepare_photo(i, p) for i, p in enumerate(finding.observation.images, start=1)),
            return_exceptions=True,
        )
        photos = []
        for idx, item in enumerate(decoded, start=1):
            if isinstance(item, ImageDecodeError):
                logger.error(f"Photo {idx} of finding #{finding.number} failed to decode: {item}")
                assets.skipped_photos += 1
            elif isinstance(item, BaseException):
                raise item
            else:
                photos.append(item)
        assets.photos[finding.number] = photos
    return assets


class ReportAssembler:
    """Draws one report onto a canvas from a snapshot and its prepared assets."""

    def __init__(
        self,
        snapshot: ProjectSnapshot,
        findings: list[Finding],
        assets: _Assets,
        style: ReportStyle | None = None,
        generated_at: datetime | None = None,
    ):
        self.snapshot = snapshot
        self.findings = findings
        self.assets = assets
        self.style = style or _settings.style
        self.layout = LayoutEngine(self.style)
        self.generated_at = generated_at or datetime.now(timezone.utc)
        self.pages: list[str] = []
        self.skipped_plans: list[str] = []
        self.skipped_findings: list[int] = []
        self.skipped_photos = 0
        self._buffer = io.BytesIO()
        self.c = NumberedCanvas(
            self._buffer,
            pagesize=(self.layout.page_width, self.layout.page_height),
            invariant=True,
        )

    # ── helpers ───────────────────────────────────────────────

    def _y(self, top: float) -> float:
        return self.layout.page_height - top

    def _new_page(self, label: str) -> None:
        if self.pages:
            self.c.showPage()
        self.pages.append(label)

    def _text(self, x: float, top: float, text: str, font: str = BODY_FONT, size: float = 10,
              color=_TEXT, align: str = "left") -> None:
        self.c.setFont(font, size)
        self.c.setFillColor(color)
        if align == "center":
            self.c.drawCentredString(x, self._y(top), text)
        elif align == "right":
            self.c.drawRightString(x, self._y(top), text)
        else:
            self.c.drawString(x, self._y(top), text)

    def _rule(self, top: float, color=_RULE) -> None:
        self.c.setStrokeColor(color)
        self.c.setLineWidth(0.5)
        left = self.layout.margin
        self.c.line(left, self._y(top), self.layout.page_width - left, self._y(top))

    # ── cover ─────────────────────────────────────────────────

    def draw_cover(self) -> None:
        self._new_page("cover")
        lay = self.layout
        center = lay.page_width / 2
        left = lay.margin
        project = self.snapshot.project

        self._text(center, 20 * mm, "SITE INSPECTION REPORT", BOLD_FONT, 22, align="center")
        stamp = self.generated_at.strftime("%Y-%m-%d %H:%M %Z").strip()
        self._text(center, 28 * mm, f"Generated on: {stamp}", size=10, color=_MUTED, align="center")
        self._rule(35 * mm)

        self._text(left, 45 * mm, "PROJECT DETAILS", BOLD_FONT, 12)
        details = [
            f"Project Name: {project.name}",
            f"Location: {project.location}",
            f"Inspector: {project.inspector}",
            f"Total Findings: {len(self.findings)}",
        ]
        top = 52 * mm
        for line in details:
            self._text(left, top, fit_line(line, BODY_FONT, 10, lay.content_width), size=10)
            top += 6 * mm

        weather = self.snapshot.weather
        if weather is not None:
            top += 2 * mm
            self._text(left, top, "CURRENT WEATHER", BOLD_FONT, 10)
            top += 6 * mm
            self._text(
                left, top,
                f"{weather.temp:g}°F   {weather.condition}   "
                f"Humidity: {weather.humidity:g}%   Wind: {weather.wind:g} mph",
                size=10,
            )
            top += 6 * mm

        self.draw_summary_table(top + 4 * mm)

    def _table_row(self, top: float, cells: list[str], header: bool, zebra: bool) -> None:
        s = self.style
        row_h = s.table_row_height_mm * mm
        x = self.layout.margin
        if header or zebra:
            self.c.setFillColor(_TABLE_HEAD if header else _TABLE_ZEBRA)
            self.c.rect(x, self._y(top + row_h), self.layout.content_width, row_h, stroke=0, fill=1)
        font = BOLD_FONT if header else BODY_FONT
        baseline = top + row_h / 2 + s.table_font_size * 0.35
        for (_, width_mm), value in zip(_SUMMARY_COLUMNS, cells):
            width = width_mm * mm
            pad = 1.5 * mm
            text = fit_line(value, font, s.table_font_size, width - 2 * pad)
            self._text(x + pad, baseline, text, font, s.table_font_size, _WHITE if header else _TEXT)
            x += width

    def draw_summary_table(self, start: float) -> None:
        row_h = self.style.table_row_height_mm * mm
        cursor = self.layout.cursor()
        cursor.y = start
        header = [title for title, _ in _SUMMARY_COLUMNS]

        placement = self.layout.place(cursor, row_h)
        if placement.new_page:
            self._new_page("summary")
        self._table_row(placement.top, header, header=True, zebra=False)

        for i, finding in enumerate(self.findings):
            obs = finding.observation
            flat = " ".join(obs.note.split())
            note = flat[:_SUMMARY_NOTE_CHARS] + ("..." if len(flat) > _SUMMARY_NOTE_CHARS else "")
            row = [
                str(finding.number),
                obs.timestamp.strftime("%Y-%m-%d"),
                obs.priority.value,
                obs.trade or "N/A",
                note,
                obs.responsible_party or "GC",
            ]
            placement = self.layout.place(cursor, row_h)
            top = placement.top
            if placement.new_page:
                self._new_page("summary")
                self._table_row(top, header, header=True, zebra=False)
                top += row_h
                cursor.advance(row_h)
            self._table_row(top, row, header=False, zebra=i % 2 == 1)

    # ── maps ──────────────────────────────────────────────────

    def draw_maps(self) -> None:
        for plan in self.snapshot.plans:
            if plan.id not in self.assets.maps:
                continue
            result = self.assets.maps[plan.id]
            if isinstance(result, PlanCompositeError):
                logger.error(f"Skipping map page for plan {plan.id}: {result}")
                self.skipped_plans.append(plan.id)
                continue
            self.draw_map_page(plan.name, result)

    def draw_map_page(self, plan_name: str, composited: CompositedPlan) -> None:
        reader = ImageReader(io.BytesIO(composited.jpeg))
        img_w, img_h = reader.getSize()
        max_w, max_h = _MAP_BOX_MM[0] * mm, _MAP_BOX_MM[1] * mm
        width = max_w
        height = img_h * width / img_w
        if height > max_h:
            height = max_h
            width = img_w * height / img_h

        self._new_page(f"map:{composited.plan_id}")
        center = self.layout.page_width / 2
        self._text(center, 20 * mm, f"MAP REFERENCE: {plan_name.upper()}", BOLD_FONT, 14, align="center")
        left = self.layout.margin + (max_w - width) / 2
        top = 30 * mm
        self.c.drawImage(reader, left, self._y(top + height), width=width, height=height)
        self._text(
            center, top + height + 10 * mm,
            "Pins indicate location and match finding numbers in detailed section.",
            size=9, color=_FAINT, align="center",
        )

    # ── detailed findings ─────────────────────────────────────

    def draw_details(self) -> None:
        self._new_page("findings")
        self._text(self.layout.margin, 20 * mm, "DETAILED FINDINGS", BOLD_FONT, 16)
        cursor = self.layout.cursor()
        cursor.y = 30 * mm

        for finding in self.findings:
            photos = self.assets.photos.get(finding.number, [])
            block = self.layout.measure_finding(finding, len(photos))
            photos = photos[:block.photo_count]
            self.skipped_photos += block.dropped_photos
            placement = self.layout.place(cursor, block.height)
            if placement.new_page:
                self._new_page("findings")
            try:
                self.draw_finding(block, placement.top, photos)
            except Exception as e:
                logger.error(f"Finding #{finding.number} failed to render: {e}")
                self.skipped_findings.append(finding.number)

    def draw_finding(self, block: FindingBlock, top: float, photos: list[PreparedPhoto]) -> None:
        lay = self.layout
        left, right = lay.margin, lay.page_width - lay.margin
        obs = block.finding.observation
        readers = [ImageReader(io.BytesIO(p.jpeg)) for p in photos]

        self._rule(top, _BLOCK_RULE)
        self._text(left, top + 10 * mm, f"Finding #{block.finding.number}", BOLD_FONT, 12)
        color = HexColor(priority_color(obs.priority, self.style))
        self._text(right, top + 10 * mm, obs.priority.value.upper(), BOLD_FONT, 12, color, align="right")

        meta = top + block.metadata_top
        plan_name = self.snapshot.plan_name(obs.plan_id)
        self._text(left, meta, fit_line(f"Location: {plan_name}", BODY_FONT, 9, lay.content_width), size=9)
        half = lay.content_width / 2 - 2 * mm
        self._text(left, meta + 6 * mm, fit_line(f"Trade: {obs.trade or 'N/A'}", BOLD_FONT, 9, half), BOLD_FONT, 9)
        self._text(
            right, meta + 6 * mm,
            fit_line(f"Responsible: {obs.responsible_party or 'N/A'}", BOLD_FONT, 9, half),
            BOLD_FONT, 9, align="right",
        )

        baseline = top + block.text_top
        for line in block.text_lines:
            self._text(left, baseline, line, size=lay.font_size)
            baseline += block.line_height

        grid_top = top + block.grid_top
        cell = lay.cell_size
        for idx, (photo, reader) in enumerate(zip(photos, readers)):
            dx, dy = lay.cell_origin(idx)
            scale = min(cell / photo.width, cell / photo.height)
            w, h = photo.width * scale, photo.height * scale
            x = left + dx + (cell - w) / 2
            cell_top = grid_top + dy
            self.c.drawImage(reader, x, self._y(cell_top + (cell - h) / 2 + h), width=w, height=h)
            self._text(left + dx + cell / 2, cell_top + cell + 4 * mm, f"Photo {photo.index}",
                       size=8, color=_MUTED, align="center")

    # ── output ────────────────────────────────────────────────

    def render(self) -> bytes:
        self.draw_cover()
        self.draw_maps()
        self.draw_details()
        self.c.showPage()
        self.c.save()
        return self._buffer.getvalue()


async def generate_pdf(
    snapshot: ProjectSnapshot,
    generated_at: datetime | None = None,
    style: ReportStyle | None = None,
    config: CompositorConfig | None = None,
) -> ReportResult:
    """Generate the PDF site report for a project snapshot.

    Returns a ``nothing_to_export`` result when the project has no findings.
    Unreadable plans and photos are skipped; any other error propagates.
    """
    style = style or _settings.style
    config = config or _settings.compositor

    findings = number_findings(snapshot.observations)
    if not findings:
        logger.info(f"Project {snapshot.project.id} has no findings, nothing to export")
        return ReportResult(status=ExportStatus.NOTHING_TO_EXPORT)

    logger.info(f"Generating report for project {snapshot.project.id} with {len(findings)} findings")
    assets = await _prepare_assets(snapshot, findings, style, config)

    assembler = ReportAssembler(snapshot, findings, assets, style, generated_at)
    content = assembler.render()

    return ReportResult(
        status=ExportStatus.COMPLETED,
        filename=report_filename(snapshot.project.name),
        content=content,
        page_count=len(assembler.pages),
        pages=assembler.pages,
        skipped_plans=assembler.skipped_plans,
        skipped_findings=assembler.skipped_findings,
        skipped_photos=assets.skipped_photos + assembler.skipped_photos,
    )
