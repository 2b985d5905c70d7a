"""Vertical layout for report pages: text wrapping, photo grids, page breaks.

All lengths are PDF points measured down from the top edge of the page. The
assembler converts to reportlab's bottom-up coordinates only when drawing.
A finding block is measured in full before placement and is never split
across pages.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import NamedTuple

from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth

from sitereport.config import ReportStyle, get_settings
from sitereport.schemas import Finding

logger = logging.getLogger(__name__)

_settings = get_settings()

BODY_FONT = "Helvetica"
BOLD_FONT = "Helvetica-Bold"
ELLIPSIS = "..."


def grid_rows(count: int, per_row: int) -> int:
    return math.ceil(count / per_row) if count > 0 else 0


def grid_height(count: int, per_row: int, cell: float, spacing: float) -> float:
    """Height of ``count`` square cells laid out ``per_row`` to a row."""
    return grid_rows(count, per_row) * (cell + spacing)


def _break_word(word: str, font_name: str, font_size: float, max_width: float) -> list[str]:
    pieces, current = [], ""
    for ch in word:
        if current and stringWidth(current + ch, font_name, font_size) > max_width:
            pieces.append(current)
            current = ch
        else:
            current += ch
    pieces.append(current)
    return pieces


def wrap_text(text: str, font_name: str, font_size: float, max_width: float) -> list[str]:
    """Word-wrap ``text`` to ``max_width``; words wider than a line are broken."""
    lines = []
    for line in simpleSplit(text, font_name, font_size, max_width):
        if stringWidth(line, font_name, font_size) <= max_width:
            lines.append(line)
        else:
            lines.extend(_break_word(line, font_name, font_size, max_width))
    return lines


def fit_line(text: str, font_name: str, font_size: float, max_width: float) -> str:
    """Clip a single line to ``max_width``, marking the cut with an ellipsis."""
    if stringWidth(text, font_name, font_size) <= max_width:
        return text
    while text and stringWidth(text + ELLIPSIS, font_name, font_size) > max_width:
        text = text[:-1]
    return text + ELLIPSIS


@dataclass
class FindingBlock:
    """Measured layout of one finding, offsets relative to the block top."""

    finding: Finding
    text_lines: list[str]
    photo_count: int
    header_height: float
    metadata_height: float
    line_height: float
    grid_height: float
    spacing: float
    truncated: bool = False
    dropped_photos: int = 0

    @property
    def text_height(self) -> float:
        return len(self.text_lines) * self.line_height

    @property
    def metadata_top(self) -> float:
        return self.header_height

    @property
    def text_top(self) -> float:
        return self.header_height + self.metadata_height

    @property
    def grid_top(self) -> float:
        return self.text_top + self.text_height

    @property
    def height(self) -> float:
        return self.grid_top + self.grid_height + self.spacing


class Placement(NamedTuple):
    top: float
    new_page: bool


@dataclass
class PageCursor:
    top: float
    bottom: float
    y: float = field(default=0.0)
    page: int = 1

    def __post_init__(self):
        self.y = self.top

    @property
    def remaining(self) -> float:
        return self.bottom - self.y

    def fits(self, height: float) -> bool:
        return height <= self.remaining

    def advance(self, height: float) -> None:
        self.y += height

    def new_page(self) -> None:
        self.page += 1
        self.y = self.top


class LayoutEngine:
    def __init__(self, style: ReportStyle | None = None):
        self.style = style or _settings.style
        s = self.style
        self.page_width = s.page_width_mm * mm
        self.page_height = s.page_height_mm * mm
        self.margin = s.margin_mm * mm
        self.content_width = s.content_width_mm * mm
        self.top = self.margin
        self.bottom = s.bottom_limit_mm * mm
        self.line_height = s.line_height_mm * mm
        self.cell_size = s.cell_size_mm * mm
        self.cell_spacing = s.cell_spacing_mm * mm
        self.per_row = s.per_row
        self.font_size = s.body_font_size

    def cursor(self) -> PageCursor:
        return PageCursor(top=self.top, bottom=self.bottom)

    @property
    def page_capacity(self) -> float:
        return self.bottom - self.top

    def wrap(self, text: str, font_name: str = BODY_FONT, font_size: float | None = None) -> list[str]:
        return wrap_text(text, font_name, font_size or self.font_size, self.content_width)

    def text_height(self, lines: list[str]) -> float:
        return len(lines) * self.line_height

    def grid_height(self, count: int) -> float:
        return grid_height(count, self.per_row, self.cell_size, self.cell_spacing)

    def cell_origin(self, index: int) -> tuple[float, float]:
        """Left/top offset of photo ``index`` inside the grid area."""
        row, col = divmod(index, self.per_row)
        return (
            col * (self.cell_size + self.cell_spacing),
            row * (self.cell_size + self.cell_spacing),
        )

    def finding_text(self, finding: Finding) -> list[str]:
        obs = finding.observation
        lines = self.wrap(f"Description: {obs.note}")
        if obs.recommended_action:
            lines += self.wrap(f"Recommended Action: {obs.recommended_action}")
        if obs.tags:
            lines += self.wrap(f"Tags: {', '.join(obs.tags)}")
        return lines

    def photo_capacity(self) -> int:
        """Most photos a single finding block can hold and still fit on an empty page."""
        s = self.style
        fixed = (s.header_height_mm + s.metadata_height_mm + s.block_spacing_mm) * mm + self.line_height
        rows = int((self.page_capacity - fixed) // (self.cell_size + self.cell_spacing))
        return max(0, rows) * self.per_row

    def measure_finding(self, finding: Finding, photo_count: int) -> FindingBlock:
        """Measure a finding block so it always fits one page.

        Photos past ``photo_capacity()`` are dropped, then oversize text is cut.
        """
        s = self.style
        dropped = 0
        capacity = self.photo_capacity()
        if photo_count > capacity:
            dropped = photo_count - capacity
            photo_count = capacity
            logger.warning(
                f"Finding #{finding.number} has more photos than fit on a page, dropping {dropped}"
            )
        block = FindingBlock(
            finding=finding,
            text_lines=self.finding_text(finding),
            photo_count=photo_count,
            header_height=s.header_height_mm * mm,
            metadata_height=s.metadata_height_mm * mm,
            line_height=self.line_height,
            grid_height=self.grid_height(photo_count),
            spacing=s.block_spacing_mm * mm,
            dropped_photos=dropped,
        )
        if block.height > self.page_capacity:
            fixed = block.height - block.text_height
            max_lines = max(1, int((self.page_capacity - fixed) // self.line_height))
            block.text_lines = block.text_lines[:max_lines - 1] + [ELLIPSIS]
            block.truncated = True
            logger.warning(
                f"Finding #{finding.number} is taller than a page, description cut to {max_lines} lines"
            )
        return block

    def place(self, cursor: PageCursor, height: float) -> Placement:
        """Reserve ``height`` at the cursor, breaking the page first if it does not fit."""
        new_page = False
        if not cursor.fits(height) and cursor.y > cursor.top:
            cursor.new_page()
            new_page = True
        top = cursor.y
        cursor.advance(height)
        return Placement(top=top, new_page=new_page)
