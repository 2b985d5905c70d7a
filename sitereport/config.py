"""Report configuration loaded from config.yaml + environment variables."""

from __future__ import annotations

import yaml
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from sitereport.schemas.observation import Priority

_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    return {}


_yaml = _load_yaml()


class ReportStyle(BaseSettings):
    """Page geometry and colours shared by every report component.

    Lengths are millimetres on an A4 portrait page.
    """

    page_width_mm: float = 210.0
    page_height_mm: float = 297.0
    margin_mm: float = 20.0
    line_height_mm: float = 5.0
    cell_size_mm: float = 50.0
    cell_spacing_mm: float = 8.0
    per_row: int = 3
    header_height_mm: float = 18.0
    metadata_height_mm: float = 14.0
    block_spacing_mm: float = 10.0
    body_font_size: float = 10.0
    table_font_size: float = 8.0
    table_row_height_mm: float = 7.0
    priority_colors: dict[Priority, str] = Field(default_factory=lambda: {
        Priority.CRITICAL: "#dc2626",
        Priority.HIGH: "#f97316",
        Priority.MEDIUM: "#2563eb",
        Priority.LOW: "#2563eb",
    })

    @field_validator("priority_colors")
    @classmethod
    def check_priority_colors(cls, value: dict[Priority, str]) -> dict[Priority, str]:
        missing = set(Priority) - set(value)
        if missing:
            names = ", ".join(sorted(p.value for p in missing))
            raise ValueError(f"priority_colors is missing: {names}")
        return value

    @field_validator("per_row")
    @classmethod
    def check_per_row(cls, value: int) -> int:
        if value < 1:
            raise ValueError("per_row must be at least 1")
        return value

    @property
    def content_width_mm(self) -> float:
        return self.page_width_mm - 2 * self.margin_mm

    @property
    def bottom_limit_mm(self) -> float:
        return self.page_height_mm - self.margin_mm


class CompositorConfig(BaseSettings):
    pin_scale: float = 0.015
    glow_scale: float = 1.5
    glow_alpha: int = 0x33
    ring_scale: float = 0.2
    jpeg_quality: int = 85
    preview_max_size: tuple[int, int] = (1024, 1024)
    font_path: str = "DejaVuSans-Bold.ttf"


class ExportConfig(BaseSettings):
    filename_suffix: str = "_SiteReport.pdf"
    filename_substitute: str = "_"
    output_dir: str = "data/reports"


class Settings(BaseSettings):
    style: ReportStyle = Field(default_factory=ReportStyle)
    compositor: CompositorConfig = Field(default_factory=CompositorConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def get_settings() -> Settings:
    """Build Settings by merging YAML defaults with env overrides."""
    y = _yaml
    style = ReportStyle(**y.get("style", {}))
    comp = CompositorConfig(**y.get("compositor", {}))
    exp = ExportConfig(**y.get("export", {}))
    return Settings(style=style, compositor=comp, export=exp)
