"""Flatten a floor plan and its finding pins into a single JPEG."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from PIL import Image

from sitereport.config import CompositorConfig, ReportStyle, get_settings
from sitereport.schemas import Finding, FloorPlan, Priority
from sitereport.services.coordinates import PixelPoint, map_coordinates
from sitereport.services.image_store import ImageDecodeError, encode_jpeg, open_image_sync
from sitereport.services.pins import draw_pin

logger = logging.getLogger(__name__)

_settings = get_settings()


class PlanCompositeError(RuntimeError):
    def __init__(self, plan_id: str, reason: str):
        super().__init__(f"Plan {plan_id}: {reason}")
        self.plan_id = plan_id


@dataclass(frozen=True)
class PinPlacement:
    number: int
    point: PixelPoint
    priority: Priority


@dataclass
class CompositedPlan:
    plan_id: str
    width: int
    height: int
    jpeg: bytes
    pins: list[PinPlacement] = field(default_factory=list)


def composite_plan_sync(
    plan: FloorPlan,
    findings: list[Finding],
    max_size: tuple[int, int] | None = None,
    style: ReportStyle | None = None,
    config: CompositorConfig | None = None,
) -> CompositedPlan:
    """Draw pins for every located finding onto a copy of the plan image.

    The surface keeps the plan's native pixel size unless ``max_size`` asks
    for a preview, in which case the plan is shrunk first and pins are sized
    for the smaller surface. The stored plan is never modified.
    """
    config = config or _settings.compositor
    try:
        base = open_image_sync(plan.image_data)
    except ImageDecodeError as e:
        raise PlanCompositeError(plan.id, str(e)) from e

    surface = base.convert("RGBA")
    if max_size is not None:
        surface.thumbnail(max_size)

    pins = []
    for finding in findings:
        point = map_coordinates(finding.observation.coords, surface.width, surface.height)
        if point is None:
            continue
        draw_pin(surface, point.px, point.py, str(finding.number), finding.observation.priority, style, config)
        pins.append(PinPlacement(finding.number, point, finding.observation.priority))

    flat = Image.new("RGB", surface.size, (255, 255, 255))
    flat.paste(surface, mask=surface.getchannel("A"))
    logger.info(f"Composited plan {plan.id} at {surface.width}x{surface.height} with {len(pins)} pins")
    return CompositedPlan(
        plan_id=plan.id,
        width=surface.width,
        height=surface.height,
        jpeg=encode_jpeg(flat, config.jpeg_quality),
        pins=pins,
    )


async def composite_plan(
    plan: FloorPlan,
    findings: list[Finding],
    max_size: tuple[int, int] | None = None,
    style: ReportStyle | None = None,
    config: CompositorConfig | None = None,
) -> CompositedPlan:
    """Async wrapper for composite_plan_sync; resolves only after decode and drawing finish."""
    return await asyncio.to_thread(composite_plan_sync, plan, findings, max_size, style, config)
