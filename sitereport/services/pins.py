"""Draw finding markers onto a raster."""

from __future__ import annotations

import math
from functools import lru_cache

from PIL import Image, ImageColor, ImageDraw, ImageFont

from sitereport.config import CompositorConfig, ReportStyle, get_settings
from sitereport.schemas import Priority

_settings = get_settings()


def priority_color(priority: Priority, style: ReportStyle | None = None) -> str:
    """Hex colour for a priority: red for Critical, orange for High, blue otherwise."""
    style = style or _settings.style
    return style.priority_colors[Priority(priority)]


def pin_radius(width: int, height: int, config: CompositorConfig | None = None) -> float:
    """Base pin radius, proportional to the larger side of the target."""
    config = config or _settings.compositor
    return max(width, height) * config.pin_scale


@lru_cache(maxsize=64)
def _label_font(path: str, size: int) -> ImageFont.FreeTypeFont:
    try:
        return ImageFont.truetype(path, size)
    except OSError:
        return ImageFont.load_default(size=size)


def _draw_glow(target: Image.Image, px: float, py: float, radius: float, rgba: tuple[int, int, int, int]) -> None:
    # Blend on a clipped patch so the halo is translucent over the plan.
    x0 = max(0, math.floor(px - radius))
    y0 = max(0, math.floor(py - radius))
    x1 = min(target.width, math.ceil(px + radius) + 1)
    y1 = min(target.height, math.ceil(py + radius) + 1)
    if x1 <= x0 or y1 <= y0:
        return
    patch = Image.new("RGBA", (x1 - x0, y1 - y0), (0, 0, 0, 0))
    ImageDraw.Draw(patch).ellipse(
        (px - radius - x0, py - radius - y0, px + radius - x0, py + radius - y0),
        fill=rgba,
    )
    target.alpha_composite(patch, dest=(x0, y0))


def draw_pin(
    target: Image.Image,
    px: float,
    py: float,
    label: str,
    priority: Priority,
    style: ReportStyle | None = None,
    config: CompositorConfig | None = None,
) -> None:
    """Draw one marker centred on (px, py). ``target`` must be RGBA.

    Layers: translucent glow, solid disc, white ring, bold white number.
    """
    config = config or _settings.compositor
    r = pin_radius(target.width, target.height, config)
    rgb = ImageColor.getrgb(priority_color(priority, style))[:3]

    _draw_glow(target, px, py, r * config.glow_scale, (*rgb, config.glow_alpha))

    draw = ImageDraw.Draw(target)
    draw.ellipse((px - r, py - r, px + r, py + r), fill=(*rgb, 255))

    ring = max(1, round(r * config.ring_scale))
    outer = r + ring / 2
    draw.ellipse((px - outer, py - outer, px + outer, py + outer), outline=(255, 255, 255, 255), width=ring)

    font = _label_font(config.font_path, max(1, round(r)))
    draw.text((px, py), label, fill=(255, 255, 255, 255), font=font, anchor="mm")
