"""Normalized pin coordinates to raster pixels."""

from __future__ import annotations

from typing import NamedTuple

from sitereport.schemas import Coordinates


class PixelPoint(NamedTuple):
    px: float
    py: float


def map_coordinates(coords: Coordinates | None, width: float, height: float) -> PixelPoint | None:
    """Place a percentage coordinate on a ``width`` x ``height`` target.

    Returns None for unlocated observations; callers leave them off the map.
    """
    if coords is None:
        return None
    return PixelPoint(coords.x / 100 * width, coords.y / 100 * height)
