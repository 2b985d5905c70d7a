"""Image payloads: decode stored base64 / data: URLs, open and encode rasters.

Floor plans and photos arrive in the snapshot the way the record store keeps
them: either a ``data:image/...;base64,`` URL or bare base64.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import io

from PIL import Image, UnidentifiedImageError


class ImageDecodeError(ValueError):
    """A stored image payload could not be turned into a raster."""


def decode_payload(payload: str) -> bytes:
    """Return the raw encoded bytes of a base64 or data: URL payload."""
    if not payload:
        raise ImageDecodeError("Empty image payload")
    data = payload
    if payload.startswith("data:"):
        header, sep, data = payload.partition(",")
        if not sep or ";base64" not in header:
            raise ImageDecodeError("Unsupported data URL, expected base64")
    try:
        return base64.b64decode("".join(data.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Invalid base64 image payload: {e}") from e


def open_image_sync(payload: str | bytes) -> Image.Image:
    """Decode and fully load a payload into an RGB or RGBA image."""
    raw = decode_payload(payload) if isinstance(payload, str) else payload
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise ImageDecodeError(f"Cannot decode image: {e}") from e

    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA" if "A" in img.getbands() or "transparency" in img.info else "RGB")
    return img


async def open_image(payload: str | bytes) -> Image.Image:
    """Async wrapper for open_image_sync."""
    return await asyncio.to_thread(open_image_sync, payload)


def encode_jpeg(img: Image.Image, quality: int = 85) -> bytes:
    buf = io.BytesIO()
    img.convert("RGB").save(buf, "JPEG", quality=quality)
    return buf.getvalue()


def to_data_url(data: bytes, mime: str = "image/jpeg") -> str:
    return f"data:{mime};base64,{base64.standard_b64encode(data).decode('utf-8')}"
