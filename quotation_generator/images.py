"""Logo and seal image ingestion."""

from __future__ import annotations

import base64
import binascii
import io
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

MAX_IMAGE_SIZE = 400
DATA_URL_PREFIX = "data:image/png;base64,"


class ImageError(ValueError):
    """Raised when uploaded image data cannot be decoded."""


def fit_within(width: int, height: int, max_size: int) -> Tuple[int, int]:
    if width <= max_size and height <= max_size:
        return width, height
    if width > height:
        return max_size, max(1, round(height * max_size / width))
    return max(1, round(width * max_size / height)), max_size


def downscale_to_data_url(data: bytes, max_size: int = MAX_IMAGE_SIZE) -> str:
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA")
            size = fit_within(img.width, img.height, max_size)
            if size != (img.width, img.height):
                img = img.resize(size, Image.Resampling.LANCZOS)
            buf = io.BytesIO()
            img.save(buf, format="PNG", optimize=True)
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageError(f"Unsupported image data: {exc}") from exc
    return DATA_URL_PREFIX + base64.b64encode(buf.getvalue()).decode("ascii")


def decode_data_url(url: str) -> bytes:
    header, sep, payload = (url or "").partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise ImageError("Expected a base64 data URL.")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageError(f"Invalid base64 image payload: {exc}") from exc
