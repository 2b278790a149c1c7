"""JPEG preprocessing applied before upload."""

from __future__ import annotations

import io
import logging
from typing import Literal

from PIL import Image, ImageOps

LOGGER = logging.getLogger(__name__)

OptimizationMode = Literal["off", "lossless", "balanced"]

JPEG_CONTENT_TYPES = frozenset({"image/jpeg", "image/jpg", "image/pjpeg"})

_SOI = b"\xff\xd8"
_SOS = 0xDA
_EOI = 0xD9
_COM = 0xFE
_APP13 = 0xED
_XMP_IDENTIFIERS = (
    b"http://ns.adobe.com/xap/1.0/\x00",
    b"http://ns.adobe.com/xmp/extension/\x00",
)


def is_jpeg(data: bytes, content_type: str | None = None) -> bool:
    """Return True for JPEG content, judged by MIME type or magic bytes."""
    if content_type and content_type.lower() in JPEG_CONTENT_TYPES:
        return True
    return data[:2] == _SOI


def strip_jpeg_metadata(data: bytes) -> bytes:
    """Drop comment, Photoshop/IPTC, and XMP segments from a JPEG.

    EXIF and every other segment are kept; the entropy-coded data from the
    start-of-scan marker onward is copied unchanged. Anything that does not
    parse as a baseline segment sequence is returned untouched.

    Args:
        data: Raw JPEG bytes.

    Returns:
        bytes: The stripped JPEG or the original bytes.
    """

    if data[:2] != _SOI:
        return data

    output = bytearray(_SOI)
    position = 2
    size = len(data)
    while position < size:
        if data[position] != 0xFF:
            return data
        while position < size and data[position] == 0xFF:
            position += 1
        if position >= size:
            return data
        marker = data[position]
        position += 1

        if marker == _SOS:
            output += bytes((0xFF, marker))
            output += data[position:]
            return bytes(output)
        if marker == _EOI:
            output += bytes((0xFF, marker))
            return bytes(output)
        if 0xD0 <= marker <= 0xD7 or marker == 0x01:
            output += bytes((0xFF, marker))
            continue

        if position + 2 > size:
            return data
        length = int.from_bytes(data[position : position + 2], "big")
        if length < 2 or position + length > size:
            return data
        segment = data[position : position + length]
        position += length
        if _drop_segment(marker, segment[2:]):
            continue
        output += bytes((0xFF, marker))
        output += segment

    return data


def _drop_segment(marker: int, payload: bytes) -> bool:
    if marker in (_COM, _APP13):
        return True
    if 0xE0 <= marker <= 0xEF:
        return payload.startswith(_XMP_IDENTIFIERS)
    return False


def downscale_jpeg(data: bytes, *, max_edge: int = 2000, quality: int = 85) -> bytes:
    """Re-encode a JPEG with orientation applied and its longest edge capped.

    Images are never upscaled. Decoding or encoding failures fall back to the
    original bytes.
    """

    try:
        with Image.open(io.BytesIO(data)) as source:
            image = ImageOps.exif_transpose(source)
            image.thumbnail((max_edge, max_edge))
            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            buffer = io.BytesIO()
            image.save(buffer, format="JPEG", quality=quality, optimize=True)
    except Exception as exc:
        LOGGER.warning("Falling back to original bytes; JPEG re-encode failed: %s", exc)
        return data
    return buffer.getvalue()


def preprocess(
    data: bytes,
    content_type: str | None,
    mode: OptimizationMode,
    *,
    max_edge: int = 2000,
    quality: int = 85,
) -> bytes:
    """Apply the configured optimization mode to upload bytes.

    Non-JPEG content passes through unchanged in every mode.
    """

    if mode == "off" or not is_jpeg(data, content_type):
        return data
    if mode == "lossless":
        return strip_jpeg_metadata(data)
    return downscale_jpeg(data, max_edge=max_edge, quality=quality)


__all__ = [
    "OptimizationMode",
    "JPEG_CONTENT_TYPES",
    "is_jpeg",
    "strip_jpeg_metadata",
    "downscale_jpeg",
    "preprocess",
]
