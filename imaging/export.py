"""Encoding of assembled decks to PNG/JPEG and saving them to disk."""

from __future__ import annotations

import base64
import io
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from PIL import Image

from deckmaker import config
from .validation import validate_output_path

logger = logging.getLogger("deckmaker.export")

EXPORT_EXTENSIONS = {".png", ".jpg", ".jpeg"}

_MIME_TYPES = {"PNG": "image/png", "JPEG": "image/jpeg"}


def to_pillow_quality(quality: float) -> int:
    """Map a ``0..1`` quality to Pillow's ``1..100`` encoder scale."""
    if not 0 <= quality <= 1:
        raise ValueError(f"quality must be between 0 and 1, got {quality}")
    return max(config.QUALITY_MIN, min(config.QUALITY_MAX, round(quality * 100)))


def _flatten(surface: Image.Image) -> Image.Image:
    """Drop the alpha channel onto white; JPEG has no transparency."""
    if surface.mode == "RGB":
        return surface
    rgba = surface.convert("RGBA")
    background = Image.new("RGB", rgba.size, (255, 255, 255))
    background.paste(rgba, mask=rgba.getchannel("A"))
    return background


def _encode(surface: Image.Image, fmt: str, quality: Optional[float] = None) -> bytes:
    fmt = fmt.upper()
    if fmt == "JPG":
        fmt = "JPEG"

    params: Dict[str, Any] = {"format": fmt}
    if fmt == "JPEG":
        surface = _flatten(surface)
        params["quality"] = to_pillow_quality(
            config.DEFAULT_JPEG_QUALITY if quality is None else quality
        )
    elif fmt == "PNG":
        params["compress_level"] = 6
    else:
        raise ValueError(f"Unsupported export format: {fmt}")

    buffer = io.BytesIO()
    surface.save(buffer, **params)
    return buffer.getvalue()


def to_png_bytes(surface: Image.Image) -> bytes:
    """Encode ``surface`` losslessly."""
    return _encode(surface, "PNG")


def to_jpeg_bytes(surface: Image.Image, quality: float = config.DEFAULT_JPEG_QUALITY) -> bytes:
    """Encode ``surface`` as JPEG at ``quality`` (0..1)."""
    return _encode(surface, "JPEG", quality)


def to_data_url(surface: Image.Image, fmt: str = "PNG", quality: Optional[float] = None) -> str:
    """Return ``surface`` as a ``data:`` URL, as used by web previews."""
    data = _encode(surface, fmt, quality)
    mime = _MIME_TYPES["JPEG" if fmt.upper() in ("JPG", "JPEG") else "PNG"]
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def get_encoded_size(surface: Image.Image, fmt: str = "PNG", quality: Optional[float] = None) -> int:
    """Return the number of bytes ``surface`` would take once encoded."""
    return len(_encode(surface, fmt, quality))


def trigger_download(data: bytes, filename: str, directory: Union[str, Path] = ".") -> Path:
    """Write encoded deck ``data`` to ``directory/filename``.

    Returns:
        Path: The resolved path that was written
    """
    target = validate_output_path(Path(directory) / filename, EXPORT_EXTENSIONS)
    target.write_bytes(data)
    logger.info("Saved deck to %s (%d bytes)", target, len(data))
    return target


__all__ = [
    "EXPORT_EXTENSIONS",
    "to_pillow_quality",
    "to_png_bytes",
    "to_jpeg_bytes",
    "to_data_url",
    "get_encoded_size",
    "trigger_download",
]
