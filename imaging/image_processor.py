"""Decoding and thumbnailing of deck images.

Every raster that enters the deck pipeline (template, card faces, hidden
card) is decoded here so that failures surface uniformly as
:class:`ImageDecodeError`.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from deckmaker import config
from .export import to_pillow_quality
from .validation import validate_image_path

logger = logging.getLogger("deckmaker.imaging")

ImageSource = Union[str, Path, bytes, Image.Image]

VALID_EXTENSIONS = {f".{fmt}" for fmt in config.SUPPORTED_IMAGE_FORMATS}


class ImageProcessingError(RuntimeError):
    """Base class for failures while producing a deck raster."""


class ImageDecodeError(ImageProcessingError):
    """Raised when an asset cannot be decoded into a raster."""


@dataclass(slots=True)
class ImageInfo:
    """
    Header information about an encoded image.

    Attributes:
        format (str): Image format (e.g., JPEG, PNG)
        mode (str): Color mode
        size (Tuple[int, int]): Image dimensions
    """
    format: Optional[str]
    mode: str
    size: Tuple[int, int]


def _open(source: ImageSource) -> Image.Image:
    if isinstance(source, (bytes, bytearray)):
        return Image.open(io.BytesIO(source))
    return Image.open(Path(source))


def decode_image(source: ImageSource) -> Image.Image:
    """
    Decode ``source`` into a fully loaded RGBA image.

    Args:
        source: Encoded bytes, a file path or an already decoded image

    Returns:
        Image.Image: Decoded image, EXIF orientation applied

    Raises:
        ImageDecodeError: If the data cannot be decoded
    """
    if isinstance(source, Image.Image):
        return source.convert("RGBA")
    try:
        with _open(source) as img:
            img = ImageOps.exif_transpose(img)
            return img.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        label = source if isinstance(source, (str, Path)) else f"<{len(source)} bytes>"
        logger.error("Failed to decode image %s: %s", label, e)
        raise ImageDecodeError(f"Failed to load image {label}: {e}") from e


def get_image_info(source: ImageSource) -> ImageInfo:
    """Read the header of ``source`` without decoding its pixels."""
    if isinstance(source, Image.Image):
        return ImageInfo(format=source.format, mode=source.mode, size=source.size)
    try:
        with _open(source) as img:
            size = img.size
            orientation = img.getexif().get(0x0112)
            if orientation in (5, 6, 7, 8):
                size = (size[1], size[0])
            return ImageInfo(format=img.format, mode=img.mode, size=size)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Failed to get image info: {e}") from e


def create_thumbnail(
    source: ImageSource,
    max_size: Tuple[int, int] = (config.THUMBNAIL_MAX_WIDTH, config.THUMBNAIL_MAX_HEIGHT),
    quality: float = config.THUMBNAIL_QUALITY,
) -> bytes:
    """
    Encode a reduced-resolution JPEG copy of ``source``.

    The image is shrunk to fit inside ``max_size`` keeping its proportions and
    is never upscaled.
    """
    try:
        opened = source.copy() if isinstance(source, Image.Image) else _open(source)
        with opened as img:
            # Ask the decoder to downscale first for large JPEG inputs
            img.draft("RGB", max_size)
            img = ImageOps.exif_transpose(img)
            scale = min(max_size[0] / img.width, max_size[1] / img.height, 1)
            size = (max(1, round(img.width * scale)), max(1, round(img.height * scale)))
            thumb = img.convert("RGB").resize(size, Image.Resampling.LANCZOS)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Failed to load image for thumbnail: {e}") from e

    buffer = io.BytesIO()
    thumb.save(buffer, format="JPEG", quality=to_pillow_quality(quality))
    return buffer.getvalue()


def read_image_file(path: Union[str, Path]) -> Tuple[Path, bytes]:
    """Validate ``path`` and return it resolved together with its contents."""
    safe_path = validate_image_path(path, VALID_EXTENSIONS)
    return safe_path, safe_path.read_bytes()


__all__ = [
    "ImageSource",
    "ImageInfo",
    "ImageProcessingError",
    "ImageDecodeError",
    "VALID_EXTENSIONS",
    "decode_image",
    "get_image_info",
    "create_thumbnail",
    "read_image_file",
]
