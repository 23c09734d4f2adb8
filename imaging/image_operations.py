"""Pixel operations used to build a deck.

Functions are small and pure where possible: each returns a new image except
:func:`composite_overlay` and :func:`draw_card`, which draw onto the surface
they are given.
"""

from __future__ import annotations

from typing import Optional, Tuple

from PIL import Image

from .card_geometry import get_card_box, get_card_dimensions
from .image_processor import ImageProcessingError


class RenderSurfaceError(ImageProcessingError):
    """Raised when a drawing surface cannot be allocated."""


def new_surface(size: Tuple[int, int], colour: Tuple[int, int, int, int] = (0, 0, 0, 0)) -> Image.Image:
    """Allocate a transparent RGBA surface of ``size``."""
    width, height = size
    if width <= 0 or height <= 0:
        raise RenderSurfaceError(f"Invalid surface size {width}x{height}")
    try:
        return Image.new("RGBA", (width, height), colour)
    except (MemoryError, ValueError) as e:
        raise RenderSurfaceError(f"Could not allocate {width}x{height} surface: {e}") from e


def get_card_from_template(template: Image.Image, index: int) -> Image.Image:
    """Crop card ``index`` out of a full-resolution ``template``."""
    dims = get_card_dimensions()
    if not 0 <= index < dims.slot_count:
        raise ValueError(f"Card index {index} outside 0..{dims.slot_count - 1}")
    return template.crop(get_card_box(index))


def extract_number_overlay(card: Image.Image) -> Image.Image:
    """Keep only the two corner number regions of ``card``.

    The top-left and bottom-right ``number_width x number_height`` rectangles
    keep their colour and alpha; every other pixel becomes fully transparent.
    The result has the same size as ``card``.
    """
    dims = get_card_dimensions()
    overlay = card.convert("RGBA")
    width, height = overlay.size
    alpha = overlay.getchannel("A")

    mask = Image.new("L", overlay.size, 0)
    top_left = (0, 0, min(dims.number_width, width), min(dims.number_height, height))
    bottom_right = (
        max(width - dims.number_width, 0),
        max(height - dims.number_height, 0),
        width,
        height,
    )
    for box in (top_left, bottom_right):
        mask.paste(alpha.crop(box), box[:2])

    overlay.putalpha(mask)
    return overlay


def center_crop_box(
    image_size: Tuple[int, int], target_size: Tuple[int, int]
) -> Tuple[float, float, float, float]:
    """Return the centered source box matching the aspect ratio of ``target_size``."""
    width, height = image_size
    target_width, target_height = target_size
    if target_width <= 0 or target_height <= 0:
        raise ValueError(f"Invalid target size {target_width}x{target_height}")

    image_ar = width / height
    target_ar = target_width / target_height

    if image_ar > target_ar:
        # Wider than the card: crop horizontally
        src_w = height * target_ar
        src_x = (width - src_w) / 2
        return src_x, 0.0, src_x + src_w, float(height)
    src_h = width / target_ar
    src_y = (height - src_h) / 2
    return 0.0, src_y, float(width), src_y + src_h


def resize_and_crop(image: Image.Image, target_width: int, target_height: int) -> Image.Image:
    """Center-crop ``image`` to the target aspect ratio and scale it to fit.

    The longer axis (relative to the target) is trimmed symmetrically, so the
    output is exactly ``target_width x target_height`` with no letterboxing.
    """
    box = center_crop_box(image.size, (target_width, target_height))
    return image.convert("RGBA").resize(
        (target_width, target_height), Image.Resampling.LANCZOS, box=box
    )


def composite_overlay(
    base: Image.Image,
    overlay: Image.Image,
    size: Optional[Tuple[int, int]] = None,
) -> Image.Image:
    """Alpha-blend ``overlay`` onto ``base`` at the origin.

    When ``size`` is given the overlay is resampled to it first, which is how
    a full-resolution overlay lands on a reduced preview card.  ``base`` is
    modified in place and returned; ``overlay`` is left untouched.
    """
    layer = overlay.convert("RGBA")
    if size is not None and layer.size != size:
        layer = layer.resize(size, Image.Resampling.LANCZOS)
    base.alpha_composite(layer)
    return base


def draw_card(surface: Image.Image, card: Image.Image, position: Tuple[int, int], *, replace: bool = False) -> None:
    """Draw ``card`` onto ``surface`` at ``position``.

    With ``replace`` the pixels underneath are overwritten instead of blended.
    """
    if replace:
        surface.paste(card, position)
    else:
        surface.alpha_composite(card.convert("RGBA"), dest=position)


__all__ = [
    "RenderSurfaceError",
    "new_surface",
    "get_card_from_template",
    "extract_number_overlay",
    "center_crop_box",
    "resize_and_crop",
    "composite_overlay",
    "draw_card",
]
