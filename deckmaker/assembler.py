"""Deck assembly: turn a template and a list of images into a deck sheet.

One pipeline serves both the interactive preview and the final export; the
only difference between them is the ``scale`` factor.  All rectangles are
derived from the full-size grid and multiplied by ``scale``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from PIL import Image

from imaging.card_geometry import (
    get_card_dimensions,
    is_aspect_ratio_in_tolerance,
    scaled_card_size,
    scaled_deck_size,
    scaled_position,
)
from imaging.image_operations import (
    composite_overlay,
    draw_card,
    extract_number_overlay,
    get_card_from_template,
    new_surface,
    resize_and_crop,
)
from imaging.image_processor import (
    ImageProcessingError,
    decode_image,
    get_image_info,
)

from . import config
from .models import (
    DeckResult,
    DeckSettings,
    GenerationProgress,
    GenerationStatus,
    ProgressCallback,
    SourceImage,
)

logger = logging.getLogger("deckmaker.assembler")

TemplateSource = Union[str, Path, bytes, Image.Image]


def _decode_source(image: SourceImage, scale: float) -> Image.Image:
    with image.pinned():
        return decode_image(image.reference(scale))


def _load_template(template_source: TemplateSource) -> Image.Image:
    """Rasterize the template onto a full-resolution working surface."""
    dims = get_card_dimensions()
    template = decode_image(template_source)
    surface = new_surface((dims.deck_width, dims.deck_height))
    if template.size != surface.size:
        logger.warning(
            "Template is %dx%d, stretching to %dx%d",
            template.width, template.height, dims.deck_width, dims.deck_height,
        )
        template = template.resize(surface.size, Image.Resampling.LANCZOS)
    surface.alpha_composite(template)
    return surface


def _check_tolerance(images: Sequence[SourceImage], tolerance: float, scale: float) -> List[str]:
    """Return ids of images whose aspect ratio falls outside ``tolerance``.

    Sizes come from the payload used at ``scale``, so previews read the
    thumbnail header. The tolerance is only reported; cards are still
    center-cropped.
    """
    if tolerance == 0:
        return []
    dims = get_card_dimensions()
    flagged = []
    for image in images:
        with image.pinned():
            width, height = get_image_info(image.reference(scale)).size
        if not is_aspect_ratio_in_tolerance(dims.card_width, dims.card_height, width, height, tolerance):
            logger.warning(
                "Image %s (%dx%d) is outside aspect ratio tolerance %.2f",
                image.name, width, height, tolerance,
            )
            flagged.append(image.id)
    return flagged


def generate_deck(
    template_source: TemplateSource,
    images: Sequence[SourceImage],
    settings: DeckSettings,
    on_progress: Optional[ProgressCallback] = None,
    scale: float = 1.0,
) -> DeckResult:
    """
    Assemble a deck sheet.

    Args:
        template_source: Template path, encoded bytes or decoded image
        images: Card faces in slot-cycling order
        settings: Deck size, tolerance and hidden card
        on_progress: Optional sink for progress records
        scale: Output scale; ``1`` for export, less for previews

    Returns:
        DeckResult: The sheet and, at full scale, one card preview per image

    Raises:
        ImageDecodeError: If the template or an image cannot be decoded
        RenderSurfaceError: If a drawing surface cannot be allocated
    """
    if not 0 < scale <= 1:
        raise ValueError(f"scale must be in (0, 1], got {scale}")

    total = settings.deck_size

    def report(current: int, status: GenerationStatus, message: Optional[str] = None) -> None:
        if on_progress is not None:
            on_progress(GenerationProgress(current=current, total=total, status=status, message=message))

    try:
        report(0, GenerationStatus.LOADING, "Loading template...")
        template = _load_template(template_source)

        output = new_surface(scaled_deck_size(scale))
        base = template if scale == 1 else template.resize(output.size, Image.Resampling.LANCZOS)
        output.alpha_composite(base)

        if not images:
            report(total, GenerationStatus.COMPLETE, "Deck generated!")
            return DeckResult(image=output, scale=scale)

        report(0, GenerationStatus.LOADING, "Loading images...")
        loaded = [_decode_source(image, scale) for image in images]
        out_of_tolerance = _check_tolerance(images, settings.aspect_ratio_tolerance, scale)

        card_size = scaled_card_size(scale)
        card_previews: List[Image.Image] = []

        for i in range(total):
            report(i, GenerationStatus.GENERATING, f"Generating card {i + 1}/{total}")

            overlay = extract_number_overlay(get_card_from_template(template, i))

            # Cycle through the images when there are fewer images than cards
            image_index = i % len(loaded)
            card = resize_and_crop(loaded[image_index], *card_size)
            composite_overlay(card, overlay, card_size)

            # First occurrence of image k is slot k
            if scale == 1 and image_index == len(card_previews):
                card_previews.append(card.copy())

            draw_card(output, card, scaled_position(i, scale))

        hidden = settings.hidden_card_image
        if hidden is not None:
            hidden_card = resize_and_crop(_decode_source(hidden, scale), *card_size)
            draw_card(output, hidden_card, scaled_position(config.HIDDEN_CARD_INDEX, scale), replace=True)

    except ImageProcessingError as e:
        logger.error("Deck generation failed: %s", e)
        report(0, GenerationStatus.ERROR, str(e))
        raise

    report(total, GenerationStatus.COMPLETE, "Deck generated!")
    logger.info("Generated %d-card deck at scale %.2f from %d image(s)", total, scale, len(images))
    return DeckResult(
        image=output,
        scale=scale,
        card_previews=card_previews,
        out_of_tolerance=out_of_tolerance,
    )


__all__ = ["TemplateSource", "generate_deck"]
