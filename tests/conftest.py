"""Shared fixtures: a numbered template and solid-colour card faces."""
from __future__ import annotations

import io
from typing import Callable, Tuple

import pytest
from PIL import Image, ImageDraw

from deckmaker.models import SourceImage
from imaging.card_geometry import get_card_box, get_card_dimensions

TEMPLATE_BACKGROUND = (128, 128, 128, 255)


def number_colour(index: int) -> Tuple[int, int, int, int]:
    """Colour painted in both number corners of card ``index``."""
    return (200, index, 50, 255)


def assert_color_close(actual, expected, tolerance=12):
    assert len(actual) == len(expected)
    for component_actual, component_expected in zip(actual, expected, strict=True):
        assert abs(component_actual - component_expected) <= tolerance, (actual, expected)


def encode(image: Image.Image, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture(scope="session")
def template() -> Image.Image:
    dims = get_card_dimensions()
    img = Image.new("RGBA", (dims.deck_width, dims.deck_height), TEMPLATE_BACKGROUND)
    draw = ImageDraw.Draw(img)
    for index in range(dims.slot_count):
        left, top, right, bottom = get_card_box(index)
        colour = number_colour(index)
        draw.rectangle((left, top, left + dims.number_width - 1, top + dims.number_height - 1), fill=colour)
        draw.rectangle((right - dims.number_width, bottom - dims.number_height, right - 1, bottom - 1), fill=colour)
    return img


@pytest.fixture
def make_source() -> Callable[..., SourceImage]:
    def factory(colour, size=(40, 60), name="card.png") -> SourceImage:
        return SourceImage.from_bytes(encode(Image.new("RGB", size, colour)), name)

    return factory
