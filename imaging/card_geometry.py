"""Fixed grid geometry of a Tabletop Simulator deck sheet.

The sheet is a 10x7 grid of equally sized cards.  Everything here is pure
arithmetic over the constants in :mod:`deckmaker.config` so it can be used by
the assembler, the tests and any front end without touching pixels.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Iterator, Tuple

from deckmaker import config


@dataclass(frozen=True, slots=True)
class GridGeometry:
    """Dimensions of the deck grid, in full-resolution pixels."""

    cols: int
    rows: int
    deck_width: int
    deck_height: int
    card_width: int
    card_height: int
    number_width: int
    number_height: int

    @property
    def slot_count(self) -> int:
        return self.cols * self.rows


@lru_cache(maxsize=1)
def get_card_dimensions() -> GridGeometry:
    """Return the fixed grid geometry.

    Raises:
        ValueError: If the configured sheet does not divide evenly into cells.
    """
    card_width, rem_w = divmod(config.DECK_WIDTH, config.COLS)
    card_height, rem_h = divmod(config.DECK_HEIGHT, config.ROWS)
    if rem_w or rem_h:
        raise ValueError(
            f"Deck {config.DECK_WIDTH}x{config.DECK_HEIGHT} does not divide "
            f"into a {config.COLS}x{config.ROWS} grid"
        )
    return GridGeometry(
        cols=config.COLS,
        rows=config.ROWS,
        deck_width=config.DECK_WIDTH,
        deck_height=config.DECK_HEIGHT,
        card_width=card_width,
        card_height=card_height,
        number_width=config.CARD_NUMBER_WIDTH,
        number_height=config.CARD_NUMBER_HEIGHT,
    )


def get_card_position(index: int) -> Tuple[int, int]:
    """Return the top-left pixel of card ``index`` on the full-size sheet.

    Callers are responsible for keeping ``index`` below the slot count.
    """
    if index < 0:
        raise ValueError(f"Card index must be non-negative, got {index}")
    dims = get_card_dimensions()
    return (index % dims.cols) * dims.card_width, (index // dims.cols) * dims.card_height


def get_card_box(index: int) -> Tuple[int, int, int, int]:
    """Return the ``(left, top, right, bottom)`` box of card ``index``."""
    dims = get_card_dimensions()
    x, y = get_card_position(index)
    return x, y, x + dims.card_width, y + dims.card_height


def iter_card_boxes() -> Iterator[Tuple[int, int, int, int]]:
    """Yield the box of every slot in the grid, row by row."""
    for index in range(get_card_dimensions().slot_count):
        yield get_card_box(index)


def scaled_deck_size(scale: float) -> Tuple[int, int]:
    dims = get_card_dimensions()
    return round(dims.deck_width * scale), round(dims.deck_height * scale)


def scaled_card_size(scale: float) -> Tuple[int, int]:
    dims = get_card_dimensions()
    return round(dims.card_width * scale), round(dims.card_height * scale)


def scaled_position(index: int, scale: float) -> Tuple[int, int]:
    """Return the position of card ``index`` on a sheet rendered at ``scale``."""
    x, y = get_card_position(index)
    return round(x * scale), round(y * scale)


def is_aspect_ratio_in_tolerance(
    card_width: float,
    card_height: float,
    image_width: float,
    image_height: float,
    tolerance: float,
) -> bool:
    """Check whether an image's aspect ratio is close enough to the card's.

    A tolerance of ``0`` accepts anything; ``1`` demands an exact match.  The
    bound is symmetric: both ratio-of-ratios must reach ``tolerance``.
    """
    if tolerance == 0:
        return True
    card_ar = card_width / card_height
    image_ar = image_width / image_height
    return card_ar / image_ar >= tolerance and image_ar / card_ar >= tolerance


__all__ = [
    "GridGeometry",
    "get_card_dimensions",
    "get_card_position",
    "get_card_box",
    "iter_card_boxes",
    "scaled_deck_size",
    "scaled_card_size",
    "scaled_position",
    "is_aspect_ratio_in_tolerance",
]
