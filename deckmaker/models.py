"""Data model shared by the assembler, the session and front ends."""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Union

from PIL import Image

from imaging.image_processor import ImageDecodeError, create_thumbnail, read_image_file

from . import config

logger = logging.getLogger("deckmaker.models")


class SourceImage:
    """An uploaded image: full-resolution data plus a preview thumbnail.

    The encoded payloads are the image's releasable handle.  :meth:`release`
    frees them exactly once; while a decode holds :meth:`pinned` the release
    is deferred until the last pin is dropped.
    """

    def __init__(self, data: bytes, name: str, *, thumbnail: Optional[bytes] = None, image_id: Optional[str] = None):
        self.id = image_id or uuid.uuid4().hex
        self.name = name
        self._data: Optional[bytes] = data
        self._thumbnail: Optional[bytes] = thumbnail if thumbnail is not None else create_thumbnail(data)
        self._lock = threading.Lock()
        self._pins = 0
        self._release_requested = False
        self._released = False

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "SourceImage":
        safe_path, data = read_image_file(path)
        return cls(data, safe_path.name)

    @classmethod
    def from_bytes(cls, data: bytes, name: str) -> "SourceImage":
        return cls(data, name)

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"SourceImage(id={self.id!r}, name={self.name!r}, {state})"

    @property
    def released(self) -> bool:
        return self._released

    def reference(self, scale: float) -> bytes:
        """Return the payload to decode for a render at ``scale``.

        Reduced-scale renders use the thumbnail; full-scale renders use the
        original data.
        """
        payload = self._thumbnail if scale < 1 else self._data
        if payload is None:
            raise ImageDecodeError(f"Image {self.name!r} has been released")
        return payload

    @contextmanager
    def pinned(self) -> Iterator["SourceImage"]:
        """Keep the payloads alive for the duration of a decode."""
        with self._lock:
            if self._released:
                raise ImageDecodeError(f"Image {self.name!r} has been released")
            self._pins += 1
        try:
            yield self
        finally:
            with self._lock:
                self._pins -= 1
                if self._pins == 0 and self._release_requested:
                    self._free()

    def release(self) -> bool:
        """Release the payloads. Returns ``False`` if already requested."""
        with self._lock:
            if self._release_requested:
                return False
            self._release_requested = True
            if self._pins == 0:
                self._free()
            return True

    def _free(self) -> None:
        self._data = None
        self._thumbnail = None
        self._released = True
        logger.debug("Released image %s (%s)", self.id, self.name)


@dataclass(frozen=True)
class DeckSettings:
    """User configurable deck options."""

    deck_size: int = config.DEFAULT_DECK_SIZE
    aspect_ratio_tolerance: float = config.DEFAULT_ASPECT_RATIO_TOLERANCE
    hidden_card_image: Optional[SourceImage] = None
    jpeg_quality: float = config.DEFAULT_JPEG_QUALITY

    def __post_init__(self) -> None:
        if not config.MIN_DECK_SIZE <= self.deck_size <= config.MAX_DECK_SIZE:
            raise ValueError(
                f"deck_size must be between {config.MIN_DECK_SIZE} and "
                f"{config.MAX_DECK_SIZE}, got {self.deck_size}"
            )
        if not 0 <= self.aspect_ratio_tolerance <= 1:
            raise ValueError("aspect_ratio_tolerance must be between 0 and 1")
        if not 0 <= self.jpeg_quality <= 1:
            raise ValueError("jpeg_quality must be between 0 and 1")


class GenerationStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class GenerationProgress:
    current: int
    total: int
    status: GenerationStatus
    message: Optional[str] = None


ProgressCallback = Callable[[GenerationProgress], None]


@dataclass
class DeckResult:
    """Output of one assembler run.

    ``card_previews[i]`` is the first composited card of image ``i``; it is
    only filled by full-scale renders.
    """

    image: Image.Image
    scale: float
    card_previews: List[Image.Image] = field(default_factory=list)
    out_of_tolerance: List[str] = field(default_factory=list)


__all__ = [
    "SourceImage",
    "DeckSettings",
    "GenerationStatus",
    "GenerationProgress",
    "ProgressCallback",
    "DeckResult",
]
