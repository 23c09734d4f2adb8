"""Session controller for deck state management.

:class:`DeckSessionController` owns the image list and the settings of one
editing session, runs the assembler for previews and exports, and keeps the
bookkeeping that front ends should not have to care about:

* every preview run carries a request token; a run whose token has been
  superseded (by a newer run or by an edit) is discarded silently,
* a failed run leaves the previous preview in place,
* full-resolution renders are cached until images or settings change,
* each :class:`~deckmaker.models.SourceImage` is released exactly once, when
  it leaves the session.

It is UI agnostic so it can be driven from Qt workers, the CLI or tests.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import uuid
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from imaging import export
from imaging.image_processor import ImageProcessingError

from .. import config
from ..assembler import TemplateSource, generate_deck
from ..cache import RenderCache, get_cache, render_key
from ..models import (
    DeckResult,
    DeckSettings,
    GenerationProgress,
    GenerationStatus,
    ProgressCallback,
    SourceImage,
)

logger = logging.getLogger("deckmaker.session")

IDLE_PROGRESS = GenerationProgress(current=0, total=0, status=GenerationStatus.IDLE)


class DeckSessionController:
    """Manage the images, settings and renders of a deck editing session."""

    def __init__(
        self,
        template_source: TemplateSource = config.TEMPLATE_PATH,
        *,
        settings: Optional[DeckSettings] = None,
        on_progress: Optional[ProgressCallback] = None,
        cache: Optional[RenderCache] = None,
        preview_scale: float = config.PREVIEW_SCALE,
    ) -> None:
        if not 0 < preview_scale <= 1:
            raise ValueError("preview_scale must be in (0, 1]")
        self._template_source = template_source
        self._session_id = uuid.uuid4().hex
        self._settings = settings or DeckSettings()
        self._on_progress = on_progress
        self._cache = cache or get_cache()
        self._preview_scale = preview_scale
        self._images: List[SourceImage] = []
        self._lock = threading.RLock()
        self._latest_token = 0
        self._revision = 0
        self._preview: Optional[DeckResult] = None
        self._progress = IDLE_PROGRESS
        self._closed = False

    # -- state --------------------------------------------------------------

    @property
    def images(self) -> Tuple[SourceImage, ...]:
        with self._lock:
            return tuple(self._images)

    @property
    def settings(self) -> DeckSettings:
        return self._settings

    @property
    def preview(self) -> Optional[DeckResult]:
        """The most recent successful preview render, if any."""
        return self._preview

    @property
    def progress(self) -> GenerationProgress:
        return self._progress

    def _set_progress(self, progress: GenerationProgress) -> None:
        self._progress = progress
        if self._on_progress is not None:
            self._on_progress(progress)

    def _cache_key(self) -> str:
        hidden = self._settings.hidden_card_image
        return render_key(
            [image.id for image in self._images],
            self._session_id,
            self._settings.deck_size,
            self._settings.aspect_ratio_tolerance,
            hidden.id if hidden is not None else None,
        )

    def _invalidate(self) -> None:
        """Drop cached renders and supersede runs that are still in flight."""
        self._cache.discard(self._cache_key())
        self._revision += 1
        self._latest_token += 1

    def _release_if_unreferenced(self, image: SourceImage) -> None:
        """Release ``image`` unless the list or the hidden slot still holds it."""
        with self._lock:
            hidden = self._settings.hidden_card_image
            if hidden is not None and hidden.id == image.id:
                return
            if any(held.id == image.id for held in self._images):
                return
            image.release()

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Session has been closed")

    # -- images ----------------------------------------------------------------

    def add_images(self, images: Iterable[SourceImage]) -> None:
        """Append ``images`` to the end of the list."""
        with self._lock:
            self._check_open()
            new_images = list(images)
            known = {image.id for image in self._images}
            for image in new_images:
                if image.id in known:
                    raise ValueError(f"Duplicate image id: {image.id}")
                known.add(image.id)
            self._invalidate()
            self._images.extend(new_images)

    def add_files(self, paths: Iterable[Union[str, Path]]) -> List[SourceImage]:
        """Load image files into the session, skipping the ones that fail."""
        loaded: List[SourceImage] = []
        for path in paths:
            try:
                loaded.append(SourceImage.from_path(path))
            except (ValueError, ImageProcessingError) as exc:
                logger.warning("Skipping invalid image %s: %s", path, exc)
        if loaded:
            self.add_images(loaded)
        return loaded

    def remove_image(self, image_id: str) -> SourceImage:
        """Remove an image from the list, releasing it unless it is the hidden card."""
        with self._lock:
            for index, image in enumerate(self._images):
                if image.id == image_id:
                    break
            else:
                raise KeyError(image_id)
            self._invalidate()
            del self._images[index]
            self._release_if_unreferenced(image)
        return image

    def reorder_images(self, image_ids: Sequence[str]) -> None:
        """Reorder the list to follow ``image_ids``, a permutation of the current ids."""
        with self._lock:
            by_id = {image.id: image for image in self._images}
            if len(image_ids) != len(by_id) or set(image_ids) != set(by_id):
                raise ValueError("image_ids must be a permutation of the current images")
            self._invalidate()
            self._images = [by_id[image_id] for image_id in image_ids]

    # -- settings -----------------------------------------------------------

    def update_settings(self, settings: DeckSettings) -> None:
        """Replace the settings, releasing a hidden card that was swapped out."""
        with self._lock:
            self._check_open()
            previous = self._settings
            previous_hidden = previous.hidden_card_image
            # JPEG quality only affects encoding, the rendered raster stays valid
            if dataclasses.replace(previous, jpeg_quality=settings.jpeg_quality) != settings:
                self._invalidate()
            self._settings = settings
            if previous_hidden is not None:
                self._release_if_unreferenced(previous_hidden)

    def set_hidden_card(self, image: Optional[SourceImage]) -> None:
        self.update_settings(dataclasses.replace(self._settings, hidden_card_image=image))

    # -- rendering ------------------------------------------------------------

    def begin_request(self) -> int:
        """Issue a token for a new run, superseding all earlier ones."""
        with self._lock:
            self._latest_token += 1
            return self._latest_token

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._latest_token

    def regenerate_preview(
        self, token: Optional[int] = None, on_progress: Optional[ProgressCallback] = None
    ) -> Optional[DeckResult]:
        """Render a reduced-scale preview.

        ``on_progress`` receives this run's progress records alongside the
        session's own sink, for as long as ``token`` is current.

        Returns the new preview, or ``None`` when the run failed or was
        superseded; in both cases the previous preview stays in place.
        """
        with self._lock:
            self._check_open()
            if token is None:
                token = self.begin_request()
            images = tuple(self._images)
            settings = self._settings

        def forward(progress: GenerationProgress) -> None:
            if self.is_current(token):
                self._set_progress(progress)
                if on_progress is not None:
                    on_progress(progress)

        if not images:
            if self.is_current(token):
                self._preview = None
                forward(IDLE_PROGRESS)
            return None

        try:
            result = generate_deck(
                self._template_source, images, settings, forward, scale=self._preview_scale
            )
        except ImageProcessingError as exc:
            logger.error("Preview generation failed: %s", exc)
            return None

        with self._lock:
            if token != self._latest_token:
                logger.debug("Discarding superseded preview (token %d)", token)
                return None
            self._preview = result
        return result

    def render_full(self) -> DeckResult:
        """Return the full-resolution deck, rendering it only when inputs changed."""
        with self._lock:
            self._check_open()
            key = self._cache_key()
            revision = self._revision
            images = tuple(self._images)
            settings = self._settings

        cached, _ = self._cache.get(key)
        if cached is not None:
            logger.info("Reusing cached full-resolution deck")
            return cached

        result = generate_deck(self._template_source, images, settings, self._set_progress, scale=1.0)
        with self._lock:
            if revision == self._revision:
                self._cache.put(key, result, {"images": len(images)})
        return result

    # -- export -------------------------------------------------------------

    def download_png(self, directory: Union[str, Path] = ".", filename: str = config.PNG_FILENAME) -> Path:
        result = self.render_full()
        return export.trigger_download(export.to_png_bytes(result.image), filename, directory)

    def download_jpeg(self, directory: Union[str, Path] = ".", filename: str = config.JPEG_FILENAME) -> Path:
        result = self.render_full()
        data = export.to_jpeg_bytes(result.image, self._settings.jpeg_quality)
        return export.trigger_download(data, filename, directory)

    def close(self) -> None:
        """Release every image held by the session."""
        with self._lock:
            if self._closed:
                return
            self._invalidate()
            self._closed = True
            images, self._images = self._images, []
            hidden = self._settings.hidden_card_image
            self._preview = None
        for image in images:
            image.release()
        if hidden is not None:
            hidden.release()
