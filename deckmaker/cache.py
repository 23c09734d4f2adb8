"""Thread-safe LRU cache for full-resolution deck renders.

A full-scale render takes seconds, so the session keeps the latest ones keyed
by a fingerprint of their inputs and exports PNG and JPEG from the same
raster.  The module exposes factory and context-manager helpers so tests can
swap the cache without relying on import order.
"""

from __future__ import annotations

import hashlib
from collections import OrderedDict
from contextlib import contextmanager
from threading import RLock
from typing import Any, Callable, Iterator, Optional, Sequence, Tuple

from . import config


def render_key(image_ids: Sequence[str], *parts: Any) -> str:
    """Build a cache key from the image order and any settings values."""
    key_data = f"{list(image_ids)}:{[str(p) for p in parts]}"
    return hashlib.md5(key_data.encode()).hexdigest()


class RenderCache:
    """A simple thread-safe LRU cache."""

    def __init__(self, max_size: int = config.RENDER_CACHE_SIZE) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be greater than zero")
        self.max_size = max_size
        self._cache: "OrderedDict[str, Tuple[Any, dict]]" = OrderedDict()
        self._lock = RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def get(self, key: str) -> Tuple[Optional[Any], Optional[dict]]:
        """Retrieve *key* from the cache.

        Returns a tuple ``(value, metadata)`` or ``(None, None)`` if the key
        is absent.  A hit marks the entry as most recently used.
        """
        with self._lock:
            try:
                self._cache.move_to_end(key)
            except KeyError:
                return None, None
            return self._cache[key]

    def put(self, key: str, value: Any, metadata: Optional[dict] = None) -> None:
        """Insert *key*, evicting the least recently used entries past ``max_size``."""
        with self._lock:
            self._cache[key] = (value, metadata or {})
            self._cache.move_to_end(key)
            while len(self._cache) > self.max_size:
                self._cache.popitem(last=False)

    def discard(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        """Remove all cached entries."""
        with self._lock:
            self._cache.clear()


_cache_factory: Callable[[], RenderCache] = RenderCache
_cache_instance: Optional[RenderCache] = None
_cache_factory_lock = RLock()


def configure_cache(factory: Callable[[], RenderCache], *, reset: bool = True) -> None:
    """Configure the factory used to lazily supply the shared cache.

    Parameters
    ----------
    factory:
        A callable returning a fully configured :class:`RenderCache`.
    reset:
        When ``True`` (default) the current instance is discarded so the next
        :func:`get_cache` call yields a fresh one from ``factory``.
    """
    if not callable(factory):
        raise TypeError("factory must be callable")

    global _cache_factory, _cache_instance
    with _cache_factory_lock:
        _cache_factory = factory
        if reset:
            _cache_instance = None


def get_cache() -> RenderCache:
    """Return the lazily constructed shared cache."""
    global _cache_instance
    with _cache_factory_lock:
        if _cache_instance is None:
            _cache_instance = _cache_factory()
        return _cache_instance


@contextmanager
def override_cache(cache: RenderCache) -> Iterator[RenderCache]:
    """Temporarily replace the shared cache within a ``with`` block."""
    global _cache_factory, _cache_instance
    with _cache_factory_lock:
        previous = (_cache_factory, _cache_instance)
        _cache_factory = lambda: cache  # noqa: E731
        _cache_instance = cache
    try:
        yield cache
    finally:
        with _cache_factory_lock:
            _cache_factory, _cache_instance = previous


__all__ = [
    "RenderCache",
    "configure_cache",
    "get_cache",
    "override_cache",
    "render_key",
]
