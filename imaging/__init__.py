"""Raster helpers for deck maker."""

from . import card_geometry, export, image_operations, image_processor

__all__ = ["card_geometry", "export", "image_operations", "image_processor"]
