"""Controller layer for decoupling UI state management from widgets."""

from .session import DeckSessionController, IDLE_PROGRESS

__all__ = ["DeckSessionController", "IDLE_PROGRESS"]
