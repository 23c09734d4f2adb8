"""Deck Maker: compose images into Tabletop Simulator deck sheets."""

__version__ = "1.0.0"
