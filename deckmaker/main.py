# main.py
"""
Command line entry point for Deck Maker.
"""
import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Sequence

from imaging import export
from imaging.image_processor import ImageProcessingError

from . import config
from .controllers import DeckSessionController
from .models import DeckSettings, GenerationProgress, GenerationStatus, SourceImage

LOGGER_NAME = "deckmaker"


def configure_logging(log_path: Optional[Path] = None) -> logging.Logger:
    """Configure and return the application logger.

    The handler setup is idempotent to avoid duplicate handlers when the module
    is imported multiple times (e.g., in tests). A rotating file handler limits
    on-disk log growth while mirroring output to stdout.
    """

    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
    )

    log_path = log_path or Path.cwd() / config.LOG_FILENAME
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=config.LOG_MAX_BYTES,
        backupCount=config.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(stream_handler)
    logger.propagate = False

    return logger


def global_exception_handler(exc_type, value, tb):
    logging.getLogger(LOGGER_NAME).error("Uncaught exception", exc_info=(exc_type, value, tb))
    sys.__excepthook__(exc_type, value, tb)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deck-maker",
        description="Compose images into a 10x7 Tabletop Simulator deck sheet.",
    )
    parser.add_argument("images", nargs="+", help="card face images, in slot order")
    parser.add_argument("--template", default=config.TEMPLATE_PATH, help="numbered 4080x4032 template")
    parser.add_argument("--deck-size", type=int, default=config.DEFAULT_DECK_SIZE,
                        help=f"number of cards ({config.MIN_DECK_SIZE}-{config.MAX_DECK_SIZE})")
    parser.add_argument("--tolerance", type=float, default=config.DEFAULT_ASPECT_RATIO_TOLERANCE,
                        help="aspect ratio tolerance, 0 (any) to 1 (exact); reported only")
    parser.add_argument("--hidden", help="hidden/back card image placed in the last slot")
    parser.add_argument("--format", choices=("png", "jpeg", "both"), default="png")
    parser.add_argument("--quality", type=float, default=config.DEFAULT_JPEG_QUALITY,
                        help="JPEG quality between 0 and 1")
    parser.add_argument("--output-dir", default=".", help="directory for card_deck.png/.jpg")
    parser.add_argument("--preview", action="store_true",
                        help="also write a reduced-scale preview_deck.png")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = configure_logging()
    sys.excepthook = global_exception_handler

    def log_progress(progress: GenerationProgress) -> None:
        if progress.status is not GenerationStatus.GENERATING:
            logger.info("%s: %s", progress.status.value, progress.message or "")

    hidden = None
    try:
        if args.hidden:
            hidden = SourceImage.from_path(args.hidden)
        settings = DeckSettings(
            deck_size=args.deck_size,
            aspect_ratio_tolerance=args.tolerance,
            hidden_card_image=hidden,
            jpeg_quality=args.quality,
        )
    except (ValueError, ImageProcessingError) as exc:
        logger.error("Invalid settings: %s", exc)
        if hidden is not None:
            hidden.release()
        return 2

    session = DeckSessionController(args.template, settings=settings, on_progress=log_progress)
    try:
        if not session.add_files(args.images):
            logger.error("No usable images were given")
            return 2
        if args.preview:
            preview = session.regenerate_preview()
            if preview is not None:
                export.trigger_download(export.to_png_bytes(preview.image), "preview_deck.png", args.output_dir)
        if args.format in ("png", "both"):
            session.download_png(args.output_dir)
        if args.format in ("jpeg", "both"):
            session.download_jpeg(args.output_dir)
    except (ValueError, ImageProcessingError) as exc:
        logger.error("Deck export failed: %s", exc)
        return 1
    finally:
        session.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
