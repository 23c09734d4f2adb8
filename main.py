"""Entry point: renders a deck sheet from the command line via deckmaker.main."""

import sys

try:
    from deckmaker.main import main
except Exception as exc:
    # Provide a clear error if imports fail due to PYTHONPATH issues
    raise RuntimeError("Failed to import deckmaker. Ensure project root is on PYTHONPATH.") from exc


if __name__ == "__main__":
    sys.exit(main())
