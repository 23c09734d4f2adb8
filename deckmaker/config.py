# config.py
"""
Application configuration constants for Deck Maker
"""

# Tabletop Simulator deck grid
COLS = 10
ROWS = 7
DECK_WIDTH = 4080
DECK_HEIGHT = 4032
CARD_NUMBER_WIDTH = 58    # Corner marker width kept from the template
CARD_NUMBER_HEIGHT = 150  # Corner marker height kept from the template

# Slot 69 is the last cell of the grid and holds the hidden/back card
HIDDEN_CARD_INDEX = COLS * ROWS - 1

# Deck settings defaults
DEFAULT_DECK_SIZE = 52
MIN_DECK_SIZE = 1
MAX_DECK_SIZE = HIDDEN_CARD_INDEX
DEFAULT_ASPECT_RATIO_TOLERANCE = 0.0
DEFAULT_JPEG_QUALITY = 0.92

# Preview rendering
PREVIEW_SCALE = 0.25
PREVIEW_DEBOUNCE_MS = 300

# Thumbnails used as the decode source of preview renders
THUMBNAIL_MAX_WIDTH = 200
THUMBNAIL_MAX_HEIGHT = 280
THUMBNAIL_QUALITY = 0.8

# Supported image formats
SUPPORTED_IMAGE_FORMATS = ['png', 'jpg', 'jpeg', 'webp']

# Template and output files
TEMPLATE_PATH = "assets/card_template.png"
PNG_FILENAME = "card_deck.png"
JPEG_FILENAME = "card_deck.jpg"

# Encoder quality bounds (Pillow scale)
QUALITY_MIN = 1
QUALITY_MAX = 100

# Full-resolution render cache
RENDER_CACHE_SIZE = 2

# Log file
LOG_FILENAME = "deck_maker.log"
LOG_MAX_BYTES = 1_048_576
LOG_BACKUP_COUNT = 5
