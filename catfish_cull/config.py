import os
import logging
import secrets

# ============================================================================
# Configuration
# ============================================================================

DATABASE_PATH = os.environ.get("DATABASE_PATH", os.path.join(os.getcwd(), "catfish.db"))
JWT_SECRET = os.environ.get("JWT_SECRET", secrets.token_hex(32))
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_HOURS = int(os.environ.get("JWT_EXPIRE_HOURS", "24"))
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin123")

EVENT_NAME = os.environ.get("EVENT_NAME", "Rosemergy Catfish Cull 2026")
PROTEST_DEADLINE = os.environ.get("PROTEST_DEADLINE", "5:00 PM")
PRIZEGIVING_TIME = os.environ.get("PRIZEGIVING_TIME", "6:30 PM")

# Timer cadences (milliseconds)
REFRESH_INTERVAL_MS = int(os.environ.get("REFRESH_INTERVAL_MS", "5000"))
LEADERBOARD_REFRESH_MS = int(os.environ.get("LEADERBOARD_REFRESH_MS", "10000"))
SECTION_DWELL_MS = int(os.environ.get("SECTION_DWELL_MS", "8000"))
PROGRESS_TICK_MS = int(os.environ.get("PROGRESS_TICK_MS", "100"))

# Check-in display geometry (pixels)
CARD_HEIGHT_PX = int(os.environ.get("CARD_HEIGHT_PX", "132"))
CHROME_OVERHEAD_PX = int(os.environ.get("CHROME_OVERHEAD_PX", "360"))
DEFAULT_VIEWPORT_WIDTH = int(os.environ.get("DEFAULT_VIEWPORT_WIDTH", "1920"))
DEFAULT_VIEWPORT_HEIGHT = int(os.environ.get("DEFAULT_VIEWPORT_HEIGHT", "1080"))
# (min width, columns), widest first
COLUMN_BREAKPOINTS = [(1024, 5), (768, 4), (640, 3), (0, 2)]

LATEST_ENTRIES_LIMIT = 3

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def configure_logging(level: str = LOG_LEVEL):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
