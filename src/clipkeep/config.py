import os
from pathlib import Path

DATA_DIR = Path(os.environ.get("CLIPKEEP_DATA_DIR", Path.home() / ".local" / "share" / "clipkeep"))
DB_PATH = DATA_DIR / "clipkeep.db"
IMAGE_DIR = DATA_DIR / "images"
LOG_PATH = DATA_DIR / "clipkeep.log"

POLL_INTERVAL = 0.5  # seconds between clipboard checks
MAX_TEXT_SIZE = 1024 * 1024  # 1 MiB text limit
MAX_IMAGE_SIZE = 10_000_000  # 10MB image limit
PREVIEW_LENGTH = 200  # characters kept in an entry preview
PREVIEW_MAX_LINES = 5
MIN_IMAGE_DIMENSION = 16  # smaller images are UI chrome, not content
THUMBNAIL_SIZE = (32, 32)  # pixels, for menu icon display
MENU_TITLE_LENGTH = 60  # characters shown in menu item

URL_TITLE_TIMEOUT = 5  # seconds
URL_TITLE_MAX_BYTES = 32768
URL_TITLE_MAX_LENGTH = 100

FRICTION_WINDOW = 30.0  # seconds
FRICTION_SAME_ITEM_THRESHOLD = 3
FRICTION_MULTI_ITEM_THRESHOLD = 5
FRICTION_COOLDOWN = 24 * 3600.0
FRICTION_MAX_GUIDE_SHOWS = 3


def _parse_int(name: str, default: int, minimum: int, maximum: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


def _parse_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


FREE_HISTORY_LIMIT = _parse_int("CLIPKEEP_FREE_LIMIT", 9, 1, 1000)
PRO_HISTORY_LIMIT = _parse_int("CLIPKEEP_PRO_LIMIT", 100, 1, 10000)
MENU_DISPLAY_COUNT = _parse_int("CLIPKEEP_MENU_DISPLAY_COUNT", 10, 5, 50)
IS_PRO = _parse_bool("CLIPKEEP_PRO")
