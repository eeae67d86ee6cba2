import logging
from typing import Optional

from comicstats.config import settings

# Create a logger for the app
logger = logging.getLogger("comicstats")
logger.setLevel(getattr(logging, settings.LOG_LEVEL, logging.INFO))

# Console handler with a simple format
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s %(name)s %(message)s"))
    logger.addHandler(console_handler)


def log_event(event: str, *, comic_id: Optional[str] = None, guest_id: Optional[str] = None, level: int = logging.INFO, **extra) -> None:
    parts = [f"event={event}"]
    if comic_id:
        parts.append(f"comic_id={comic_id}")
    if guest_id:
        parts.append(f"guest_id={guest_id}")
    for k, v in (extra or {}).items():
        parts.append(f"{k}={v}")
    logger.log(level, " ".join(parts))
