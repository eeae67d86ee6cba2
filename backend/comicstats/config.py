# ==================================================
# comicrank-stats Configuration
# Centralized settings for the store, the view queue and the button server
# ==================================================

from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from typing import Optional

BACKEND_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """
    Centralized configuration for the stats service.
    Loads from environment variables or a `.env` file.
    """

    # ==================================================
    # ⚡ Redis (view records / aggregates)
    # ==================================================
    # REDIS_URL wins over host/port when set (e.g., redis://:pass@host:6379/0)
    REDIS_URL: Optional[str] = None
    REDIS_HOST: str = "127.0.0.1"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DIAL_TIMEOUT: float = 2.0
    # Flush to disk once every 15 minutes regardless of writes; empty disables
    REDIS_SAVE_POLICY: str = "900 1"

    # ==================================================
    # 📥 View ingestion queue
    # ==================================================
    VIEW_QUEUE_SIZE: int = 1024
    VIEW_MAX_ATTEMPTS: int = 8  # 0 = retry forever
    VIEW_BACKOFF_BASE: float = 0.5
    VIEW_BACKOFF_MAX: float = 30.0
    VIEW_DEAD_LETTER_SIZE: int = 1000

    # ==================================================
    # 🔘 Button server
    # ==================================================
    GUEST_COOKIE_NAME: str = "c2i"
    GUEST_COOKIE_DAYS: int = 365
    BUTTON_ASSET_DIR: str = str(BACKEND_DIR / "res")
    BUTTON_BASE_URL: str = "http://stats.comicrank.com"
    SITE_URL: str = "http://www.comicrank.com"

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=str(BACKEND_DIR / ".env"),
        env_prefix="",
        extra="ignore"
    )

    def model_post_init(self, __context) -> None:
        """Normalize values that are commonly given loosely in the environment."""
        object.__setattr__(self, "LOG_LEVEL", (self.LOG_LEVEL or "INFO").upper())
        object.__setattr__(self, "BUTTON_BASE_URL", self.BUTTON_BASE_URL.rstrip("/"))
        object.__setattr__(self, "SITE_URL", self.SITE_URL.rstrip("/"))
        if self.VIEW_QUEUE_SIZE < 1:
            object.__setattr__(self, "VIEW_QUEUE_SIZE", 1)


# ==================================================
# 🌍 Global Settings Instance
# ==================================================
settings = Settings()
