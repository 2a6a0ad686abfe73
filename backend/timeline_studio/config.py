"""
Configuration settings using Pydantic Settings.
"""

from pathlib import Path
from pydantic import model_validator
from pydantic_settings import BaseSettings
from functools import lru_cache

BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    DATABASE_PATH: str = "database/timelines.db"
    MEDIA_ROOT: str = "media"
    MEDIA_BASE_URL: str = "/media"

    MAX_TIMELINES_PER_USER: int = 10
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024
    PUBLIC_LIST_DEFAULT: int = 10
    PUBLIC_LIST_MAX: int = 100

    CLEANUP_MAX_ATTEMPTS: int = 5
    ADMIN_USER_IDS: list[str] = []

    BACKGROUND_MAX_WIDTH: int = 1920
    BACKGROUND_MAX_HEIGHT: int = 1080
    BACKGROUND_JPEG_QUALITY: int = 80

    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]

    DEBUG: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }

    @model_validator(mode="after")
    def resolve_relative_paths(self):
        db_path = Path(self.DATABASE_PATH)
        if not db_path.is_absolute():
            self.DATABASE_PATH = str((BASE_DIR / db_path).resolve())

        media_root = Path(self.MEDIA_ROOT)
        if not media_root.is_absolute():
            self.MEDIA_ROOT = str((BASE_DIR / media_root).resolve())

        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    :return: Cached Settings instance
    :rtype: Settings
    """
    return Settings()


settings = get_settings()
