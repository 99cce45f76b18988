"""Environment configuration shared by the API and the dashboard.

Values come from environment variables or the project-level .env file:
    SUPABASE_URL, SUPABASE_ANON_KEY, LOG_LEVEL
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent.parent

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseSettings):
    supabase_url: str = ""
    supabase_anon_key: str = ""
    log_level: str = "INFO"

    model_config = {
        "env_file": BASE_DIR / ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def rest_url(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/rest/v1"

    @property
    def is_backend_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Install the root handler once; later calls only adjust the level."""
    level_name = (level or get_settings().log_level).upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=_LOG_FORMAT)
    root.setLevel(getattr(logging, level_name, logging.INFO))
