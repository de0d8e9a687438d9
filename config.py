"""
config.py
Settings loaded from the environment (or a local .env file).
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration, read from PAYADMIN_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PAYADMIN_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Store
    backend: Literal["sqlite", "rest"] = "sqlite"
    sqlite_path: Path = Path(__file__).with_name("payments.db")
    rest_url: str = "http://localhost:54321"
    rest_api_key: str = ""
    http_timeout_seconds: float = 10.0

    # Operator login
    admin_username: str = "admin"
    admin_password_hash: str | None = None

    # UI
    page_title: str = "Membership Payments Admin"
    display_timezone: str = "UTC"
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
