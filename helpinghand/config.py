"""
Configuration and settings for the household service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings, read from HELPINGHAND_* variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HELPINGHAND_",
        extra="ignore",
    )

    api_prefix: str = Field(default="/api")

    # Local store (any SQLAlchemy URL, SQLite by default)
    database_url: str = Field(default="sqlite+pysqlite:///helping_hand.db")

    # Firebase (Firestore + Identity Toolkit)
    firebase_credentials_path: Optional[str] = Field(default=None)
    firebase_project_id: Optional[str] = Field(default=None)
    firebase_web_api_key: Optional[str] = Field(default=None)

    # Recipe lookup
    spoonacular_api_key: str = Field(default="")
    spoonacular_base_url: str = Field(default="https://api.spoonacular.com")

    # Daily reminder job
    reminder_interval_seconds: int = Field(default=24 * 60 * 60, gt=0)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    log_level: str = Field(
        default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$"
    )

    @property
    def firebase_configured(self) -> bool:
        return bool(self.firebase_project_id or self.firebase_credentials_path)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
