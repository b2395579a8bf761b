"""
Application configuration using Pydantic Settings.

Centralizes all engine tunables with environment variable support.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings with environment variable support."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/microflash.db"
    database_echo: bool = False

    # Environment
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_to_file: bool = True

    # Sprint lifecycle
    resume_window_minutes: int = Field(default=30, ge=1)
    abandon_snooze_minutes: int = Field(default=120, ge=0)
    default_sprint_size: int = Field(default=5, ge=1)
    sprint_deep_link_prefix: str = "/sprint/"

    # Card snoozing
    default_snooze_minutes: int = Field(default=30, ge=1, le=1440)
    overflow_snooze_minutes: int = Field(default=120, ge=0)

    # Notification sweep
    notification_sweep_enabled: bool = True
    notification_sweep_interval_minutes: int = Field(default=15, ge=1)
    notification_sweep_first_delay_seconds: int = Field(default=60, ge=0)
    sweep_concurrency: int = Field(default=5, ge=1)

    # Expo push service
    expo_push_url: str = "https://exp.host/--/api/v2/push/send"
    expo_receipts_url: str = "https://exp.host/--/api/v2/push/getReceipts"
    expo_access_token: Optional[str] = None
    push_timeout_seconds: float = 10.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
