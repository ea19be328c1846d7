# backend/bookingcore/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz


_BACKEND_ROOT = Path(__file__).resolve().parents[2]

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _BACKEND_ROOT / ".env"
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        description="Deployment environment name",
    )
    database_url: str = Field(
        default=f"sqlite:///{_BACKEND_ROOT / 'bookingcore.db'}",
        description="SQLAlchemy database URL",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis URL used for generation locks and the Celery broker",
    )
    log_level: str = Field(default="INFO", description="Root log level")

    # Session generation
    generation_horizon_days: int = Field(
        default=90,
        description="Days of future availability kept generated by the rolling window",
    )
    generation_chunk_size: int = Field(
        default=100,
        description="Rows written per bulk insert while generating sessions",
    )
    generation_lock_enabled: bool = Field(
        default=True,
        description="Serialize generation per activity with a Redis lock",
    )
    generation_lock_ttl_seconds: int = Field(default=300)
    rolling_window_cron_hour: int = Field(
        default=3,
        description="Hour (UTC) at which the daily rolling-window extension runs",
    )

    # Bookings
    booking_number_prefix: str = Field(default="BK")
    pending_payment_ttl_minutes: int = Field(
        default=30,
        description="Minutes a pending-payment booking holds capacity before it expires",
    )
    default_venue_timezone: str = Field(default="UTC")

    is_testing: bool = False  # Set to True when running tests

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        env_prefix="BOOKINGCORE_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(
        "generation_horizon_days",
        "generation_chunk_size",
        "generation_lock_ttl_seconds",
        "pending_payment_ttl_minutes",
    )
    @classmethod
    def _require_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("rolling_window_cron_hour")
    @classmethod
    def _validate_hour(cls, value: int) -> int:
        if not 0 <= value <= 23:
            raise ValueError("must be an hour between 0 and 23")
        return value

    @field_validator("default_venue_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        if value not in pytz.all_timezones_set:
            raise ValueError(f"unknown timezone: {value}")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value


settings = Settings()
