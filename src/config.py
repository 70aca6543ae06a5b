"""
LifeOS Reminders — Centralized configuration.

Loads all settings from .env and validates them.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # SQLite
    DATABASE_PATH: str = "data/lifeos.db"

    # Fallback for preference rows with an empty timezone
    DEFAULT_TIMEZONE: str = "UTC"

    # Per-user work inside a job run
    JOB_CONCURRENCY: int = 1        # 1 → strictly sequential
    USER_TIMEOUT_SECONDS: float = 30.0

    # Telegram channel (optional, log-only without a token)
    TELEGRAM_BOT_TOKEN: str = ""

    # Email channel via Resend (optional, log-only without a key)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "LifeOS Assistant <assistant@lifeos.local>"

    # HTTP server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    @field_validator("DEFAULT_TIMEZONE")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {v!r}") from exc
        return v

    @field_validator("JOB_CONCURRENCY", mode="before")
    @classmethod
    def parse_concurrency(cls, v: str | int) -> int:
        value = int(v)
        if value < 1:
            raise ValueError("JOB_CONCURRENCY must be at least 1")
        return value

    @field_validator("USER_TIMEOUT_SECONDS", mode="before")
    @classmethod
    def parse_timeout(cls, v: str | float) -> float:
        return float(v)


def _load_settings() -> Settings:
    """Load settings from environment, exiting on invalid values."""
    try:
        return Settings(
            DATABASE_PATH=os.getenv("DATABASE_PATH", "data/lifeos.db"),
            DEFAULT_TIMEZONE=os.getenv("DEFAULT_TIMEZONE", "UTC"),
            JOB_CONCURRENCY=os.getenv("JOB_CONCURRENCY", "1"),
            USER_TIMEOUT_SECONDS=os.getenv("USER_TIMEOUT_SECONDS", "30"),
            TELEGRAM_BOT_TOKEN=os.getenv("TELEGRAM_BOT_TOKEN", ""),
            RESEND_API_KEY=os.getenv("RESEND_API_KEY", ""),
            EMAIL_FROM=os.getenv(
                "EMAIL_FROM", "LifeOS Assistant <assistant@lifeos.local>"
            ),
            HOST=os.getenv("HOST", "0.0.0.0"),
            PORT=os.getenv("PORT", "8000"),
        )
    except ValueError as exc:
        print(f"ERROR: invalid configuration in .env: {exc}", file=sys.stderr)
        sys.exit(1)


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
