"""
WakeQuest — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # Security: only these chats may talk to the bot; alarms ring in all of them
    ALLOWED_USER_IDS: list[int] = []

    # SQLite
    DATABASE_PATH: str = "data/wakequest.db"

    # Local wall clock used for alarm times and streak days
    TIMEZONE: str = "UTC"

    # Ringer
    RING_INTERVAL_SECONDS: int = 20
    RING_MAX_REPEATS: int = 30

    # Defaults for /addalarm
    DEFAULT_SNOOZE_MINUTES: int = 5
    DEFAULT_SNOOZE_MAX: int = 3

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator(
        "RING_INTERVAL_SECONDS",
        "RING_MAX_REPEATS",
        "DEFAULT_SNOOZE_MINUTES",
        "DEFAULT_SNOOZE_MAX",
        mode="before",
    )
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/wakequest.db"),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
        RING_INTERVAL_SECONDS=os.getenv("RING_INTERVAL_SECONDS", "20"),
        RING_MAX_REPEATS=os.getenv("RING_MAX_REPEATS", "30"),
        DEFAULT_SNOOZE_MINUTES=os.getenv("DEFAULT_SNOOZE_MINUTES", "5"),
        DEFAULT_SNOOZE_MAX=os.getenv("DEFAULT_SNOOZE_MAX", "3"),
    )


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
