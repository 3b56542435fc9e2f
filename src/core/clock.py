"""Local wall clock for the orchestration layer.

Pure calculators never call this; they take the reference instant as an
argument.
"""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo


def local_now() -> datetime:
    """Current time in the configured TIMEZONE."""
    from src.config import settings

    return datetime.now(ZoneInfo(settings.TIMEZONE))
