"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides temp-file stores, a fixed clock and an in-memory trigger
provider.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "UTC")

from datetime import datetime

import pytest


class FixedClock:
    """Callable clock whose time tests can move."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeTriggers:
    """In-memory TriggerPort that records every call."""

    def __init__(self) -> None:
        self.live: dict[str, tuple[str, datetime]] = {}
        self.installed: list[str] = []
        self.cancelled: list[str] = []
        self._counter = 0

    async def install_trigger(self, at, alarm_id):
        self._counter += 1
        handle = f"h{self._counter}"
        self.live[handle] = (alarm_id, at)
        self.installed.append(handle)
        return handle

    async def cancel_trigger(self, handle):
        self.live.pop(handle, None)
        self.cancelled.append(handle)

    async def list_triggers(self):
        return {handle: alarm_id for handle, (alarm_id, _) in self.live.items()}

    def fire(self, handle):
        """Simulate the provider consuming a trigger."""
        return self.live.pop(handle)

    def live_for(self, alarm_id):
        return [h for h, (a, _) in self.live.items() if a == alarm_id]


# Monday 2026-10-19 08:00
MONDAY_8AM = datetime(2026, 10, 19, 8, 0)


@pytest.fixture
def clock():
    return FixedClock(MONDAY_8AM)


@pytest.fixture
def triggers():
    return FakeTriggers()


@pytest.fixture
def alarm_db(tmp_path):
    """Return an AlarmDB instance backed by a temp file."""
    from src.data.db import AlarmDB
    return AlarmDB(db_path=str(tmp_path / "test_wakequest.db"))


@pytest.fixture
def player_db(tmp_path):
    """Return a PlayerDB instance backed by a temp file."""
    from src.data.db import PlayerDB
    return PlayerDB(db_path=str(tmp_path / "test_wakequest.db"))


@pytest.fixture
def schedule_db(tmp_path):
    """Return a ScheduleMapDB instance backed by a temp file."""
    from src.data.db import ScheduleMapDB
    return ScheduleMapDB(db_path=str(tmp_path / "test_wakequest.db"))


@pytest.fixture
def reconciler(alarm_db, schedule_db, triggers, clock):
    from src.core.reconciler import ScheduleReconciler
    return ScheduleReconciler(alarm_db, schedule_db, triggers, clock=clock)


def make_alarm(**overrides):
    """Alarm with predictable id and defaults, overridable per test."""
    from src.data.models import Alarm

    fields = {"id": "alarm1", "time_hhmm": "07:00"}
    fields.update(overrides)
    return Alarm(**fields)
