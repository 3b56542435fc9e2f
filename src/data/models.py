"""
WakeQuest — Data Models.

Alarms are the user-defined wake-up definitions; the Player is the single
progression record advanced every time an alarm is dismissed by solving its
math mission. Problems are ephemeral and never persisted.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from enum import Enum

DIFFICULTIES = ("easy", "medium", "hard")

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


class AlarmValidationError(ValueError):
    """Raised when an alarm definition breaks a field constraint."""


class AlarmNotFoundError(LookupError):
    """Raised when an edit-style operation targets an unknown alarm id."""


@dataclass
class Alarm:
    """A wake-up alarm.

    `repeat_days` uses 0=Sunday .. 6=Saturday; an empty list is a one-off.
    `snooze_count` is owned by the reconciler and reset on every new base
    occurrence.
    """

    id: str
    time_hhmm: str                    # "HH:MM", local wall clock
    label: str = ""
    enabled: bool = True
    repeat_days: list[int] = field(default_factory=list)
    sound_id: str = "classic"
    volume: float = 1.0
    snooze_enabled: bool = True
    snooze_minutes: int = 5
    snooze_max: int = 3
    snooze_count: int = 0
    difficulty: str = "easy"

    @property
    def is_repeating(self) -> bool:
        return bool(self.repeat_days)


@dataclass
class Player:
    """Process-wide progression state."""

    level: int = 1
    xp: int = 0
    xp_to_next: int = 150
    coins: int = 0
    streak_days: int = 0
    last_success_date: str | None = None   # ISO date YYYY-MM-DD, local
    total_wakes: int = 0


def default_player() -> Player:
    """Zero-valued player used when nothing has been persisted yet."""
    return Player()


class Operator(Enum):
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"


@dataclass
class Problem:
    """One arithmetic question of a math mission."""

    a: int
    b: int
    op: Operator
    answer: int

    @property
    def text(self) -> str:
        symbol = "×" if self.op is Operator.MULTIPLY else self.op.value
        return f"{self.a} {symbol} {self.b} = ?"


def new_alarm(
    time_hhmm: str,
    label: str = "",
    repeat_days: list[int] | None = None,
    difficulty: str = "easy",
    snooze_minutes: int = 5,
    snooze_max: int = 3,
) -> Alarm:
    """Build a fresh alarm with a generated id."""
    return Alarm(
        id=uuid.uuid4().hex[:8],
        time_hhmm=time_hhmm,
        label=label,
        repeat_days=sorted(repeat_days or []),
        difficulty=difficulty,
        snooze_minutes=snooze_minutes,
        snooze_max=snooze_max,
    )


def validate_alarm(alarm: Alarm) -> None:
    """Check every field constraint of an alarm.

    Raises AlarmValidationError describing the first violation found.
    """
    match = _TIME_RE.match(alarm.time_hhmm or "")
    if match is None:
        raise AlarmValidationError(f"Time must be HH:MM, got {alarm.time_hhmm!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise AlarmValidationError(f"Hour/minute out of range: {alarm.time_hhmm}")

    if len(set(alarm.repeat_days)) != len(alarm.repeat_days):
        raise AlarmValidationError(f"Duplicate weekday in {alarm.repeat_days}")
    for day in alarm.repeat_days:
        if not isinstance(day, int) or not 0 <= day <= 6:
            raise AlarmValidationError(f"Weekday out of range 0..6: {day!r}")

    if not 0.0 <= alarm.volume <= 1.0:
        raise AlarmValidationError(f"Volume must be within 0..1, got {alarm.volume}")
    if alarm.snooze_minutes <= 0:
        raise AlarmValidationError("Snooze minutes must be positive")
    if alarm.snooze_max < 0:
        raise AlarmValidationError("Snooze max cannot be negative")
    if not 0 <= alarm.snooze_count <= alarm.snooze_max:
        raise AlarmValidationError(
            f"Snooze count {alarm.snooze_count} exceeds max {alarm.snooze_max}"
        )
    if alarm.difficulty not in DIFFICULTIES:
        raise AlarmValidationError(f"Unknown difficulty: {alarm.difficulty!r}")
