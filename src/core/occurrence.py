"""Occurrence calculator — pure alarm timing logic.

Turns an alarm definition plus an explicit reference instant into the next
concrete instant the alarm should ring. Works at minute granularity.

No I/O and no clock reads: callers always pass the reference instant.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from src.data.models import AlarmValidationError

if TYPE_CHECKING:
    from src.data.models import Alarm

DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

_WEEKDAYS = {1, 2, 3, 4, 5}
_WEEKENDS = {0, 6}


def parse_time_hhmm(raw: str) -> tuple[int, int]:
    """Extract (hour, minute) from an "HH:MM" string.

    Raises AlarmValidationError on malformed or out-of-range input.
    """
    if ":" not in raw:
        raise AlarmValidationError(f"No colon in time: {raw!r}")
    hour_part, minute_part = raw.strip().split(":", 1)
    try:
        hour, minute = int(hour_part), int(minute_part)
    except ValueError as exc:
        raise AlarmValidationError(f"Time is not numeric: {raw!r}") from exc
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise AlarmValidationError(f"Hour/minute out of range: {hour}:{minute}")
    return hour, minute


def weekday_index(day: date) -> int:
    """Weekday of a date with Sunday as 0, matching Alarm.repeat_days."""
    return day.isoweekday() % 7


def compute_next_occurrence(alarm: Alarm, reference: datetime) -> datetime:
    """Return the next instant strictly after `reference` the alarm rings.

    One-off alarms ring today if the time is still ahead, otherwise tomorrow.
    Repeating alarms ring on the earliest matching weekday within the next
    seven days. An alarm time equal to the (minute-truncated) reference is
    never selected.
    """
    hour, minute = parse_time_hhmm(alarm.time_hhmm)
    base = reference.replace(second=0, microsecond=0)
    target_today = base.replace(hour=hour, minute=minute)

    if not alarm.repeat_days:
        if target_today > base:
            return target_today
        return _shift_days(target_today, 1)

    repeat = set(alarm.repeat_days)
    for offset in range(7):
        candidate = _shift_days(target_today, offset)
        if weekday_index(candidate.date()) not in repeat:
            continue
        if candidate > base:
            return candidate

    # Only reachable when today is the single repeat day and already passed.
    return _shift_days(target_today, 7)


def _shift_days(moment: datetime, days: int) -> datetime:
    """Move a wall-clock moment by whole calendar days, keeping its time."""
    shifted = moment.date() + timedelta(days=days)
    return moment.replace(year=shifted.year, month=shifted.month, day=shifted.day)


def format_occurrence(moment: datetime) -> str:
    """Short human label for an occurrence, e.g. "Tue 07:00"."""
    return f"{DAY_NAMES[weekday_index(moment.date())]} {moment:%H:%M}"


def describe_repeat_days(days: list[int]) -> str:
    """Human-readable summary of a repeat-day set."""
    selected = set(days)
    if not selected:
        return "once"
    if len(selected) == 7:
        return "every day"
    if selected == _WEEKDAYS:
        return "weekdays"
    if selected == _WEEKENDS:
        return "weekends"
    return ", ".join(DAY_NAMES[d] for d in sorted(selected))
