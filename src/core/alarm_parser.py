"""Command argument parsing for alarm definitions.

Turns the short text users type after /addalarm and /edit into validated
alarm fields. Every parser returns None on input it does not understand so
handlers can reply with usage help.
"""

from __future__ import annotations

import re
from dataclasses import replace
from typing import TYPE_CHECKING

from src.data.models import DIFFICULTIES, AlarmValidationError

if TYPE_CHECKING:
    from src.data.models import Alarm

_DAY_ALIASES = {
    "sun": 0, "sunday": 0,
    "mon": 1, "monday": 1,
    "tue": 2, "tues": 2, "tuesday": 2,
    "wed": 3, "wednesday": 3,
    "thu": 4, "thur": 4, "thurs": 4, "thursday": 4,
    "fri": 5, "friday": 5,
    "sat": 6, "saturday": 6,
}

_DAY_PRESETS = {
    "once": [],
    "never": [],
    "daily": [0, 1, 2, 3, 4, 5, 6],
    "everyday": [0, 1, 2, 3, 4, 5, 6],
    "weekdays": [1, 2, 3, 4, 5],
    "weekends": [0, 6],
}

_DIFFICULTY_ALIASES = {"med": "medium", "normal": "medium"}

_TIME_RE = re.compile(r"^(\d{1,2})[:.](\d{2})$")

_BOOL_WORDS = {
    "on": True, "yes": True, "true": True, "1": True,
    "off": False, "no": False, "false": False, "0": False,
}


def parse_time(text: str) -> str | None:
    """Normalize "7:05" / "07.05" to "07:05". None if not a valid time."""
    match = _TIME_RE.match(text.strip())
    if match is None:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return f"{hour:02d}:{minute:02d}"


def parse_repeat_days(text: str) -> list[int] | None:
    """Parse "weekdays", "daily", "once", "mon,wed,fri" or "1,3,5".

    Numeric days use 0=Sunday .. 6=Saturday.
    """
    cleaned = text.strip().lower()
    if cleaned in _DAY_PRESETS:
        return list(_DAY_PRESETS[cleaned])

    days: set[int] = set()
    for part in re.split(r"[,\s]+", cleaned):
        if not part:
            continue
        if part.isdigit():
            day = int(part)
            if not 0 <= day <= 6:
                return None
        elif part in _DAY_ALIASES:
            day = _DAY_ALIASES[part]
        else:
            return None
        days.add(day)
    return sorted(days) if days else None


def parse_difficulty(text: str) -> str | None:
    cleaned = text.strip().lower()
    cleaned = _DIFFICULTY_ALIASES.get(cleaned, cleaned)
    return cleaned if cleaned in DIFFICULTIES else None


def parse_addalarm_args(args: list[str]) -> dict | None:
    """Parse `/addalarm HH:MM [days] [difficulty] [label...]`.

    Days and difficulty are optional and recognised by content; everything
    after them is the label.
    """
    if not args:
        return None
    time_hhmm = parse_time(args[0])
    if time_hhmm is None:
        return None

    rest = list(args[1:])
    repeat_days: list[int] = []
    difficulty = "easy"

    if rest:
        days = parse_repeat_days(rest[0])
        if days is not None:
            repeat_days = days
            rest.pop(0)
    if rest:
        level = parse_difficulty(rest[0])
        if level is not None:
            difficulty = level
            rest.pop(0)

    return {
        "time_hhmm": time_hhmm,
        "repeat_days": repeat_days,
        "difficulty": difficulty,
        "label": " ".join(rest).strip(),
    }


def apply_edits(alarm: Alarm, pairs: list[str]) -> Alarm:
    """Return a copy of `alarm` with `key=value` edits applied.

    Keys: time, days, difficulty, label, snooze, snoozemin, snoozemax, volume.
    Raises AlarmValidationError on an unknown key or unparseable value.
    """
    changes: dict = {}
    for pair in pairs:
        if "=" not in pair:
            raise AlarmValidationError(f"Expected key=value, got {pair!r}")
        key, value = pair.split("=", 1)
        key = key.strip().lower()

        if key == "time":
            parsed = parse_time(value)
            if parsed is None:
                raise AlarmValidationError(f"Invalid time: {value!r}")
            changes["time_hhmm"] = parsed
        elif key == "days":
            days = parse_repeat_days(value)
            if days is None:
                raise AlarmValidationError(f"Invalid days: {value!r}")
            changes["repeat_days"] = days
        elif key == "difficulty":
            level = parse_difficulty(value)
            if level is None:
                raise AlarmValidationError(f"Invalid difficulty: {value!r}")
            changes["difficulty"] = level
        elif key == "label":
            changes["label"] = value.replace("_", " ").strip()
        elif key == "snooze":
            if value.strip().lower() not in _BOOL_WORDS:
                raise AlarmValidationError(f"Snooze must be on/off, got {value!r}")
            changes["snooze_enabled"] = _BOOL_WORDS[value.strip().lower()]
        elif key in ("snoozemin", "snoozemax"):
            try:
                number = int(value)
            except ValueError as exc:
                raise AlarmValidationError(f"{key} must be a whole number") from exc
            field_name = "snooze_minutes" if key == "snoozemin" else "snooze_max"
            changes[field_name] = number
        elif key == "volume":
            try:
                changes["volume"] = float(value)
            except ValueError as exc:
                raise AlarmValidationError("Volume must be a number 0..1") from exc
        else:
            raise AlarmValidationError(f"Unknown field: {key!r}")

    return replace(alarm, **changes)
