"""Tests for src.core.alarm_parser — command argument parsing."""

import pytest

from conftest import make_alarm
from src.core.alarm_parser import (
    apply_edits,
    parse_addalarm_args,
    parse_difficulty,
    parse_repeat_days,
    parse_time,
)
from src.data.models import AlarmValidationError


class TestParseTime:
    def test_padded(self):
        assert parse_time("07:05") == "07:05"

    def test_short_hour(self):
        assert parse_time("7:05") == "07:05"

    def test_dot_separator(self):
        assert parse_time("6.30") == "06:30"

    def test_out_of_range(self):
        assert parse_time("24:00") is None
        assert parse_time("10:75") is None

    def test_garbage(self):
        assert parse_time("seven") is None
        assert parse_time("730") is None


class TestParseRepeatDays:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("once", []),
            ("daily", [0, 1, 2, 3, 4, 5, 6]),
            ("Weekdays", [1, 2, 3, 4, 5]),
            ("weekends", [0, 6]),
        ],
    )
    def test_presets(self, text, expected):
        assert parse_repeat_days(text) == expected

    def test_names(self):
        assert parse_repeat_days("fri,mon,wed") == [1, 3, 5]

    def test_digits_and_duplicates(self):
        assert parse_repeat_days("0,6,6") == [0, 6]

    def test_invalid_digit(self):
        assert parse_repeat_days("1,7") is None

    def test_unknown_word(self):
        assert parse_repeat_days("gym") is None


class TestParseDifficulty:
    def test_known(self):
        assert parse_difficulty("HARD") == "hard"

    def test_alias(self):
        assert parse_difficulty("med") == "medium"

    def test_unknown(self):
        assert parse_difficulty("insane") is None


class TestParseAddAlarmArgs:
    def test_time_only(self):
        assert parse_addalarm_args(["7:00"]) == {
            "time_hhmm": "07:00",
            "repeat_days": [],
            "difficulty": "easy",
            "label": "",
        }

    def test_full(self):
        parsed = parse_addalarm_args(["06:45", "weekdays", "hard", "Morning", "run"])
        assert parsed == {
            "time_hhmm": "06:45",
            "repeat_days": [1, 2, 3, 4, 5],
            "difficulty": "hard",
            "label": "Morning run",
        }

    def test_label_without_days(self):
        parsed = parse_addalarm_args(["08:00", "medium", "Standup"])
        assert parsed["repeat_days"] == []
        assert parsed["difficulty"] == "medium"
        assert parsed["label"] == "Standup"

    def test_bad_time(self):
        assert parse_addalarm_args(["soon"]) is None

    def test_empty(self):
        assert parse_addalarm_args([]) is None


class TestApplyEdits:
    def test_multiple_fields(self):
        alarm = make_alarm()
        edited = apply_edits(alarm, ["time=6:15", "days=weekends", "label=Wake_up", "difficulty=hard"])
        assert edited.time_hhmm == "06:15"
        assert edited.repeat_days == [0, 6]
        assert edited.label == "Wake up"
        assert edited.difficulty == "hard"

    def test_original_untouched(self):
        alarm = make_alarm()
        apply_edits(alarm, ["time=09:00"])
        assert alarm.time_hhmm == "07:00"

    def test_snooze_settings(self):
        edited = apply_edits(make_alarm(), ["snooze=off", "snoozemin=10", "snoozemax=1"])
        assert edited.snooze_enabled is False
        assert edited.snooze_minutes == 10
        assert edited.snooze_max == 1

    def test_volume(self):
        assert apply_edits(make_alarm(), ["volume=0.4"]).volume == 0.4

    @pytest.mark.parametrize(
        "pair",
        ["time=25:00", "days=someday", "difficulty=epic", "snooze=maybe", "snoozemin=ten", "volume=loud", "colour=red", "time"],
    )
    def test_rejects_bad_input(self, pair):
        with pytest.raises(AlarmValidationError):
            apply_edits(make_alarm(), [pair])
