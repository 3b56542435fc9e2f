"""Tests for src.data.db — AlarmDB, PlayerDB and ScheduleMapDB (SQLite storage)."""

import json
import sqlite3

from conftest import make_alarm
from src.data.db import ALARMS_KEY, AlarmDB, PlayerDB, ScheduleMapDB
from src.data.models import Player, default_player


class TestAlarmDB:
    def test_empty_by_default(self, alarm_db):
        assert alarm_db.list_all() == []

    def test_upsert_and_get(self, alarm_db):
        alarm = make_alarm(label="Gym", repeat_days=[1, 3])
        alarm_db.upsert(alarm)
        assert alarm_db.get_alarm("alarm1") == alarm

    def test_get_not_found(self, alarm_db):
        assert alarm_db.get_alarm("ghost") is None

    def test_upsert_replaces_by_id(self, alarm_db):
        alarm_db.upsert(make_alarm(label="Old"))
        alarm_db.upsert(make_alarm(label="New"))
        alarms = alarm_db.list_all()
        assert len(alarms) == 1
        assert alarms[0].label == "New"

    def test_list_sorted_by_time(self, alarm_db):
        alarm_db.upsert(make_alarm(id="late", time_hhmm="09:00"))
        alarm_db.upsert(make_alarm(id="early", time_hhmm="06:30"))
        alarm_db.upsert(make_alarm(id="mid", time_hhmm="07:15"))
        assert [a.id for a in alarm_db.list_all()] == ["early", "mid", "late"]

    def test_delete(self, alarm_db):
        alarm_db.upsert(make_alarm())
        assert alarm_db.delete("alarm1") is True
        assert alarm_db.list_all() == []

    def test_delete_not_found(self, alarm_db):
        assert alarm_db.delete("ghost") is False

    def test_survives_reopen(self, tmp_path):
        path = str(tmp_path / "reopen.db")
        AlarmDB(db_path=path).upsert(make_alarm(difficulty="hard"))
        assert AlarmDB(db_path=path).get_alarm("alarm1").difficulty == "hard"

    def test_unknown_stored_fields_ignored(self, tmp_path):
        path = str(tmp_path / "legacy.db")
        db = AlarmDB(db_path=path)
        legacy = {"id": "old", "time_hhmm": "05:00", "vibrate": True}
        with sqlite3.connect(path) as conn:
            conn.execute(
                "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
                (ALARMS_KEY, json.dumps([legacy]), "2026-01-01T00:00:00"),
            )
        alarm = db.get_alarm("old")
        assert alarm.time_hhmm == "05:00"
        assert alarm.enabled is True


class TestPlayerDB:
    def test_default_when_missing(self, player_db):
        assert player_db.get() == default_player()

    def test_save_and_get(self, player_db):
        player = Player(level=3, xp=40, xp_to_next=250, coins=17, streak_days=2,
                        last_success_date="2026-10-18", total_wakes=9)
        player_db.save(player)
        assert player_db.get() == player

    def test_last_write_wins(self, player_db):
        player_db.save(Player(coins=1))
        player_db.save(Player(coins=2))
        assert player_db.get().coins == 2


class TestScheduleMapDB:
    def test_empty_by_default(self, schedule_db):
        assert schedule_db.get() == {}

    def test_save_and_get(self, schedule_db):
        schedule_db.save({"alarm1": "h1", "alarm2": "h2"})
        assert schedule_db.get() == {"alarm1": "h1", "alarm2": "h2"}

    def test_get_returns_copy(self, schedule_db):
        schedule_db.save({"alarm1": "h1"})
        schedule_db.get()["alarm2"] = "h2"
        assert schedule_db.get() == {"alarm1": "h1"}


class TestSharedFile:
    def test_stores_are_independent_documents(self, tmp_path):
        path = str(tmp_path / "shared.db")
        AlarmDB(db_path=path).upsert(make_alarm())
        PlayerDB(db_path=path).save(Player(coins=4))
        ScheduleMapDB(db_path=path).save({"alarm1": "h1"})

        assert len(AlarmDB(db_path=path).list_all()) == 1
        assert PlayerDB(db_path=path).get().coins == 4
        assert ScheduleMapDB(db_path=path).get() == {"alarm1": "h1"}
