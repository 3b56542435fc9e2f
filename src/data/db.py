"""
WakeQuest — Persistent Stores.

Alarms, the player record and the alarm → trigger schedule map live as three
independent JSON documents in a single SQLite key/value table. An absent key
always resolves to a well-defined default; the last write wins.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import asdict, fields
from datetime import datetime
from pathlib import Path
from typing import Any

from src.data.models import Alarm, Player, default_player

logger = logging.getLogger(__name__)

ALARMS_KEY = "alarms:v1"
PLAYER_KEY = "player:v1"
SCHEDULE_MAP_KEY = "alarmScheduleMap:v1"


class _KeyValueStore:
    """SQLite-backed table of JSON documents keyed by name."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key        TEXT PRIMARY KEY,
                    value      TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
        logger.debug("kv_store table initialized at %s", self._db_path)

    def _read(self, key: str) -> Any | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        return json.loads(row["value"])

    def _write(self, key: str, value: Any) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, json.dumps(value), datetime.now().isoformat()),
            )


def _from_dict(cls: type, data: dict) -> Any:
    """Build a dataclass from a stored document, ignoring unknown fields."""
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


class AlarmDB(_KeyValueStore):
    """Collection of alarm definitions, stored as one JSON list."""

    def list_all(self) -> list[Alarm]:
        """Return every stored alarm, sorted by time of day."""
        raw = self._read(ALARMS_KEY) or []
        alarms = [_from_dict(Alarm, item) for item in raw]
        return sorted(alarms, key=lambda a: (a.time_hhmm, a.id))

    def get_alarm(self, alarm_id: str) -> Alarm | None:
        """Fetch a single alarm by id."""
        for alarm in self.list_all():
            if alarm.id == alarm_id:
                return alarm
        return None

    def upsert(self, alarm: Alarm) -> Alarm:
        """Insert or replace an alarm by id."""
        alarms = [a for a in self.list_all() if a.id != alarm.id]
        alarms.append(alarm)
        self._write(ALARMS_KEY, [asdict(a) for a in alarms])
        logger.info("Alarm %s saved (%s)", alarm.id, alarm.time_hhmm)
        return alarm

    def delete(self, alarm_id: str) -> bool:
        """Permanently delete an alarm. Returns False if it did not exist."""
        alarms = self.list_all()
        remaining = [a for a in alarms if a.id != alarm_id]
        if len(remaining) == len(alarms):
            return False
        self._write(ALARMS_KEY, [asdict(a) for a in remaining])
        logger.info("Alarm %s deleted", alarm_id)
        return True


class PlayerDB(_KeyValueStore):
    """The singleton player record."""

    def get(self) -> Player:
        raw = self._read(PLAYER_KEY)
        if raw is None:
            return default_player()
        return _from_dict(Player, raw)

    def save(self, player: Player) -> None:
        self._write(PLAYER_KEY, asdict(player))
        logger.info(
            "Player saved: level %d, %d/%d XP, %d coins, streak %d",
            player.level, player.xp, player.xp_to_next,
            player.coins, player.streak_days,
        )


class ScheduleMapDB(_KeyValueStore):
    """Alarm id → outstanding trigger handle."""

    def get(self) -> dict[str, str]:
        return dict(self._read(SCHEDULE_MAP_KEY) or {})

    def save(self, schedule_map: dict[str, str]) -> None:
        self._write(SCHEDULE_MAP_KEY, dict(schedule_map))
        logger.debug("Schedule map saved with %d entries", len(schedule_map))
