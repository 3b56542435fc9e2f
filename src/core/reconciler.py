"""
WakeQuest — Schedule Reconciler.

Owns the persisted alarm id → trigger handle map and keeps it equal to the
set of triggers actually outstanding at the trigger provider. Every alarm
lifecycle event (create, edit, enable, disable, delete, fire, snooze,
resolve) flows through here.

Operations on the same alarm id are serialized with a per-id asyncio.Lock;
different alarms proceed independently. A transition is committed only once
both the trigger request and the storage write have completed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable

from src.core.occurrence import compute_next_occurrence
from src.data.models import AlarmNotFoundError, validate_alarm
from src.ports.trigger_port import TriggerError

if TYPE_CHECKING:
    from src.data.db import AlarmDB, ScheduleMapDB
    from src.data.models import Alarm
    from src.ports.trigger_port import TriggerPort

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """What the startup audit changed."""

    dropped: list[str] = field(default_factory=list)     # stale map entries
    cancelled: list[str] = field(default_factory=list)   # orphan handles
    rearmed: list[str] = field(default_factory=list)     # alarm ids

    @property
    def changed(self) -> bool:
        return bool(self.dropped or self.cancelled or self.rearmed)


class ScheduleReconciler:
    """Keeps alarms, the schedule map and live triggers consistent."""

    def __init__(
        self,
        alarm_db: AlarmDB,
        schedule_db: ScheduleMapDB,
        triggers: TriggerPort,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if clock is None:
            from src.core.clock import local_now
            clock = local_now

        self._alarms = alarm_db
        self._schedule = schedule_db
        self._triggers = triggers
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}
        self._armed_at: dict[str, datetime] = {}

    def _lock(self, alarm_id: str) -> asyncio.Lock:
        lock = self._locks.get(alarm_id)
        if lock is None:
            lock = self._locks[alarm_id] = asyncio.Lock()
        return lock

    def next_ring(self, alarm: Alarm) -> datetime | None:
        """Instant the alarm's outstanding trigger is set for.

        None when nothing is armed, e.g. a resolved one-off alarm.
        """
        if alarm.id not in self._schedule.get():
            return None
        at = self._armed_at.get(alarm.id)
        if at is None:
            # Armed by an earlier process; only the base occurrence is known.
            at = compute_next_occurrence(alarm, self._clock())
        return at

    # ------------------------------------------------------------------
    # User-driven transitions
    # ------------------------------------------------------------------

    async def create_alarm(self, alarm: Alarm) -> Alarm:
        """Store a new alarm and arm it if enabled."""
        alarm.snooze_count = 0
        validate_alarm(alarm)
        async with self._lock(alarm.id):
            self._alarms.upsert(alarm)
            if alarm.enabled:
                await self._arm(alarm)
        logger.info("Alarm %s created for %s", alarm.id, alarm.time_hhmm)
        return alarm

    async def edit_alarm(self, alarm: Alarm) -> Alarm:
        """Replace an existing alarm and re-arm or disarm it.

        Raises AlarmNotFoundError if the id is unknown.
        """
        alarm.snooze_count = 0
        validate_alarm(alarm)
        async with self._lock(alarm.id):
            if self._alarms.get_alarm(alarm.id) is None:
                raise AlarmNotFoundError(f"Alarm {alarm.id} not found")
            self._alarms.upsert(alarm)
            if alarm.enabled:
                await self._arm(alarm)
            else:
                await self._disarm(alarm.id)
        logger.info("Alarm %s edited", alarm.id)
        return alarm

    async def set_enabled(self, alarm_id: str, enabled: bool) -> Alarm:
        """Enable (arm) or disable (disarm) an alarm."""
        async with self._lock(alarm_id):
            alarm = self._alarms.get_alarm(alarm_id)
            if alarm is None:
                raise AlarmNotFoundError(f"Alarm {alarm_id} not found")
            alarm.enabled = enabled
            if enabled:
                alarm.snooze_count = 0
                self._alarms.upsert(alarm)
                await self._arm(alarm)
            else:
                self._alarms.upsert(alarm)
                await self._disarm(alarm_id)
        logger.info("Alarm %s %s", alarm_id, "enabled" if enabled else "disabled")
        return alarm

    async def delete_alarm(self, alarm_id: str) -> bool:
        """Cancel any trigger and remove the alarm. Unknown ids are a no-op."""
        async with self._lock(alarm_id):
            await self._disarm(alarm_id)
            deleted = self._alarms.delete(alarm_id)
        return deleted

    # ------------------------------------------------------------------
    # Ring-cycle transitions
    # ------------------------------------------------------------------

    async def handle_fired(self, alarm_id: str, handle: str | None = None) -> Alarm | None:
        """Record that the provider consumed the alarm's trigger.

        Never re-arms: repeating alarms are re-armed only after the mission
        is resolved, so a second ring cannot start mid-challenge. When the
        fired `handle` is given and is no longer the mapped one, the trigger
        was replaced while firing; it is ignored and None is returned.
        """
        async with self._lock(alarm_id):
            schedule_map = self._schedule.get()
            mapped = schedule_map.get(alarm_id)
            if handle is not None and mapped != handle:
                logger.warning(
                    "Ignoring stale trigger %s for alarm %s (mapped: %s)",
                    handle, alarm_id, mapped,
                )
                return None
            if mapped is not None:
                del schedule_map[alarm_id]
                self._schedule.save(schedule_map)
                self._armed_at.pop(alarm_id, None)
            alarm = self._alarms.get_alarm(alarm_id)
        if alarm is None:
            logger.warning("Trigger fired for unknown alarm %s", alarm_id)
        else:
            logger.info("Alarm %s fired", alarm_id)
        return alarm

    async def snooze(self, alarm_id: str) -> datetime | None:
        """Re-ring the alarm after its snooze interval.

        Returns the snooze instant, or None if snoozing is disabled or no
        snoozes remain (nothing is changed in that case).
        """
        async with self._lock(alarm_id):
            alarm = self._alarms.get_alarm(alarm_id)
            if alarm is None:
                raise AlarmNotFoundError(f"Alarm {alarm_id} not found")
            if not alarm.snooze_enabled or alarm.snooze_count >= alarm.snooze_max:
                logger.warning(
                    "Snooze rejected for alarm %s (%d/%d used)",
                    alarm_id, alarm.snooze_count, alarm.snooze_max,
                )
                return None

            at = self._clock() + timedelta(minutes=alarm.snooze_minutes)
            await self._install(alarm_id, at)
            alarm.snooze_count += 1
            self._alarms.upsert(alarm)

        logger.info(
            "Alarm %s snoozed until %s (%d/%d)",
            alarm_id, at.strftime("%H:%M"), alarm.snooze_count, alarm.snooze_max,
        )
        return at

    async def resolve_success(self, alarm_id: str) -> Alarm | None:
        """Close a ring cycle after the mission was solved.

        Resets the snooze counter. Repeating, enabled alarms are re-armed for
        their next occurrence; one-off alarms stay enabled but unscheduled.
        """
        async with self._lock(alarm_id):
            alarm = self._alarms.get_alarm(alarm_id)
            if alarm is None:
                return None
            alarm.snooze_count = 0
            self._alarms.upsert(alarm)
            if alarm.enabled and alarm.is_repeating:
                await self._arm(alarm)
            else:
                await self._disarm(alarm_id)
        return alarm

    # ------------------------------------------------------------------
    # Startup audit
    # ------------------------------------------------------------------

    async def reconcile(self) -> ReconcileReport:
        """Bring the map, the live triggers and the alarms back in line.

        Drops map entries whose trigger is no longer live, cancels live
        triggers the map does not reference, disarms disabled or deleted
        alarms, and re-arms enabled alarms that lost their trigger.
        """
        report = ReconcileReport()
        live = await self._triggers.list_triggers()
        schedule_map = self._schedule.get()
        alarms = {a.id: a for a in self._alarms.list_all()}

        lost: set[str] = set()
        for alarm_id, handle in list(schedule_map.items()):
            if handle not in live:
                del schedule_map[alarm_id]
                self._armed_at.pop(alarm_id, None)
                report.dropped.append(alarm_id)
                lost.add(alarm_id)
                continue
            alarm = alarms.get(alarm_id)
            if alarm is None or not alarm.enabled:
                await self._triggers.cancel_trigger(handle)
                del schedule_map[alarm_id]
                self._armed_at.pop(alarm_id, None)
                report.cancelled.append(handle)

        referenced = set(schedule_map.values())
        for handle in live:
            if handle not in referenced and handle not in report.cancelled:
                await self._triggers.cancel_trigger(handle)
                report.cancelled.append(handle)

        self._schedule.save(schedule_map)

        for alarm_id, alarm in alarms.items():
            if not alarm.enabled or alarm_id in schedule_map:
                continue
            if alarm.is_repeating or alarm_id in lost:
                async with self._lock(alarm_id):
                    alarm.snooze_count = 0
                    self._alarms.upsert(alarm)
                    await self._arm(alarm)
                report.rearmed.append(alarm_id)

        if report.changed:
            logger.info(
                "Reconciled schedule: %d dropped, %d cancelled, %d re-armed",
                len(report.dropped), len(report.cancelled), len(report.rearmed),
            )
        return report

    # ------------------------------------------------------------------
    # Internals (callers hold the alarm's lock)
    # ------------------------------------------------------------------

    async def _arm(self, alarm: Alarm) -> datetime:
        at = compute_next_occurrence(alarm, self._clock())
        await self._install(alarm.id, at)
        logger.info("Alarm %s armed for %s", alarm.id, at.isoformat())
        return at

    async def _install(self, alarm_id: str, at: datetime) -> str:
        """Replace the alarm's trigger with a new one at `at`.

        The map is written only after the provider accepted the trigger; if
        the write fails the new trigger is withdrawn again.
        """
        schedule_map = self._schedule.get()
        old_handle = schedule_map.pop(alarm_id, None)
        if old_handle is not None:
            await self._cancel(old_handle)
            self._schedule.save(schedule_map)
            self._armed_at.pop(alarm_id, None)

        try:
            handle = await self._triggers.install_trigger(at, alarm_id)
        except TriggerError as exc:
            logger.error("Failed to install trigger for alarm %s: %s", alarm_id, exc)
            raise

        schedule_map[alarm_id] = handle
        try:
            self._schedule.save(schedule_map)
        except Exception:
            logger.error("Schedule map write failed; withdrawing trigger %s", handle)
            try:
                await self._triggers.cancel_trigger(handle)
            except TriggerError as exc:
                logger.warning("Could not withdraw trigger %s: %s", handle, exc)
            raise
        self._armed_at[alarm_id] = at
        return handle

    async def _disarm(self, alarm_id: str) -> None:
        schedule_map = self._schedule.get()
        handle = schedule_map.pop(alarm_id, None)
        if handle is None:
            return
        await self._cancel(handle)
        self._schedule.save(schedule_map)
        self._armed_at.pop(alarm_id, None)
        logger.info("Alarm %s disarmed", alarm_id)

    async def _cancel(self, handle: str) -> None:
        try:
            await self._triggers.cancel_trigger(handle)
        except TriggerError as exc:
            logger.error("Failed to cancel trigger %s: %s", handle, exc)
            raise
