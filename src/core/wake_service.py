"""
WakeQuest — UI-Agnostic Wake Service.

Orchestrates one ring cycle: trigger fired -> ringer on -> math mission ->
progression reward -> reschedule. UI adapters (Telegram today) call this
service and render the returned result objects in their own way.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Callable

from telegram.helpers import escape_markdown

from src.core.challenge import ChallengeSession, parse_answer
from src.core.progression import apply_alarm_success

if TYPE_CHECKING:
    from src.core.reconciler import ScheduleReconciler
    from src.data.db import PlayerDB
    from src.data.models import Alarm, Player
    from src.ports.audio_port import AudioPort
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response types
# ---------------------------------------------------------------------------


class AnswerOutcome(Enum):
    NO_MISSION = "no_mission"
    INVALID = "invalid"
    WRONG = "wrong"
    CORRECT = "correct"
    RESOLVED = "resolved"


@dataclass
class AnswerResult:
    outcome: AnswerOutcome
    streak: int = 0
    required: int = 0
    next_problem: str = ""
    player: Player | None = None
    alarm: Alarm | None = None


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class WakeService:
    """Runs ringing alarms through their math mission."""

    def __init__(
        self,
        reconciler: ScheduleReconciler,
        player_db: PlayerDB,
        notifier: NotificationPort,
        audio: AudioPort,
        chat_ids: list[int],
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if clock is None:
            from src.core.clock import local_now
            clock = local_now

        self._reconciler = reconciler
        self._players = player_db
        self._notifier = notifier
        self._audio = audio
        self._chat_ids = chat_ids
        self._clock = clock
        self._rng = rng or random.Random()
        self._missions: dict[str, tuple[Alarm, ChallengeSession]] = {}
        # Rewarded missions whose reschedule has not gone through yet.
        self._unsettled: dict[str, tuple[Alarm, ChallengeSession, Player]] = {}

    @property
    def active_alarm_id(self) -> str | None:
        """The most recently started mission, if any is open."""
        if not self._missions:
            return None
        return next(reversed(self._missions))

    def session_for(self, alarm_id: str) -> ChallengeSession | None:
        mission = self._missions.get(alarm_id)
        return mission[1] if mission else None

    async def on_trigger_fired(self, alarm_id: str, handle: str | None = None) -> None:
        """Entry point for the trigger provider's fired callback."""
        alarm = await self._reconciler.handle_fired(alarm_id, handle)
        if alarm is None or not alarm.enabled:
            return

        session = ChallengeSession(alarm.difficulty, rng=self._rng)
        self._unsettled.pop(alarm_id, None)
        self._missions.pop(alarm_id, None)
        self._missions[alarm_id] = (alarm, session)

        await self._start_ringing(alarm)
        title = escape_markdown(alarm.label) if alarm.label else "Alarm"
        await self._broadcast(
            f"⏰ *{title}* ({alarm.time_hhmm})\n"
            f"Solve {session.required} in a row to stop the alarm.\n\n"
            f"`{session.problem.text}`"
        )

    async def submit_answer(self, text: str, alarm_id: str | None = None) -> AnswerResult:
        """Check a typed answer against the open mission."""
        alarm_id = alarm_id or self.active_alarm_id
        mission = self._missions.get(alarm_id) if alarm_id else None
        if mission is None:
            pending_id = alarm_id or next(reversed(self._unsettled), None)
            if pending_id in self._unsettled:
                return await self._settle(pending_id)
            return AnswerResult(outcome=AnswerOutcome.NO_MISSION)

        alarm, session = mission
        value = parse_answer(text)
        if value is None:
            return AnswerResult(
                outcome=AnswerOutcome.INVALID,
                streak=session.streak,
                required=session.required,
                next_problem=session.problem.text,
                alarm=alarm,
            )

        correct = session.submit(value)
        if session.resolved:
            return await self._complete(alarm, session)

        return AnswerResult(
            outcome=AnswerOutcome.CORRECT if correct else AnswerOutcome.WRONG,
            streak=session.streak,
            required=session.required,
            next_problem=session.problem.text,
            alarm=alarm,
        )

    async def snooze(self, alarm_id: str | None = None) -> datetime | None:
        """Snooze the ringing alarm. Returns None when no snooze is possible."""
        alarm_id = alarm_id or self.active_alarm_id
        if alarm_id is None:
            return None
        at = await self._reconciler.snooze(alarm_id)
        if at is None:
            return None
        await self._stop_ringing(closing=alarm_id)
        self._missions.pop(alarm_id, None)
        return at

    async def _complete(self, alarm: Alarm, session: ChallengeSession) -> AnswerResult:
        """Reward the player once, then reschedule the alarm."""
        await self._stop_ringing(closing=alarm.id)
        self._missions.pop(alarm.id, None)

        player = self._players.get()
        updated = apply_alarm_success(player, alarm, self._clock())
        self._players.save(updated)
        self._unsettled[alarm.id] = (alarm, session, updated)
        logger.info(
            "Mission for alarm %s resolved; player level %d, streak %d",
            alarm.id, updated.level, updated.streak_days,
        )
        return await self._settle(alarm.id)

    async def _settle(self, alarm_id: str) -> AnswerResult:
        """Close the ring cycle of a rewarded mission.

        Safe to retry: a failed reschedule leaves the mission unsettled and
        the next answer retries only this step.
        """
        alarm, session, player = self._unsettled[alarm_id]
        await self._reconciler.resolve_success(alarm_id)
        self._unsettled.pop(alarm_id, None)
        return AnswerResult(
            outcome=AnswerOutcome.RESOLVED,
            streak=session.streak,
            required=session.required,
            player=player,
            alarm=alarm,
        )

    async def _start_ringing(self, alarm: Alarm) -> None:
        try:
            await self._audio.start_loop(alarm)
        except Exception as exc:
            logger.warning("Failed to start ringer for alarm %s: %s", alarm.id, exc)

    async def _stop_ringing(self, closing: str) -> None:
        if any(alarm_id != closing for alarm_id in self._missions):
            # Another alarm is still mid-mission; keep ringing for it.
            return
        try:
            await self._audio.stop_loop()
        except Exception as exc:
            logger.warning("Failed to stop ringer: %s", exc)

    async def _broadcast(self, text: str) -> None:
        for chat_id in self._chat_ids:
            try:
                await self._notifier.send_message(chat_id, text, parse_mode="Markdown")
            except Exception as exc:
                logger.error("Failed to deliver mission to %d: %s", chat_id, exc)
