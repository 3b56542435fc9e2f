"""Telegram ringer adapter — implements AudioPort.

A chat cannot loop a sound, so "ringing" is a repeating JobQueue job that
keeps pinging the allowed chats until the loop is stopped or the repeat
limit is reached.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from telegram.ext import ContextTypes, Job, JobQueue

if TYPE_CHECKING:
    from src.data.models import Alarm
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_RING_JOB_NAME = "alarm-ringer"


class TelegramRinger:
    """JobQueue implementation of AudioPort."""

    def __init__(
        self,
        job_queue: JobQueue,
        notifier: NotificationPort,
        chat_ids: list[int],
        interval_seconds: int = 20,
        max_repeats: int = 30,
    ) -> None:
        self._job_queue = job_queue
        self._notifier = notifier
        self._chat_ids = chat_ids
        self._interval = interval_seconds
        self._max_repeats = max_repeats
        self._job: Job | None = None
        self._rings = 0

    @property
    def is_ringing(self) -> bool:
        return self._job is not None

    async def start_loop(self, alarm: Alarm) -> None:
        await self.stop_loop()
        self._rings = 0
        self._job = self._job_queue.run_repeating(
            self._ring,
            interval=self._interval,
            first=0,
            data=alarm,
            name=_RING_JOB_NAME,
        )
        logger.info("Ringer started for alarm %s (%s)", alarm.id, alarm.sound_id)

    async def stop_loop(self) -> None:
        if self._job is None:
            return
        self._job.schedule_removal()
        self._job = None
        logger.info("Ringer stopped after %d rings", self._rings)

    async def _ring(self, context: ContextTypes.DEFAULT_TYPE) -> None:
        alarm: Alarm = context.job.data
        self._rings += 1
        bells = "🔔" * max(1, round(alarm.volume * 5))
        text = f"{bells} {alarm.label or 'Alarm'}: wake up! Solve the mission to stop me."
        for chat_id in self._chat_ids:
            try:
                await self._notifier.send_message(chat_id, text)
            except Exception as exc:
                logger.warning("Ring to chat %d failed: %s", chat_id, exc)
        if self._rings >= self._max_repeats:
            logger.warning("Ringer hit %d repeats, giving up", self._max_repeats)
            await self.stop_loop()
