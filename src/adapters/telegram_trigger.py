"""Telegram trigger adapter — implements TriggerPort on the bot's JobQueue.

Each trigger is a one-shot job named by its handle; the job carries the
alarm id and, when it runs, hands both to the registered fire handler.
JobQueue jobs live in memory only, so after a restart `list_triggers` is
empty and the reconciler re-arms everything.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Awaitable, Callable

from telegram.ext import ContextTypes, JobQueue

from src.ports.trigger_port import TriggerError

logger = logging.getLogger(__name__)

_HANDLE_PREFIX = "alarm-trigger:"

FireHandler = Callable[[str, str], Awaitable[None]]


class TelegramTrigger:
    """JobQueue implementation of TriggerPort."""

    def __init__(self, job_queue: JobQueue, on_fire: FireHandler | None = None) -> None:
        self._job_queue = job_queue
        self._on_fire = on_fire

    def set_fire_handler(self, on_fire: FireHandler) -> None:
        """Route fired triggers to `on_fire(alarm_id, handle)`."""
        self._on_fire = on_fire

    async def install_trigger(self, at: datetime, alarm_id: str) -> str:
        handle = f"{_HANDLE_PREFIX}{uuid.uuid4().hex}"
        try:
            self._job_queue.run_once(self._fire, when=at, data=alarm_id, name=handle)
        except Exception as exc:
            raise TriggerError(f"Could not schedule alarm {alarm_id}: {exc}") from exc
        logger.debug("Trigger %s installed for alarm %s at %s", handle, alarm_id, at)
        return handle

    async def cancel_trigger(self, handle: str) -> None:
        for job in self._job_queue.get_jobs_by_name(handle):
            job.schedule_removal()
            logger.debug("Trigger %s cancelled", handle)

    async def list_triggers(self) -> dict[str, str]:
        return {
            job.name: job.data
            for job in self._job_queue.jobs()
            if job.name and job.name.startswith(_HANDLE_PREFIX)
        }

    async def _fire(self, context: ContextTypes.DEFAULT_TYPE) -> None:
        alarm_id = context.job.data
        handle = context.job.name
        if self._on_fire is None:
            logger.warning("Trigger for alarm %s fired with no handler attached", alarm_id)
            return
        await self._on_fire(alarm_id, handle)
