"""Trigger port — abstract interface for scheduling one-shot alarm alerts.

Core modules depend on this protocol, never on a specific scheduler.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class TriggerError(Exception):
    """Raised when the trigger provider fails to install or cancel a trigger."""


class TriggerPort(Protocol):
    """Abstract one-shot trigger scheduler used by the reconciler.

    `cancel_trigger` must be idempotent: cancelling a fired or unknown
    handle is a successful no-op.
    """

    async def install_trigger(self, at: datetime, alarm_id: str) -> str: ...

    async def cancel_trigger(self, handle: str) -> None: ...

    async def list_triggers(self) -> dict[str, str]: ...
