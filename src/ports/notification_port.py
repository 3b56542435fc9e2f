"""Notification port — abstract interface for chat messages to the sleeper.

Used by the wake service to deliver mission problems and results; core
modules never talk to a messaging provider directly.
"""

from __future__ import annotations

from typing import Protocol


class NotificationPort(Protocol):
    """Abstract chat delivery used by core modules."""

    async def send_message(
        self, chat_id: int, text: str, parse_mode: str | None = None,
    ) -> None: ...
