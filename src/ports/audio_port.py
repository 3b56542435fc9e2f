"""Audio port — abstract interface for the looping alarm tone.

Best effort: callers log failures and carry on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from src.data.models import Alarm


class AudioPort(Protocol):
    """Abstract ringer used by the wake service."""

    async def start_loop(self, alarm: Alarm) -> None: ...

    async def stop_loop(self) -> None: ...
