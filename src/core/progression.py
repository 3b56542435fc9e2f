"""Progression engine — pure reward logic.

Converts a successfully dismissed alarm into the next player state:
XP with multi-level carry-over, coins, daily streak and wake count.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.data.models import Alarm, Player

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reward:
    xp: int
    coins: int


_REWARDS = {
    "easy": Reward(xp=20, coins=5),
    "medium": Reward(xp=35, coins=8),
    "hard": Reward(xp=50, coins=12),
}
_DEFAULT_REWARD = Reward(xp=10, coins=2)


def get_reward_for_alarm(alarm: Alarm) -> Reward:
    """Fixed reward by difficulty; unknown difficulties get a small default."""
    return _REWARDS.get(alarm.difficulty, _DEFAULT_REWARD)


def xp_to_next_level(level: int) -> int:
    """XP needed to leave `level`."""
    return 100 + level * 50


def apply_alarm_success(player: Player, alarm: Alarm, now: datetime) -> Player:
    """Return the player state after dismissing `alarm` at local time `now`.

    Several level-ups may happen in one call. The streak counts local calendar
    days: a second success on the same day keeps it, a success the day after
    extends it, anything else (a gap or a future date) restarts it at 1.
    """
    reward = get_reward_for_alarm(alarm)

    xp = player.xp + reward.xp
    level = player.level
    xp_to_next = player.xp_to_next
    if xp_to_next <= 0:
        xp_to_next = xp_to_next_level(level)
    while xp >= xp_to_next:
        xp -= xp_to_next
        level += 1
        xp_to_next = xp_to_next_level(level)

    today = now.date().isoformat()
    yesterday = (now.date() - timedelta(days=1)).isoformat()

    if player.last_success_date is None:
        streak_days = 1
    elif player.last_success_date == today:
        streak_days = player.streak_days
    elif player.last_success_date == yesterday:
        streak_days = player.streak_days + 1
    else:
        streak_days = 1

    if level > player.level:
        logger.info("Level up: %d -> %d", player.level, level)

    return replace(
        player,
        level=level,
        xp=xp,
        xp_to_next=xp_to_next,
        coins=player.coins + reward.coins,
        streak_days=streak_days,
        last_success_date=today,
        total_wakes=player.total_wakes + 1,
    )


def level_progress(player: Player) -> float:
    """Fraction (0..1) of the current level already earned."""
    if player.xp_to_next <= 0:
        return 0.0
    return min(player.xp / player.xp_to_next, 1.0)
