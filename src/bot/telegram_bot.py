"""
WakeQuest — Telegram Bot.

Telegram is the user interface: alarms are created and managed with
commands, ring as chat pings, and are dismissed by answering the math
mission in plain messages.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)
from telegram.helpers import escape_markdown

from src.config import settings
from src.core.alarm_parser import apply_edits, parse_addalarm_args
from src.core.occurrence import describe_repeat_days, format_occurrence
from src.core.progression import level_progress
from src.core.wake_service import AnswerOutcome
from src.data.models import AlarmNotFoundError, AlarmValidationError, new_alarm

if TYPE_CHECKING:
    from datetime import datetime

    from src.core.reconciler import ScheduleReconciler
    from src.core.wake_service import AnswerResult, WakeService
    from src.data.db import AlarmDB, PlayerDB
    from src.data.models import Alarm, Player

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users.

    Does NOT send any response to strangers — the bot must not reveal
    its existence to unauthorized users.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _progress_bar(fraction: float, width: int = 10) -> str:
    filled = int(round(max(0.0, min(fraction, 1.0)) * width))
    return "▰" * filled + "▱" * (width - filled)


def _format_alarm_line(alarm: Alarm, next_ring: datetime | None) -> str:
    """One line of the /alarms list.

    `next_ring` is the instant actually armed for the alarm, if any.
    """
    status = "🔔" if alarm.enabled else "🔕"
    line = (
        f"{status} `{alarm.id}` *{alarm.time_hhmm}* "
        f"{describe_repeat_days(alarm.repeat_days)} · {alarm.difficulty}"
    )
    if alarm.label:
        line += f" · {escape_markdown(alarm.label)}"
    if next_ring is not None:
        line += f"\n    next: {format_occurrence(next_ring)}"
    elif alarm.enabled:
        line += "\n    not armed, /enable to re-arm"
    return line


def _format_next_ring(next_ring: datetime | None) -> str:
    if next_ring is None:
        return "not armed"
    return format_occurrence(next_ring)


def _format_stats(player: Player) -> str:
    bar = _progress_bar(level_progress(player))
    last = player.last_success_date or "never"
    return (
        f"*Level {player.level}*\n"
        f"{bar} {player.xp}/{player.xp_to_next} XP\n"
        f"🪙 Coins: {player.coins}\n"
        f"🔥 Streak: {player.streak_days} day(s)\n"
        f"⏰ Wakes: {player.total_wakes} (last: {last})"
    )


def _format_answer_result(result: AnswerResult) -> str:
    """Reply text for an answer to the math mission."""
    if result.outcome is AnswerOutcome.NO_MISSION:
        return "No alarm is ringing right now. Use /help to see what I can do."
    if result.outcome is AnswerOutcome.INVALID:
        return f"Numbers only, please.\n\n`{result.next_problem}`"
    if result.outcome is AnswerOutcome.WRONG:
        return f"❌ Missed it. Streak reset (0/{result.required}).\n\n`{result.next_problem}`"
    if result.outcome is AnswerOutcome.CORRECT:
        return (
            f"✅ Nice! {result.streak}/{result.required}\n\n"
            f"`{result.next_problem}`"
        )
    player = result.player
    return (
        "🏆 *Victory!* Alarm cleared.\n\n"
        f"Level {player.level} · {player.xp}/{player.xp_to_next} XP · "
        f"🪙 {player.coins} · 🔥 {player.streak_days}"
    )


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — welcome message."""
    await update.message.reply_text(
        "Welcome to *WakeQuest*!\n\n"
        "Set alarms here. When one rings, solve the math mission to stop it "
        "and earn XP, coins and a wake-up streak.\n\n"
        "Type /help for the full command list.",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "*Available commands:*\n"
        "/addalarm HH:MM [days] [easy|medium|hard] [label] — New alarm\n"
        "    days: once, daily, weekdays, weekends, mon,wed,fri\n"
        "/alarms — List alarms and their next ring\n"
        "/edit <id> key=value … — time, days, difficulty, label, "
        "snooze, snoozemin, snoozemax, volume\n"
        "/enable <id>, /disable <id> — Switch an alarm on/off\n"
        "/deletealarm <id> — Delete an alarm\n"
        "/snooze — Snooze the ringing alarm\n"
        "/stats — Level, XP, coins and streak\n"
        "/help — Show this message",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_addalarm(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /addalarm HH:MM [days] [difficulty] [label...]."""
    reconciler: ScheduleReconciler = context.bot_data["reconciler"]

    parsed = parse_addalarm_args(context.args or [])
    if parsed is None:
        await update.message.reply_text(
            "Usage: /addalarm HH:MM [days] [easy|medium|hard] [label]\n"
            "Example: /addalarm 07:30 weekdays medium Work"
        )
        return

    alarm = new_alarm(
        snooze_minutes=settings.DEFAULT_SNOOZE_MINUTES,
        snooze_max=settings.DEFAULT_SNOOZE_MAX,
        **parsed,
    )
    try:
        await reconciler.create_alarm(alarm)
    except AlarmValidationError as exc:
        await update.message.reply_text(f"Alarm not created: {exc}")
        return
    except Exception as exc:
        logger.error("/addalarm error: %s", exc)
        await update.message.reply_text("Couldn't create the alarm. Please try again.")
        return

    label = f" · {escape_markdown(alarm.label)}" if alarm.label else ""
    await update.message.reply_text(
        f"✅ Alarm `{alarm.id}` set for *{alarm.time_hhmm}* "
        f"({describe_repeat_days(alarm.repeat_days)}, {alarm.difficulty}){label}\n"
        f"Next ring: {_format_next_ring(reconciler.next_ring(alarm))}",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_alarms(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /alarms — list every alarm."""
    alarm_db: AlarmDB = context.bot_data["alarm_db"]
    reconciler: ScheduleReconciler = context.bot_data["reconciler"]

    try:
        alarms = alarm_db.list_all()
    except Exception as exc:
        logger.error("/alarms error: %s", exc)
        await update.message.reply_text("Couldn't load alarms. Please try again.")
        return

    if not alarms:
        await update.message.reply_text("No alarms yet. Add one with /addalarm.")
        return

    lines = ["*Your alarms:*\n"]
    lines.extend(_format_alarm_line(a, reconciler.next_ring(a)) for a in alarms)
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_edit(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /edit <id> key=value ..."""
    reconciler: ScheduleReconciler = context.bot_data["reconciler"]
    alarm_db: AlarmDB = context.bot_data["alarm_db"]

    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text(
            "Usage: /edit <alarm_id> key=value …\n"
            "Example: /edit ab12cd34 time=06:45 days=weekdays"
        )
        return

    alarm_id = args[0]
    alarm = alarm_db.get_alarm(alarm_id)
    if alarm is None:
        await update.message.reply_text(f"Alarm {alarm_id} not found. Use /alarms to see IDs.")
        return

    try:
        edited = await reconciler.edit_alarm(apply_edits(alarm, args[1:]))
    except AlarmValidationError as exc:
        await update.message.reply_text(f"Nothing changed: {exc}")
        return
    except AlarmNotFoundError:
        await update.message.reply_text(f"Alarm {alarm_id} not found. Use /alarms to see IDs.")
        return
    except Exception as exc:
        logger.error("/edit error: %s", exc)
        await update.message.reply_text("Couldn't update the alarm. Please try again.")
        return

    await update.message.reply_text(
        "✅ Updated:\n" + _format_alarm_line(edited, reconciler.next_ring(edited)),
        parse_mode="Markdown",
    )


async def _toggle(
    update: Update, context: ContextTypes.DEFAULT_TYPE, enabled: bool,
) -> None:
    reconciler: ScheduleReconciler = context.bot_data["reconciler"]
    verb = "enable" if enabled else "disable"

    args = context.args
    if not args:
        await update.message.reply_text(f"Usage: /{verb} <alarm_id>\nUse /alarms to see IDs.")
        return

    alarm_id = args[0]
    try:
        alarm = await reconciler.set_enabled(alarm_id, enabled)
    except AlarmNotFoundError:
        await update.message.reply_text(f"Alarm {alarm_id} not found. Use /alarms to see IDs.")
        return
    except Exception as exc:
        logger.error("/%s error: %s", verb, exc)
        await update.message.reply_text(f"Couldn't {verb} alarm {alarm_id}. Please try again.")
        return

    if enabled:
        await update.message.reply_text(
            f"🔔 Alarm {alarm.time_hhmm} enabled. "
            f"Next ring: {_format_next_ring(reconciler.next_ring(alarm))}"
        )
    else:
        await update.message.reply_text(f"🔕 Alarm {alarm.time_hhmm} disabled.")


@authorized_only
async def cmd_enable(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /enable <id>."""
    await _toggle(update, context, enabled=True)


@authorized_only
async def cmd_disable(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /disable <id>."""
    await _toggle(update, context, enabled=False)


@authorized_only
async def cmd_deletealarm(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /deletealarm <id>."""
    reconciler: ScheduleReconciler = context.bot_data["reconciler"]

    args = context.args
    if not args:
        await update.message.reply_text("Usage: /deletealarm <alarm_id>\nUse /alarms to see IDs.")
        return

    alarm_id = args[0]
    try:
        deleted = await reconciler.delete_alarm(alarm_id)
    except Exception as exc:
        logger.error("/deletealarm error: %s", exc)
        await update.message.reply_text("Couldn't delete the alarm. Please try again.")
        return

    if deleted:
        await update.message.reply_text(f"🗑 Alarm {alarm_id} deleted.")
    else:
        await update.message.reply_text(f"Alarm {alarm_id} not found or already deleted.")


@authorized_only
async def cmd_snooze(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /snooze — push the ringing alarm back by its snooze interval."""
    wake: WakeService = context.bot_data["wake"]

    if wake.active_alarm_id is None:
        await update.message.reply_text("No alarm is ringing right now.")
        return

    try:
        at = await wake.snooze()
    except Exception as exc:
        logger.error("/snooze error: %s", exc)
        await update.message.reply_text("Couldn't snooze. Solve the mission instead!")
        return

    if at is None:
        await update.message.reply_text("No snoozes remaining. Solve the mission to stop the alarm!")
        return
    await update.message.reply_text(f"😴 Snoozed until {at:%H:%M}.")


@authorized_only
async def cmd_stats(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /stats — show player progression."""
    player_db: PlayerDB = context.bot_data["player_db"]

    try:
        player = player_db.get()
    except Exception as exc:
        logger.error("/stats error: %s", exc)
        await update.message.reply_text("Couldn't load your stats. Please try again.")
        return

    await update.message.reply_text(_format_stats(player), parse_mode="Markdown")


# ---------------------------------------------------------------------------
# Message handlers
# ---------------------------------------------------------------------------


@authorized_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle plain text messages — answers to the math mission."""
    wake: WakeService = context.bot_data["wake"]

    try:
        result = await wake.submit_answer(update.message.text)
    except Exception as exc:
        logger.error("Mission answer error: %s", exc)
        await update.message.reply_text("Something went wrong. Please try again.")
        return

    await update.message.reply_text(_format_answer_result(result), parse_mode="Markdown")


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


async def _on_startup(app: Application) -> None:
    """Re-arm persisted alarms; JobQueue triggers do not survive restarts."""
    reconciler: ScheduleReconciler = app.bot_data["reconciler"]
    try:
        report = await reconciler.reconcile()
    except Exception as exc:
        logger.error("Startup reconciliation failed: %s", exc)
        return
    logger.info("Startup reconciliation re-armed %d alarm(s)", len(report.rearmed))


def build_app() -> Application:
    """Build and configure the Telegram Application with all handlers."""
    from src.adapters.telegram_notifier import TelegramNotifier
    from src.adapters.telegram_ringer import TelegramRinger
    from src.adapters.telegram_trigger import TelegramTrigger
    from src.core.reconciler import ScheduleReconciler
    from src.core.wake_service import WakeService
    from src.data.db import AlarmDB, PlayerDB, ScheduleMapDB

    app = (
        ApplicationBuilder()
        .token(settings.TELEGRAM_BOT_TOKEN)
        .post_init(_on_startup)
        .build()
    )

    alarm_db = AlarmDB()
    player_db = PlayerDB()
    notifier = TelegramNotifier(app.bot)
    triggers = TelegramTrigger(app.job_queue)
    reconciler = ScheduleReconciler(alarm_db, ScheduleMapDB(), triggers)
    ringer = TelegramRinger(
        app.job_queue,
        notifier,
        settings.ALLOWED_USER_IDS,
        interval_seconds=settings.RING_INTERVAL_SECONDS,
        max_repeats=settings.RING_MAX_REPEATS,
    )
    wake = WakeService(reconciler, player_db, notifier, ringer, settings.ALLOWED_USER_IDS)
    triggers.set_fire_handler(wake.on_trigger_fired)

    # Store services in bot_data for handler access
    app.bot_data["alarm_db"] = alarm_db
    app.bot_data["player_db"] = player_db
    app.bot_data["reconciler"] = reconciler
    app.bot_data["wake"] = wake

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("addalarm", cmd_addalarm))
    app.add_handler(CommandHandler("alarms", cmd_alarms))
    app.add_handler(CommandHandler("edit", cmd_edit))
    app.add_handler(CommandHandler("enable", cmd_enable))
    app.add_handler(CommandHandler("disable", cmd_disable))
    app.add_handler(CommandHandler("deletealarm", cmd_deletealarm))
    app.add_handler(CommandHandler("snooze", cmd_snooze))
    app.add_handler(CommandHandler("stats", cmd_stats))

    # Text messages (non-command) are mission answers
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting WakeQuest bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
