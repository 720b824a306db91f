import logging
from datetime import time as dtime
from typing import Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from telegram import Update
from telegram.error import TelegramError
from telegram.ext import Application, CommandHandler, ContextTypes

from app.config import settings
from app.crud import (
    cleanup_rate_limits,
    get_user_by_chat_id,
    leaderboard as top_users,
    mark_delivered,
    midnight_sweep,
    pending_deliveries,
    redeem_link_code,
    settle_due_pairings,
)
from app.db import SessionLocal
from app.errors import AppError
from app.logging_setup import configure_logging
from app.rules.phase import user_zone, utcnow
from app.scheduler import Scheduler

logger = logging.getLogger("bot")

ADMIN_TG_IDS: Set[int] = {int(x.strip()) for x in settings.ADMIN_TG_IDS.split(",") if x.strip().isdigit()}


def _is_admin(user_id: int) -> bool:
    return user_id in ADMIN_TG_IDS


async def _link(update: Update, code: str) -> None:
    try:
        with SessionLocal() as db:
            user = redeem_link_code(db, code, update.effective_chat.id, utcnow())
            username = user.username
    except AppError as exc:
        await update.message.reply_text(f"❌ {exc.message}")
        return
    await update.message.reply_text(f"✅ Linked to {username}. Rating updates will arrive here.")


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if context.args:
        await _link(update, context.args[0])
        return
    await update.message.reply_text(
        "🤝 *Accountability Partner*\n\n"
        "Open your profile in the web app, create a Telegram link code and send it here:\n"
        "`/link CODE`\n\n"
        "Commands: /rating, /leaderboard",
        parse_mode="Markdown",
    )


async def link(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not context.args:
        await update.message.reply_text("Usage: /link CODE")
        return
    await _link(update, context.args[0])


async def rating(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    with SessionLocal() as db:
        user = get_user_by_chat_id(db, update.effective_chat.id)
        if not user:
            await update.message.reply_text("This chat is not linked yet. Use /link CODE first.")
            return
        text = f"⭐ {user.username}: rating {user.rating}, pairs {user.total_pairs}"
    await update.message.reply_text(text)


async def leaderboard(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    with SessionLocal() as db:
        users = top_users(db, 10)
        lines = [f"{i}. {u.username} — {u.rating}" for i, u in enumerate(users, start=1)]
    if not lines:
        await update.message.reply_text("The leaderboard is empty.")
        return
    await update.message.reply_text("🏆 *Top 10*\n\n" + "\n".join(lines), parse_mode="Markdown")


async def sweep_now(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_admin(update.effective_user.id):
        await update.message.reply_text("❌ Admins only.")
        return
    with SessionLocal() as db:
        counts = midnight_sweep(db, utcnow())
    summary = ", ".join(f"{name}={n}" for name, n in counts.items())
    await update.message.reply_text(f"✅ Sweep done: {summary}")


async def settlement_tick_job(context: ContextTypes.DEFAULT_TYPE) -> int:
    with SessionLocal() as db:
        outcomes = settle_due_pairings(db, utcnow())
    if outcomes:
        logger.info("settlement tick settled %s pairing(s)", len(outcomes))
    return len(outcomes)


async def notification_relay_job(context: ContextTypes.DEFAULT_TYPE) -> int:
    sent = 0
    with SessionLocal() as db:
        for notification, chat_id in pending_deliveries(db):
            try:
                await context.bot.send_message(chat_id=chat_id, text=notification.message)
            except TelegramError as exc:
                logger.warning("notification %s to chat %s failed: %s", notification.id, chat_id, exc)
                continue
            mark_delivered(db, notification, utcnow())
            sent += 1
    return sent


async def midnight_sweep_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    with SessionLocal() as db:
        midnight_sweep(db, utcnow())


async def rate_limit_cleanup_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    try:
        with SessionLocal() as db:
            cleanup_rate_limits(db, utcnow())
    except SQLAlchemyError:
        logger.exception("rate limit cleanup failed")


def register_jobs(scheduler: Scheduler, tz_name: Optional[str] = None) -> Scheduler:
    tz = user_zone(tz_name or settings.APP_TIMEZONE)
    scheduler.every(settings.TICK_SECONDS, settlement_tick_job, name="settlement-tick", first=5)
    scheduler.every(settings.TICK_SECONDS, notification_relay_job, name="notification-relay", first=10)
    scheduler.every(3600, rate_limit_cleanup_job, name="rate-limit-cleanup", first=60)
    scheduler.daily(dtime(hour=0, minute=0, tzinfo=tz), midnight_sweep_job, name="midnight-sweep")
    # users in other timezones reach midnight between the daily runs
    scheduler.every(settings.SWEEP_SECONDS, midnight_sweep_job, name="timezone-sweep", first=30)
    return scheduler


def build_application(token: str) -> Application:
    app = Application.builder().token(token).build()

    app.add_handler(CommandHandler("start", start))
    app.add_handler(CommandHandler("link", link))
    app.add_handler(CommandHandler("rating", rating))
    app.add_handler(CommandHandler("leaderboard", leaderboard))
    app.add_handler(CommandHandler("sweepnow", sweep_now))

    if app.job_queue:
        register_jobs(Scheduler(app.job_queue))
    else:
        logger.warning("job queue unavailable; install python-telegram-bot[job-queue]")
    return app


def run() -> None:
    configure_logging()
    if not settings.BOT_TOKEN:
        raise RuntimeError("BOT_TOKEN is not set")

    app = build_application(settings.BOT_TOKEN)
    logger.info("bot started tz=%s tick=%ss", settings.APP_TIMEZONE, settings.TICK_SECONDS)
    app.run_polling()


if __name__ == "__main__":
    run()
