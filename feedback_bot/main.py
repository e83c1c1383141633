import asyncio
import os

from fastapi import Depends, FastAPI
from sqlalchemy.orm import Session

from feedback_bot.config import settings
from feedback_bot.database import SessionLocal, get_db, init_db
from feedback_bot.logging_config import get_logger, setup_logging
from feedback_bot.models import CorrespondenceEntry, Participant, Question, Review
from feedback_bot.routers import admin, telegram_webhook
from feedback_bot.services.poller import run_poller
from feedback_bot.services.telegram_service import DeliveryError, get_telegram_service

setup_logging(settings.log_level)

app = FastAPI(
    title="Feedback Bot",
    description="Telegram bot routing reviews and questions between customers and employees",
    version="0.1.0",
)

app.include_router(telegram_webhook.router)
app.include_router(admin.router)

logger = get_logger("main")
_poller_task: asyncio.Task | None = None

BOT_COMMANDS = {"start": "Starts chatting with the bot"}


def _is_poller_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return bool(settings.telegram_bot_token) and settings.update_mode == "polling"


def _configure_bot() -> None:
    """Register commands and point Telegram at the configured update mode."""
    telegram = get_telegram_service()
    try:
        telegram.set_my_commands(BOT_COMMANDS)
        if settings.update_mode == "webhook" and settings.webhook_url:
            telegram.set_webhook(settings.webhook_url)
        elif settings.update_mode == "polling":
            telegram.delete_webhook()
    except DeliveryError as e:
        logger.error(f"Bot configuration failed: {e}")


@app.on_event("startup")
async def start_bot() -> None:
    global _poller_task
    init_db()
    if not settings.telegram_bot_token:
        logger.warning("TELEGRAM_BOT_TOKEN is not set, bot disabled")
        return
    await asyncio.to_thread(_configure_bot)
    if not _is_poller_enabled():
        return
    if _poller_task is None or _poller_task.done():
        _poller_task = asyncio.create_task(
            run_poller(
                SessionLocal,
                get_telegram_service(),
                timeout=settings.poll_timeout_seconds,
                interval_seconds=settings.poll_interval_seconds,
            )
        )
        logger.info("Update poller started")


@app.on_event("shutdown")
async def stop_bot() -> None:
    global _poller_task
    if _poller_task is None:
        return
    _poller_task.cancel()
    try:
        await _poller_task
    except asyncio.CancelledError:
        pass
    _poller_task = None


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "participants": db.query(Participant).count(),
        "reviews": db.query(Review).count(),
        "questions": db.query(Question).count(),
        "correspondence": db.query(CorrespondenceEntry).count(),
    }
