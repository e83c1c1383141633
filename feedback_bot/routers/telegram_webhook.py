import json
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from feedback_bot.database import get_db
from feedback_bot.logging_config import get_logger
from feedback_bot.schemas.telegram import TelegramUpdate, TelegramWebhookResponse
from feedback_bot.services.dispatcher import process_update
from feedback_bot.services.telegram_service import TelegramService, get_telegram_service

logger = get_logger("telegram_webhook")

router = APIRouter()


async def parse_telegram_update(request: Request) -> Optional[dict]:
    """
    Parse Telegram update with tolerant decoding to avoid utf-8 crashes.
    Returns dict or None.
    """
    try:
        return await request.json()
    except Exception as e:
        logger.warning(f"Standard request.json() failed: {e}, fallback decoding")

    raw = await request.body()
    for enc in ("utf-8", "latin-1"):
        try:
            return json.loads(raw.decode(enc, errors="replace"))
        except ValueError:
            continue

    logger.error("Failed to decode Telegram webhook payload after fallbacks")
    return None


@router.post("/telegram-webhook", response_model=TelegramWebhookResponse)
async def handle_telegram_webhook(
    request: Request,
    db: Session = Depends(get_db),
    telegram: TelegramService = Depends(get_telegram_service),
):
    """Dispatch one update pushed by Telegram (webhook mode)."""
    body = await parse_telegram_update(request)
    if body is None:
        return TelegramWebhookResponse(success=False, message="Invalid telegram payload")

    try:
        update = TelegramUpdate.model_validate(body)
    except ValidationError as e:
        logger.warning(f"Unexpected update shape: {e}")
        return TelegramWebhookResponse(success=False, message="Invalid telegram payload")

    ok = process_update(db, telegram, update)
    return TelegramWebhookResponse(
        success=ok,
        message=None if ok else "Update not processed",
        update_id=update.update_id,
    )
