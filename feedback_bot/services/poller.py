import asyncio
from typing import Callable

from sqlalchemy.orm import Session

from feedback_bot.logging_config import get_logger
from feedback_bot.services.cursor_service import get_offset, save_offset
from feedback_bot.services.dispatcher import process_update
from feedback_bot.services.telegram_service import DeliveryError

logger = get_logger("poller")


def _read_offset(session_factory: Callable[[], Session]) -> int:
    db = session_factory()
    try:
        return get_offset(db)
    finally:
        db.close()


def _write_offset(session_factory: Callable[[], Session], offset: int) -> None:
    db = session_factory()
    try:
        save_offset(db, offset)
    finally:
        db.close()


def _process(session_factory: Callable[[], Session], telegram, update) -> bool:
    db = session_factory()
    try:
        return process_update(db, telegram, update)
    except Exception as exc:
        db.rollback()
        logger.error(
            f"Update processing crashed: {exc}",
            extra={"context": {"update_id": update.update_id}},
            exc_info=True,
        )
        return False
    finally:
        db.close()


def poll_once(session_factory: Callable[[], Session], telegram, timeout: int = 10) -> int:
    """Fetch one batch of updates, dispatch them in order and advance the stored cursor.

    Each update gets its own session. The cursor moves only past updates that
    were processed successfully: the first failure ends the batch and the
    failed update is fetched again on the next cycle. Returns the number of
    updates processed successfully.
    """
    offset = _read_offset(session_factory)
    try:
        updates = telegram.get_updates(offset, timeout=timeout)
    except DeliveryError as e:
        logger.error(f"getUpdates failed: {e}", extra={"context": {"offset": offset}})
        return 0

    next_offset = offset
    processed = 0
    for update in sorted(updates, key=lambda item: item.update_id):
        if not _process(session_factory, telegram, update):
            logger.warning(
                "Batch stopped at failed update",
                extra={"context": {"update_id": update.update_id, "offset": next_offset}},
            )
            # confirm everything before the failed update, never the update itself
            next_offset = max(next_offset, update.update_id)
            break
        next_offset = update.update_id + 1
        processed += 1

    if next_offset != offset:
        _write_offset(session_factory, next_offset)
        logger.info(
            f"Processed {processed} of {len(updates)} updates",
            extra={"context": {"offset": next_offset}},
        )
    return processed


async def run_poller(session_factory: Callable[[], Session], telegram, timeout: int, interval_seconds: float) -> None:
    """Poll until cancelled; batches never overlap and a fixed delay separates cycles."""
    while True:
        try:
            await asyncio.to_thread(poll_once, session_factory, telegram, timeout)
            await asyncio.sleep(max(interval_seconds, 0.1))
        except asyncio.CancelledError:
            break
        except Exception as exc:
            logger.error(
                "Poller loop failed",
                extra={"context": {"error": str(exc)}},
            )
            await asyncio.sleep(max(interval_seconds, 0.1))
