from functools import lru_cache
from typing import Optional

import httpx

from feedback_bot.config import settings
from feedback_bot.logging_config import get_logger
from feedback_bot.schemas.telegram import TelegramUpdate

logger = get_logger("telegram_service")


class DeliveryError(Exception):
    """Bot API call failed or answered ok=false."""

    def __init__(self, method: str, description: str):
        self.method = method
        self.description = description
        super().__init__(f"{method} failed: {description}")


class TelegramService:
    """Service for talking to the Telegram Bot API."""

    DEFAULT_HOST = "https://api.telegram.org/"

    def __init__(
        self,
        bot_token: str,
        host: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.bot_token = bot_token
        self.base_url = f"{(host or self.DEFAULT_HOST).rstrip('/')}/bot{bot_token}"
        self.timeout = timeout
        self._transport = transport

    def _make_request(self, method: str, data: Optional[dict] = None, timeout: Optional[float] = None) -> dict:
        """Make request to Telegram API."""
        url = f"{self.base_url}/{method}"
        try:
            with httpx.Client(timeout=timeout or self.timeout, transport=self._transport) as client:
                response = client.post(url, json=data or {})
                return response.json()
        except Exception as e:
            logger.error(f"Telegram API error: {e}", extra={"context": {"method": method}})
            return {"ok": False, "description": str(e)}

    def _request_ok(self, method: str, data: Optional[dict] = None, timeout: Optional[float] = None):
        result = self._make_request(method, data, timeout=timeout)
        if not result.get("ok"):
            raise DeliveryError(method, result.get("description") or "unknown error")
        return result.get("result")

    def send_message(self, chat_id: int, text: str, reply_markup: Optional[dict] = None) -> dict:
        """Send text message, optionally with a reply or inline keyboard."""
        data = {
            "chat_id": chat_id,
            "text": text,
        }
        if reply_markup:
            data["reply_markup"] = reply_markup

        return self._request_ok("sendMessage", data)

    def forward_message(self, chat_id: int, from_chat_id: int, message_id: int) -> dict:
        """Forward message; the recipient sees the original sender."""
        data = {
            "chat_id": chat_id,
            "from_chat_id": from_chat_id,
            "message_id": message_id,
        }
        return self._request_ok("forwardMessage", data)

    def copy_message(self, chat_id: int, from_chat_id: int, message_id: int) -> dict:
        """Re-send message as if the bot wrote it; origin is not shown."""
        data = {
            "chat_id": chat_id,
            "from_chat_id": from_chat_id,
            "message_id": message_id,
        }
        return self._request_ok("copyMessage", data)

    def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None) -> bool:
        data = {"callback_query_id": callback_query_id}
        if text:
            data["text"] = text
        return self._request_ok("answerCallbackQuery", data)

    def get_updates(self, offset: int, timeout: int = 10, limit: int = 100) -> list[TelegramUpdate]:
        """Long-poll for updates starting at offset."""
        data = {
            "offset": offset,
            "timeout": timeout,
            "limit": limit,
            "allowed_updates": ["message", "callback_query"],
        }
        result = self._request_ok("getUpdates", data, timeout=timeout + 10)
        return [TelegramUpdate.model_validate(item) for item in result or []]

    def set_my_commands(self, commands: dict[str, str]) -> bool:
        data = {"commands": [{"command": name, "description": text} for name, text in commands.items()]}
        return self._request_ok("setMyCommands", data)

    def set_webhook(self, url: str) -> bool:
        return self._request_ok("setWebhook", {"url": url, "allowed_updates": ["message", "callback_query"]})

    def delete_webhook(self) -> bool:
        return self._request_ok("deleteWebhook", {})


@lru_cache
def get_telegram_service() -> TelegramService:
    return TelegramService(settings.telegram_bot_token, settings.telegram_api_host)
