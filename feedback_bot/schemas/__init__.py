from feedback_bot.schemas.admin import EmployeeRequest, EmployeeResponse, QuestionSummary, ReviewStats
from feedback_bot.schemas.telegram import TelegramCallbackQuery, TelegramMessage, TelegramUpdate

__all__ = [
    "EmployeeRequest",
    "EmployeeResponse",
    "QuestionSummary",
    "ReviewStats",
    "TelegramCallbackQuery",
    "TelegramMessage",
    "TelegramUpdate",
]
