from feedback_bot.models.correspondence import CorrespondenceEntry
from feedback_bot.models.participant import Participant
from feedback_bot.models.question import Question
from feedback_bot.models.review import Review
from feedback_bot.models.update_cursor import UpdateCursor

__all__ = [
    "Participant",
    "Review",
    "Question",
    "CorrespondenceEntry",
    "UpdateCursor",
]
