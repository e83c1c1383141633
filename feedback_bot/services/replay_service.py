from sqlalchemy.orm import Session

from feedback_bot.logging_config import get_logger
from feedback_bot.models import Participant, Question
from feedback_bot.services.question_service import get_question_by_id, list_correspondence

logger = get_logger("replay_service")


def replay_correspondence(db: Session, telegram, question: Question, chat_id: int) -> int:
    """Forward the question thread to chat_id oldest first.

    Stops at the first failed delivery (the DeliveryError propagates); messages
    already forwarded stay delivered. Returns the number of forwarded messages.
    """
    delivered = 0
    for entry in list_correspondence(db, question):
        telegram.forward_message(chat_id, entry.participant.chat_id, entry.message_id)
        delivered += 1

    logger.info(
        f"Replayed {delivered} messages of question {question.id}",
        extra={"context": {"question_id": question.id, "chat_id": chat_id}},
    )
    return delivered


def find_question(db: Session, telegram, employee: Participant, raw_id: str) -> bool:
    """Look up a question by the number typed by an employee and replay it.

    Parse and lookup failures are answered with a plain message; nothing is
    written in any case.
    """
    try:
        question_id = int((raw_id or "").strip().lstrip("#"))
    except ValueError:
        telegram.send_message(employee.chat_id, "Wrong format")
        return False

    question = get_question_by_id(db, question_id)
    if not question:
        telegram.send_message(employee.chat_id, "Question not found")
        return False

    telegram.send_message(employee.chat_id, question.header)
    replay_correspondence(db, telegram, question, employee.chat_id)
    return True
