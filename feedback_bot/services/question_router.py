"""Fan-out of new questions to employees and the claim/release of a question."""

from typing import Optional

from sqlalchemy.orm import Session

from feedback_bot.logging_config import get_logger
from feedback_bot.models import Participant, Question
from feedback_bot.services.participant_service import list_receivers
from feedback_bot.services.prompt_service import Buttons, format_question_offer, one_button_inline_keyboard
from feedback_bot.services.question_service import (
    clear_answerer,
    get_open_question_by_answerer,
    get_question_by_id,
    list_new_questions,
    try_assign_answerer,
)
from feedback_bot.services.replay_service import replay_correspondence
from feedback_bot.services.result import Result
from feedback_bot.services.telegram_service import DeliveryError

logger = get_logger("question_router")

CLAIM_CALLBACK_KEY = 1

ALREADY_TAKEN = "Question already taken"


def claim_callback_data(question_id: int) -> str:
    return f"{CLAIM_CALLBACK_KEY}-{question_id}"


def parse_callback_data(data: Optional[str]) -> tuple[int, str]:
    """Split "<key>-<payload>"; an unparsable key gives (0, "")."""
    key, _, payload = (data or "").partition("-")
    try:
        return int(key), payload
    except ValueError:
        return 0, ""


def send_question_offers(telegram, chat_id: int, questions: list[Question]) -> None:
    """Send each question with a single claim button."""
    for question in questions:
        telegram.send_message(
            chat_id,
            format_question_offer(question),
            reply_markup=one_button_inline_keyboard(Buttons.TAKE_QUESTION, claim_callback_data(question.id)),
        )


def assign_question_to_employees(db: Session, telegram, question: Question) -> list[int]:
    """Offer a new question to every receiving employee. First claim wins.

    A failed delivery to one employee does not stop the fan-out; the chat ids
    that failed are returned.
    """
    failed = []
    receivers = list_receivers(db)
    for receiver in receivers:
        try:
            send_question_offers(telegram, receiver.chat_id, [question])
        except DeliveryError as e:
            logger.error(
                f"Question offer not delivered: {e}",
                extra={"context": {"question_id": question.id, "chat_id": receiver.chat_id}},
            )
            failed.append(receiver.chat_id)

    logger.info(
        f"Question {question.id} offered to {len(receivers) - len(failed)} employees",
        extra={"context": {"question_id": question.id, "failed": failed}},
    )
    return failed


def claim_question(db: Session, telegram, employee: Participant, question_id: int) -> Result[Question]:
    """Make the employee the answerer of an open unclaimed question and replay its thread."""
    current = get_open_question_by_answerer(db, employee)
    if current and current.id == question_id:
        return Result.failure(f"You are already answering question #{question_id}", "already_yours", current)
    if current:
        return Result.failure(f"Finish question #{current.id} first", "busy", current)

    if not try_assign_answerer(db, question_id, employee):
        return Result.failure(ALREADY_TAKEN, "already_taken")

    question = get_question_by_id(db, question_id)
    try:
        replay_correspondence(db, telegram, question, employee.chat_id)
    except DeliveryError:
        clear_answerer(db, question)
        raise

    logger.info(
        f"Employee {employee.id} claimed question {question_id}",
        extra={"context": {"question_id": question_id, "employee_id": employee.id}},
    )
    return Result.success(question)


def release_question(db: Session, employee: Participant) -> Result[Question]:
    """Drop the employee's claim without closing the question."""
    question = get_open_question_by_answerer(db, employee)
    if not question:
        return Result.failure("No question to release", "not_found")

    clear_answerer(db, question)
    logger.info(
        f"Employee {employee.id} released question {question.id}",
        extra={"context": {"question_id": question.id, "employee_id": employee.id}},
    )
    return Result.success(question)


def offer_open_questions(db: Session, telegram, employee: Participant) -> int:
    """Send every claimable question to the employee, or "No questions"."""
    questions = list_new_questions(db)
    if not questions:
        telegram.send_message(employee.chat_id, "No questions")
        return 0
    send_question_offers(telegram, employee.chat_id, questions)
    return len(questions)
