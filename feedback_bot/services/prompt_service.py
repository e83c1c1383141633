"""Menus, keyboards and the prompt shown on entering each state."""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from feedback_bot.models import Participant, Question
from feedback_bot.services.question_service import get_open_question_by_asker
from feedback_bot.services.state_machine import ParticipantState


class Buttons:
    REVIEW = "⭐Review"
    QUESTION = "❓Question"
    CLOSE = "❌Close"
    RECEIVE_ON = "❓Receive questions"
    RECEIVE_OFF = "❓Do not receive questions"
    OPEN_QUESTIONS = "❓Open questions"
    FIND_QUESTION = "❓Find a question"
    REVIEWS = "⭐Reviews"
    DAY = "📅For a day"
    WEEK = "📅For a week"
    MONTH = "📅For a month"
    ALL = "📅All (no text)"
    BACK = "↩️Back"
    TAKE_QUESTION = "Take question"


CUSTOMER_MAIN = [Buttons.REVIEW, Buttons.QUESTION]
CUSTOMER_STARS = ["⭐⭐⭐⭐⭐", "⭐⭐⭐⭐", "⭐⭐⭐", "⭐⭐", "⭐"]
CUSTOMER_CLOSE = [Buttons.CLOSE]
EMPLOYEE_MAIN = [Buttons.RECEIVE_ON, Buttons.OPEN_QUESTIONS, Buttons.FIND_QUESTION, Buttons.REVIEWS]
EMPLOYEE_MAIN_RECEIVING = [Buttons.RECEIVE_OFF, Buttons.OPEN_QUESTIONS, Buttons.FIND_QUESTION, Buttons.REVIEWS]
EMPLOYEE_REVIEW = [Buttons.DAY, Buttons.WEEK, Buttons.MONTH, Buttons.ALL, Buttons.BACK]
EMPLOYEE_EXIT = [Buttons.BACK]

CUSTOMER_GREETING = 'Greetings 👋\nWith my help, you can leave a "⭐Review" \nor ask a "❓Question"'
EMPLOYEE_GREETING = 'Greetings 👋\nI implement customer feedback\nTo receive questions click\n"❓Receive questions"'


@dataclass
class Prompt:
    text: str
    reply_markup: Optional[dict] = None


def reply_keyboard(*labels: str) -> dict:
    """One button per row, resized to fit."""
    return {
        "keyboard": [[{"text": label}] for label in labels],
        "resize_keyboard": True,
    }


def one_button_inline_keyboard(text: str, callback_data: str) -> dict:
    return {"inline_keyboard": [[{"text": text, "callback_data": callback_data}]]}


def employee_main_keyboard(participant: Participant) -> dict:
    if participant.is_receiver:
        return reply_keyboard(*EMPLOYEE_MAIN_RECEIVING)
    return reply_keyboard(*EMPLOYEE_MAIN)


def greeting_for(participant: Participant) -> Prompt:
    if participant.is_employee:
        return Prompt(EMPLOYEE_GREETING, employee_main_keyboard(participant))
    return Prompt(CUSTOMER_GREETING, reply_keyboard(*CUSTOMER_MAIN))


def receiver_confirmation(participant: Participant) -> Prompt:
    if participant.is_receiver:
        return Prompt("Now You receive questions", employee_main_keyboard(participant))
    return Prompt("You no longer receive questions", employee_main_keyboard(participant))


def format_question_offer(question: Question) -> str:
    return f"Question #{question.id}\n{question.header}"


def _customer_prompt(db: Session, participant: Participant, state: ParticipantState) -> Optional[Prompt]:
    if state == ParticipantState.MAIN:
        return Prompt("If you have any questions or review, I'm listening carefully", reply_keyboard(*CUSTOMER_MAIN))
    if state == ParticipantState.REVIEW:
        return Prompt("Please rate from 1 to 5", reply_keyboard(*CUSTOMER_STARS))
    if state == ParticipantState.REVIEW_TEXT:
        return Prompt(
            'Thank you for your review\nYou can also leave a comment\nOr press "❌Close"',
            reply_keyboard(*CUSTOMER_CLOSE),
        )
    if state == ParticipantState.QUESTION:
        return Prompt('Please ask your question\nOr click "❌Close"', reply_keyboard(*CUSTOMER_CLOSE))
    if state == ParticipantState.QUESTION_DISCUSSION:
        question = get_open_question_by_asker(db, participant)
        if not question:
            return Prompt("Please reopen the question")
        return Prompt(
            f"Your question #{question.id}\nThank you for your question\nAn available employee will answer you shortly"
        )
    return None


def _employee_prompt(participant: Participant, state: ParticipantState) -> Optional[Prompt]:
    if state == ParticipantState.MAIN:
        return Prompt("Choose an action", employee_main_keyboard(participant))
    if state == ParticipantState.REVIEW:
        return Prompt("Select Interval", reply_keyboard(*EMPLOYEE_REVIEW))
    if state == ParticipantState.QUESTION_DISCUSSION:
        return Prompt("You have entered a chat with a user", reply_keyboard(*EMPLOYEE_EXIT))
    if state == ParticipantState.SEARCH_QUESTION:
        return Prompt("Enter question number", reply_keyboard(*EMPLOYEE_EXIT))
    return None


def prompt_for(db: Session, participant: Participant) -> Optional[Prompt]:
    """Prompt for the participant's current state; None when the state shows nothing."""
    state = ParticipantState(participant.state)
    if participant.is_employee:
        return _employee_prompt(participant, state)
    return _customer_prompt(db, participant, state)


def send_prompt(telegram, chat_id: int, prompt: Optional[Prompt]) -> None:
    if prompt is None:
        return
    telegram.send_message(chat_id, prompt.text, reply_markup=prompt.reply_markup)
