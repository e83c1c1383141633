"""Participant states and the transition table that drives the dispatcher.

A transition is looked up by (role, current state, event class). A missing
entry means the input is ignored in that state: no reply and no mutation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ParticipantState(str, Enum):
    NEW = "new"
    MAIN = "main"
    REVIEW = "review"
    REVIEW_TEXT = "review_text"
    QUESTION = "question"
    QUESTION_DISCUSSION = "question_discussion"
    SWITCH_RECEIVER = "switch_receiver"
    SEARCH_QUESTION = "search_question"


class Role(str, Enum):
    CUSTOMER = "customer"
    EMPLOYEE = "employee"


class EventClass(str, Enum):
    START = "start"
    MENU_REVIEW = "menu_review"
    MENU_QUESTION = "menu_question"
    MENU_RECEIVE_ON = "menu_receive_on"
    MENU_RECEIVE_OFF = "menu_receive_off"
    MENU_OPEN_QUESTIONS = "menu_open_questions"
    MENU_FIND_QUESTION = "menu_find_question"
    RATING = "rating"
    CLOSE = "close"
    BACK = "back"
    INTERVAL_DAY = "interval_day"
    INTERVAL_WEEK = "interval_week"
    INTERVAL_MONTH = "interval_month"
    INTERVAL_ALL = "interval_all"
    CLAIM = "claim"
    TEXT = "text"


class Action(str, Enum):
    NONE = "none"
    PROMPT = "prompt"
    CREATE_REVIEW = "create_review"
    COMMENT_REVIEW = "comment_review"
    CLOSE_REVIEW = "close_review"
    ASK_QUESTION = "ask_question"
    CLOSE_QUESTION = "close_question"
    CUSTOMER_REPLY = "customer_reply"
    TOGGLE_RECEIVER = "toggle_receiver"
    LIST_OPEN_QUESTIONS = "list_open_questions"
    LIST_REVIEWS = "list_reviews"
    CLAIM_QUESTION = "claim_question"
    RELEASE_QUESTION = "release_question"
    EMPLOYEE_REPLY = "employee_reply"
    FIND_QUESTION = "find_question"


@dataclass(frozen=True)
class Transition:
    action: Action
    next_state: Optional[ParticipantState] = None  # None keeps the current state


# Events that must match an explicit entry; they never fall through to TEXT.
EXPLICIT_ONLY_EVENTS = frozenset({EventClass.START, EventClass.CLAIM})

S = ParticipantState
E = EventClass

TRANSITIONS: dict[tuple[Role, ParticipantState], dict[EventClass, Transition]] = {
    (Role.CUSTOMER, S.NEW): {
        E.TEXT: Transition(Action.NONE, S.MAIN),
    },
    (Role.CUSTOMER, S.MAIN): {
        E.MENU_REVIEW: Transition(Action.PROMPT, S.REVIEW),
        E.MENU_QUESTION: Transition(Action.PROMPT, S.QUESTION),
    },
    (Role.CUSTOMER, S.REVIEW): {
        E.RATING: Transition(Action.CREATE_REVIEW, S.REVIEW_TEXT),
    },
    (Role.CUSTOMER, S.REVIEW_TEXT): {
        E.CLOSE: Transition(Action.CLOSE_REVIEW, S.MAIN),
        E.TEXT: Transition(Action.COMMENT_REVIEW, S.MAIN),
    },
    (Role.CUSTOMER, S.QUESTION): {
        E.CLOSE: Transition(Action.PROMPT, S.MAIN),
        E.TEXT: Transition(Action.ASK_QUESTION, S.QUESTION_DISCUSSION),
    },
    (Role.CUSTOMER, S.QUESTION_DISCUSSION): {
        E.CLOSE: Transition(Action.CLOSE_QUESTION, S.MAIN),
        E.TEXT: Transition(Action.CUSTOMER_REPLY),
    },
    (Role.EMPLOYEE, S.NEW): {
        E.TEXT: Transition(Action.NONE, S.MAIN),
    },
    (Role.EMPLOYEE, S.MAIN): {
        E.MENU_RECEIVE_ON: Transition(Action.TOGGLE_RECEIVER, S.MAIN),
        E.MENU_RECEIVE_OFF: Transition(Action.TOGGLE_RECEIVER, S.MAIN),
        E.MENU_OPEN_QUESTIONS: Transition(Action.LIST_OPEN_QUESTIONS),
        E.MENU_REVIEW: Transition(Action.PROMPT, S.REVIEW),
        E.MENU_FIND_QUESTION: Transition(Action.PROMPT, S.SEARCH_QUESTION),
        E.CLAIM: Transition(Action.CLAIM_QUESTION, S.QUESTION_DISCUSSION),
    },
    (Role.EMPLOYEE, S.REVIEW): {
        E.INTERVAL_DAY: Transition(Action.LIST_REVIEWS),
        E.INTERVAL_WEEK: Transition(Action.LIST_REVIEWS),
        E.INTERVAL_MONTH: Transition(Action.LIST_REVIEWS),
        E.INTERVAL_ALL: Transition(Action.LIST_REVIEWS),
        E.BACK: Transition(Action.PROMPT, S.MAIN),
    },
    (Role.EMPLOYEE, S.QUESTION_DISCUSSION): {
        E.BACK: Transition(Action.RELEASE_QUESTION, S.MAIN),
        E.CLAIM: Transition(Action.CLAIM_QUESTION, S.QUESTION_DISCUSSION),
        E.TEXT: Transition(Action.EMPLOYEE_REPLY),
    },
    (Role.EMPLOYEE, S.SEARCH_QUESTION): {
        E.BACK: Transition(Action.PROMPT, S.MAIN),
        E.TEXT: Transition(Action.FIND_QUESTION),
    },
}


def role_of(is_employee: bool) -> Role:
    """The employee flag is authoritative for which table applies."""
    return Role.EMPLOYEE if is_employee else Role.CUSTOMER


def lookup(role: Role, state: ParticipantState, event: EventClass) -> Optional[Transition]:
    """Find the transition for an event, falling back to the state's TEXT entry."""
    row = TRANSITIONS.get((role, state), {})
    if event in row:
        return row[event]
    if event in EXPLICIT_ONLY_EVENTS:
        return None
    return row.get(EventClass.TEXT)

