"""Turns one inbound Telegram update into a participant state transition.

The update is classified once into an EventClass; the transition table in
state_machine decides which action runs and which state follows. Every store
write is committed immediately, so entities are re-fetched rather than kept
between updates.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from feedback_bot.logging_config import LoggerAdapter, get_logger
from feedback_bot.models import Participant
from feedback_bot.schemas.telegram import TelegramUpdate
from feedback_bot.services.participant_service import (
    change_state,
    get_participant_by_chat_id,
    register_participant,
    set_receiver,
)
from feedback_bot.services.prompt_service import (
    Buttons,
    greeting_for,
    prompt_for,
    receiver_confirmation,
    send_prompt,
)
from feedback_bot.services.question_router import (
    CLAIM_CALLBACK_KEY,
    assign_question_to_employees,
    claim_question,
    offer_open_questions,
    parse_callback_data,
    release_question,
)
from feedback_bot.services.question_service import (
    add_correspondence,
    clear_answerer,
    close_open_questions_by_asker,
    close_question,
    create_question,
    get_open_question_by_answerer,
    get_open_question_by_asker,
    set_has_answer,
)
from feedback_bot.services.replay_service import find_question
from feedback_bot.services.review_service import (
    NO_COMMENT,
    ReviewInterval,
    create_review,
    fill_review_text,
    parse_rating,
    send_reviews,
)
from feedback_bot.services.state_machine import (
    Action,
    EventClass,
    ParticipantState,
    Transition,
    lookup,
    role_of,
)
from feedback_bot.services.telegram_service import DeliveryError

logger = get_logger("dispatcher")

START_COMMAND = "/start"
UNKNOWN_SENDER_REPLY = "Press /start"

MENU_EVENTS = {
    Buttons.REVIEW: EventClass.MENU_REVIEW,
    Buttons.REVIEWS: EventClass.MENU_REVIEW,
    Buttons.QUESTION: EventClass.MENU_QUESTION,
    Buttons.RECEIVE_ON: EventClass.MENU_RECEIVE_ON,
    Buttons.RECEIVE_OFF: EventClass.MENU_RECEIVE_OFF,
    Buttons.OPEN_QUESTIONS: EventClass.MENU_OPEN_QUESTIONS,
    Buttons.FIND_QUESTION: EventClass.MENU_FIND_QUESTION,
    Buttons.CLOSE: EventClass.CLOSE,
    Buttons.BACK: EventClass.BACK,
    Buttons.DAY: EventClass.INTERVAL_DAY,
    Buttons.WEEK: EventClass.INTERVAL_WEEK,
    Buttons.MONTH: EventClass.INTERVAL_MONTH,
    Buttons.ALL: EventClass.INTERVAL_ALL,
}

INTERVALS = {
    EventClass.INTERVAL_DAY: ReviewInterval.DAY,
    EventClass.INTERVAL_WEEK: ReviewInterval.WEEK,
    EventClass.INTERVAL_MONTH: ReviewInterval.MONTH,
    EventClass.INTERVAL_ALL: ReviewInterval.ALL,
}


class ParticipantNotFoundError(Exception):
    def __init__(self, chat_id: int):
        self.chat_id = chat_id
        super().__init__(f"Participant {chat_id} is not found")


@dataclass
class InboundEvent:
    update_id: int
    event: EventClass
    chat_id: int
    text: str = ""
    message_id: Optional[int] = None
    payload: str = ""
    nickname: Optional[str] = None
    callback_query_id: Optional[str] = None


def classify_text(text: str) -> EventClass:
    if text == START_COMMAND or text.startswith(START_COMMAND + " "):
        return EventClass.START
    if text in MENU_EVENTS:
        return MENU_EVENTS[text]
    if parse_rating(text) is not None:
        return EventClass.RATING
    return EventClass.TEXT


def classify_update(update: TelegramUpdate) -> Optional[InboundEvent]:
    """Reduce an update to the event the state machine understands; None if not actionable."""
    if update.message:
        message = update.message
        if message.text is None or not message.from_user or message.from_user.is_bot:
            return None
        return InboundEvent(
            update_id=update.update_id,
            event=classify_text(message.text),
            chat_id=message.from_user.id,
            text=message.text,
            message_id=message.message_id,
            nickname=message.from_user.username,
        )

    if update.callback_query:
        callback = update.callback_query
        chat_id = callback.message.chat.id if callback.message else callback.from_user.id
        key, payload = parse_callback_data(callback.data)
        return InboundEvent(
            update_id=update.update_id,
            event=EventClass.CLAIM if key == CLAIM_CALLBACK_KEY else EventClass.TEXT,
            chat_id=chat_id,
            payload=payload,
            nickname=callback.from_user.username,
            callback_query_id=callback.id,
        )

    return None


class UpdateDispatcher:
    def __init__(self, db: Session, telegram):
        self.db = db
        self.telegram = telegram
        self._handlers = {
            Action.NONE: self._handle_none,
            Action.PROMPT: self._handle_prompt,
            Action.CREATE_REVIEW: self._handle_create_review,
            Action.COMMENT_REVIEW: self._handle_comment_review,
            Action.CLOSE_REVIEW: self._handle_close_review,
            Action.ASK_QUESTION: self._handle_ask_question,
            Action.CLOSE_QUESTION: self._handle_close_question,
            Action.CUSTOMER_REPLY: self._handle_customer_reply,
            Action.TOGGLE_RECEIVER: self._handle_toggle_receiver,
            Action.LIST_OPEN_QUESTIONS: self._handle_list_open_questions,
            Action.LIST_REVIEWS: self._handle_list_reviews,
            Action.CLAIM_QUESTION: self._handle_claim_question,
            Action.RELEASE_QUESTION: self._handle_release_question,
            Action.EMPLOYEE_REPLY: self._handle_employee_reply,
            Action.FIND_QUESTION: self._handle_find_question,
        }

    def dispatch(self, update: TelegramUpdate) -> Optional[Transition]:
        """Process one update. Returns the transition taken, None when ignored."""
        log = LoggerAdapter(logger, {"update_id": update.update_id})
        inbound = classify_update(update)
        if inbound is None:
            log.debug("No actionable content")
            return None

        if inbound.callback_query_id:
            self._acknowledge(inbound, log)
            # non-claim buttons carry nothing the state machine handles
            if inbound.event != EventClass.CLAIM:
                return None

        if inbound.event == EventClass.START:
            self.handle_start(inbound)
            return None

        participant = get_participant_by_chat_id(self.db, inbound.chat_id)
        if not participant:
            self._notify_unknown_sender(inbound, log)
            raise ParticipantNotFoundError(inbound.chat_id)

        role = role_of(participant.is_employee)
        state = ParticipantState(participant.state)
        transition = lookup(role, state, inbound.event)
        if transition is None:
            log.debug(
                "Input ignored in this state",
                context={"role": role.value, "state": state.value, "event": inbound.event.value},
            )
            return None

        log.info(
            f"{role.value} {state.value} -> {transition.action.value}",
            context={"participant_id": participant.id, "event": inbound.event.value},
        )
        self._handlers[transition.action](participant, transition, inbound)
        return transition

    def handle_start(self, inbound: InboundEvent) -> Participant:
        """/start: (re)register, close the sender's open questions, greet, go to main."""
        participant = register_participant(self.db, inbound.chat_id, inbound.nickname)
        close_open_questions_by_asker(self.db, participant)
        if participant.is_employee:
            release_question(self.db, participant)

        greeting = greeting_for(participant)
        self.telegram.send_message(participant.chat_id, greeting.text, reply_markup=greeting.reply_markup)
        change_state(self.db, participant, ParticipantState.MAIN)
        return participant

    def _acknowledge(self, inbound: InboundEvent, log) -> None:
        try:
            self.telegram.answer_callback_query(inbound.callback_query_id)
        except DeliveryError as e:
            log.warning(f"Callback not acknowledged: {e}")

    def _notify_unknown_sender(self, inbound: InboundEvent, log) -> None:
        try:
            self.telegram.send_message(inbound.chat_id, UNKNOWN_SENDER_REPLY)
        except DeliveryError as e:
            log.warning(f"Unknown sender not notified: {e}")

    def _enter(self, participant: Participant, state: ParticipantState) -> None:
        """Write the new state and show its prompt; restore the old state if the prompt fails."""
        previous = ParticipantState(participant.state)
        change_state(self.db, participant, state)
        try:
            send_prompt(self.telegram, participant.chat_id, prompt_for(self.db, participant))
        except DeliveryError:
            change_state(self.db, participant, previous)
            raise

    def _handle_none(self, participant: Participant, transition: Transition, inbound: InboundEvent) -> None:
        change_state(self.db, participant, transition.next_state)

    def _handle_prompt(self, participant: Participant, transition: Transition, inbound: InboundEvent) -> None:
        self._enter(participant, transition.next_state)

    def _handle_create_review(self, participant: Participant, transition: Transition, inbound: InboundEvent) -> None:
        create_review(self.db, participant, parse_rating(inbound.text))
        self._enter(participant, transition.next_state)

    def _handle_comment_review(self, participant: Participant, transition: Transition, inbound: InboundEvent) -> None:
        fill_review_text(self.db, participant, inbound.text)
        self._enter(participant, transition.next_state)

    def _handle_close_review(self, participant: Participant, transition: Transition, inbound: InboundEvent) -> None:
        fill_review_text(self.db, participant, NO_COMMENT)
        self._enter(participant, transition.next_state)

    def _handle_ask_question(self, participant: Participant, transition: Transition, inbound: InboundEvent) -> None:
        question = create_question(self.db, participant, inbound.text)
        assign_question_to_employees(self.db, self.telegram, question)
        self._enter(participant, transition.next_state)

    def _handle_close_question(self, participant: Participant, transition: Transition, inbound: InboundEvent) -> None:
        question = get_open_question_by_asker(self.db, participant)
        if question:
            add_correspondence(self.db, question, participant, inbound.message_id, is_employee=False)
            close_question(self.db, question)
            if question.answerer:
                self.telegram.forward_message(question.answerer.chat_id, participant.chat_id, inbound.message_id)
        self._enter(participant, transition.next_state)

    def _handle_customer_reply(self, participant: Participant, transition: Transition, inbound: InboundEvent) -> None:
        question = get_open_question_by_asker(self.db, participant)
        if not question:
            logger.info(f"No open question for participant {participant.id}")
            return
        if question.answerer:
            self.telegram.forward_message(question.answerer.chat_id, participant.chat_id, inbound.message_id)
        set_has_answer(self.db, question, False)
        add_correspondence(self.db, question, participant, inbound.message_id, is_employee=False)

    def _handle_toggle_receiver(self, participant: Participant, transition: Transition, inbound: InboundEvent) -> None:
        change_state(self.db, participant, ParticipantState.SWITCH_RECEIVER)
        set_receiver(self.db, participant, not participant.is_receiver)
        change_state(self.db, participant, transition.next_state)
        send_prompt(self.telegram, participant.chat_id, receiver_confirmation(participant))

    def _handle_list_open_questions(
        self, participant: Participant, transition: Transition, inbound: InboundEvent
    ) -> None:
        offer_open_questions(self.db, self.telegram, participant)

    def _handle_list_reviews(self, participant: Participant, transition: Transition, inbound: InboundEvent) -> None:
        send_reviews(self.db, self.telegram, participant.chat_id, INTERVALS[inbound.event])

    def _handle_claim_question(self, participant: Participant, transition: Transition, inbound: InboundEvent) -> None:
        try:
            question_id = int(inbound.payload)
        except ValueError:
            logger.warning(f"Claim without question id: {inbound.payload!r}")
            return

        result = claim_question(self.db, self.telegram, participant, question_id)
        if result.ok:
            try:
                self._enter(participant, transition.next_state)
            except DeliveryError:
                clear_answerer(self.db, result.value)
                raise
            return

        self.telegram.send_message(participant.chat_id, result.error)
        if result.error_code == "already_yours" and participant.state != transition.next_state.value:
            self._enter(participant, transition.next_state)

    def _handle_release_question(
        self, participant: Participant, transition: Transition, inbound: InboundEvent
    ) -> None:
        release_question(self.db, participant)
        self._enter(participant, transition.next_state)

    def _handle_employee_reply(self, participant: Participant, transition: Transition, inbound: InboundEvent) -> None:
        question = get_open_question_by_answerer(self.db, participant)
        if not question:
            logger.info(f"No claimed question for employee {participant.id}")
            return
        self.telegram.copy_message(question.asker.chat_id, participant.chat_id, inbound.message_id)
        set_has_answer(self.db, question, True)
        add_correspondence(self.db, question, participant, inbound.message_id, is_employee=True)

    def _handle_find_question(self, participant: Participant, transition: Transition, inbound: InboundEvent) -> None:
        find_question(self.db, self.telegram, participant, inbound.text)


def process_update(db: Session, telegram, update: TelegramUpdate) -> bool:
    """Dispatch an update, logging instead of raising. Returns False when it failed."""
    try:
        UpdateDispatcher(db, telegram).dispatch(update)
        return True
    except ParticipantNotFoundError as e:
        logger.warning(str(e), extra={"context": {"update_id": update.update_id}})
    except DeliveryError as e:
        db.rollback()
        logger.error(f"Delivery failed: {e}", extra={"context": {"update_id": update.update_id}})
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Store failure: {e}", extra={"context": {"update_id": update.update_id}}, exc_info=True)
    return False
