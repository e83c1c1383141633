from typing import Optional

from sqlalchemy import and_, exists
from sqlalchemy.orm import Session

from feedback_bot.models import Participant, Question
from feedback_bot.services.state_machine import ParticipantState


def get_participant_by_chat_id(db: Session, chat_id: int) -> Optional[Participant]:
    return db.query(Participant).filter(Participant.chat_id == chat_id).first()


def get_participant_by_nickname(db: Session, nickname: str) -> Optional[Participant]:
    return db.query(Participant).filter(Participant.nickname == nickname).first()


def register_participant(db: Session, chat_id: int, nickname: Optional[str]) -> Participant:
    """Create or refresh a participant on /start.

    An employee added by handle has no chat_id yet; the first /start from that
    handle binds the chat to the existing record.
    """
    participant = get_participant_by_chat_id(db, chat_id)
    if not participant and nickname:
        participant = (
            db.query(Participant)
            .filter(Participant.nickname == nickname, Participant.chat_id.is_(None))
            .first()
        )

    if not participant:
        participant = Participant(is_employee=False)
        db.add(participant)

    participant.chat_id = chat_id
    participant.nickname = nickname
    participant.state = ParticipantState.NEW.value
    participant.is_receiver = False
    db.commit()
    return participant


def change_state(db: Session, participant: Participant, state: ParticipantState) -> None:
    participant.state = state.value
    db.commit()


def set_receiver(db: Session, participant: Participant, is_receiver: bool) -> None:
    participant.is_receiver = is_receiver
    db.commit()


def list_employees(db: Session) -> list[Participant]:
    return db.query(Participant).filter(Participant.is_employee.is_(True)).order_by(Participant.id).all()


def list_receivers(db: Session) -> list[Participant]:
    """Employees accepting questions who are not busy with an open claimed question."""
    busy = exists().where(
        and_(
            Question.answerer_id == Participant.id,
            Question.is_closed.is_(False),
        )
    )
    return (
        db.query(Participant)
        .filter(
            Participant.is_employee.is_(True),
            Participant.is_receiver.is_(True),
            Participant.chat_id.isnot(None),
            ~busy,
        )
        .order_by(Participant.id)
        .all()
    )


def set_employee(
    db: Session,
    is_employee: bool,
    chat_id: Optional[int] = None,
    nickname: Optional[str] = None,
) -> Participant:
    """Create or update a participant by chat id or handle and set the employee flag."""
    if chat_id is not None:
        participant = get_participant_by_chat_id(db, chat_id)
    else:
        participant = get_participant_by_nickname(db, nickname)

    if not participant:
        participant = Participant(chat_id=chat_id, nickname=nickname, state=ParticipantState.NEW.value)
        db.add(participant)

    if participant.is_employee != is_employee:
        # the other role has a different menu; the next message re-enters main
        participant.state = ParticipantState.NEW.value
    participant.is_employee = is_employee
    if not is_employee:
        participant.is_receiver = False
    db.commit()
    return participant
