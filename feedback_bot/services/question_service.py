from typing import Optional

from sqlalchemy.orm import Session, joinedload

from feedback_bot.models import CorrespondenceEntry, Participant, Question


def create_question(db: Session, asker: Participant, header: str) -> Question:
    """Create a question. There is no check for an already open one."""
    question = Question(asker_id=asker.id, header=header)
    db.add(question)
    db.commit()
    return question


def get_question_by_id(db: Session, question_id: int) -> Optional[Question]:
    return (
        db.query(Question)
        .options(joinedload(Question.asker), joinedload(Question.answerer))
        .filter(Question.id == question_id)
        .first()
    )


def _unclaimed_filter(query):
    return query.filter(Question.answerer_id.is_(None), Question.is_closed.is_(False))


def list_new_questions(db: Session) -> list[Question]:
    return _unclaimed_filter(db.query(Question)).order_by(Question.id).all()


def get_open_question_by_asker(db: Session, asker: Participant) -> Optional[Question]:
    """Oldest unclosed question of the asker."""
    return (
        db.query(Question)
        .options(joinedload(Question.asker), joinedload(Question.answerer))
        .filter(Question.asker_id == asker.id, Question.is_closed.is_(False))
        .order_by(Question.id)
        .first()
    )


def get_open_question_by_answerer(db: Session, answerer: Participant) -> Optional[Question]:
    return (
        db.query(Question)
        .options(joinedload(Question.asker), joinedload(Question.answerer))
        .filter(Question.answerer_id == answerer.id, Question.is_closed.is_(False))
        .order_by(Question.id)
        .first()
    )


def try_assign_answerer(db: Session, question_id: int, answerer: Participant) -> bool:
    """Compare-and-set the answerer; only one caller can win an unclaimed question."""
    updated = _unclaimed_filter(db.query(Question).filter(Question.id == question_id)).update(
        {Question.answerer_id: answerer.id},
        synchronize_session=False,
    )
    db.commit()
    return updated == 1


def clear_answerer(db: Session, question: Question) -> None:
    question.answerer_id = None
    db.commit()


def set_has_answer(db: Session, question: Question, has_answer: bool) -> None:
    question.has_answer = has_answer
    db.commit()


def close_question(db: Session, question: Question) -> None:
    question.is_closed = True
    db.commit()


def close_open_questions_by_asker(db: Session, asker: Participant) -> int:
    """Close every open question of the asker (a new session starts clean)."""
    questions = db.query(Question).filter(Question.asker_id == asker.id, Question.is_closed.is_(False)).all()
    for question in questions:
        question.is_closed = True
    db.commit()
    return len(questions)


def add_correspondence(
    db: Session,
    question: Question,
    sender: Participant,
    message_id: int,
    is_employee: bool,
) -> CorrespondenceEntry:
    entry = CorrespondenceEntry(
        question_id=question.id,
        participant_id=sender.id,
        message_id=message_id,
        is_employee=is_employee,
    )
    db.add(entry)
    db.commit()
    return entry


def list_correspondence(db: Session, question: Question) -> list[CorrespondenceEntry]:
    """Thread entries oldest first."""
    return (
        db.query(CorrespondenceEntry)
        .options(joinedload(CorrespondenceEntry.participant))
        .filter(CorrespondenceEntry.question_id == question.id)
        .order_by(CorrespondenceEntry.id)
        .all()
    )
