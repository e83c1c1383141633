from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, Text
from sqlalchemy.orm import relationship

from feedback_bot.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Participant(Base):
    __tablename__ = "participants"

    id = Column(Integer, primary_key=True)
    chat_id = Column(BigInteger, index=True)  # unknown until an employee added by handle writes to the bot
    nickname = Column(Text)
    state = Column(Text, nullable=False, default="new")  # see ParticipantState
    is_employee = Column(Boolean, nullable=False, default=False)
    is_receiver = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    reviews = relationship("Review", back_populates="participant")
    questions = relationship("Question", back_populates="asker", foreign_keys="Question.asker_id")
