from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship

from feedback_bot.database import Base
from feedback_bot.models.participant import _utcnow


class CorrespondenceEntry(Base):
    """One message of a question thread. Rows are append-only."""

    __tablename__ = "correspondence"

    id = Column(Integer, primary_key=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    participant_id = Column(Integer, ForeignKey("participants.id"), nullable=False)
    message_id = Column(BigInteger, nullable=False)  # message id in the sender's chat
    is_employee = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    question = relationship("Question", back_populates="correspondence")
    participant = relationship("Participant")
