from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from feedback_bot.database import Base
from feedback_bot.models.participant import _utcnow


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True)
    asker_id = Column(Integer, ForeignKey("participants.id"), nullable=False, index=True)
    answerer_id = Column(Integer, ForeignKey("participants.id"), index=True)
    header = Column(Text, nullable=False)
    has_answer = Column(Boolean, nullable=False, default=False)
    is_closed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    asker = relationship("Participant", foreign_keys=[asker_id], back_populates="questions")
    answerer = relationship("Participant", foreign_keys=[answerer_id])
    correspondence = relationship(
        "CorrespondenceEntry",
        back_populates="question",
        order_by="CorrespondenceEntry.id",
    )
