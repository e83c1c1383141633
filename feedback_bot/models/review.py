from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from feedback_bot.database import Base
from feedback_bot.models.participant import _utcnow


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True)
    participant_id = Column(Integer, ForeignKey("participants.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)  # 1..5
    text = Column(Text, nullable=False, default="")  # "" while awaiting a comment
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    participant = relationship("Participant", back_populates="reviews")
