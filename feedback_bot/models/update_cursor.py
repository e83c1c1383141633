from sqlalchemy import BigInteger, Column, DateTime, Integer

from feedback_bot.database import Base
from feedback_bot.models.participant import _utcnow


class UpdateCursor(Base):
    __tablename__ = "update_cursor"

    id = Column(Integer, primary_key=True)
    offset = Column(BigInteger, nullable=False, default=0)  # next update_id to request
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
