from sqlalchemy.orm import Session

from feedback_bot.models import UpdateCursor


def get_offset(db: Session) -> int:
    """Next update_id to request; 0 before the first batch."""
    cursor = db.query(UpdateCursor).order_by(UpdateCursor.id).first()
    return cursor.offset if cursor else 0


def save_offset(db: Session, offset: int) -> None:
    cursor = db.query(UpdateCursor).order_by(UpdateCursor.id).first()
    if not cursor:
        cursor = UpdateCursor(offset=offset)
        db.add(cursor)
    cursor.offset = offset
    db.commit()
