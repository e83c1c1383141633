import calendar
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from feedback_bot.logging_config import get_logger
from feedback_bot.models import Participant, Review

logger = get_logger("review_service")

NO_COMMENT = "-"

RATING_TOKENS = {
    "⭐": 1,
    "⭐⭐": 2,
    "⭐⭐⭐": 3,
    "⭐⭐⭐⭐": 4,
    "⭐⭐⭐⭐⭐": 5,
    "1": 1,
    "2": 2,
    "3": 3,
    "4": 4,
    "5": 5,
}


class ReviewInterval(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


def parse_rating(token: str) -> Optional[int]:
    """Star run or digit 1-5 -> rating; anything else -> None."""
    return RATING_TOKENS.get((token or "").strip())


def rating_in_stars(rating: int) -> str:
    return "⭐" * rating


def create_review(db: Session, participant: Participant, rating: int) -> Review:
    """Create the pending review; its empty text marks it as awaiting a comment."""
    if rating not in range(1, 6):
        raise ValueError(f"Rating must be 1-5, got {rating}")
    review = Review(participant_id=participant.id, rating=rating, text="")
    db.add(review)
    db.commit()
    return review


def get_empty_review(db: Session, participant: Participant) -> Optional[Review]:
    return (
        db.query(Review)
        .filter(Review.participant_id == participant.id, Review.text == "")
        .order_by(Review.id)
        .first()
    )


def fill_review_text(db: Session, participant: Participant, text: str) -> Optional[Review]:
    """Write the comment into the participant's pending review, if any."""
    review = get_empty_review(db, participant)
    if not review:
        logger.info(f"No pending review for participant {participant.id}")
        return None
    review.text = text or NO_COMMENT
    db.commit()
    return review


def interval_bounds(interval: ReviewInterval, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """[start, end) in UTC; end is the start of tomorrow."""
    now = now or datetime.now(timezone.utc)
    end = datetime(now.year, now.month, now.day, tzinfo=timezone.utc) + timedelta(days=1)
    if interval == ReviewInterval.DAY:
        return end - timedelta(days=1), end
    if interval == ReviewInterval.WEEK:
        return end - timedelta(days=7), end
    if interval == ReviewInterval.MONTH:
        month = end.month - 1 or 12
        year = end.year if end.month > 1 else end.year - 1
        day = min(end.day, calendar.monthrange(year, month)[1])
        return end.replace(year=year, month=month, day=day), end
    raise ValueError(f"Interval {interval.value} has no bounds")


def list_reviews_in_range(db: Session, start: datetime, end: datetime) -> list[Review]:
    return (
        db.query(Review)
        .filter(Review.created_at >= start, Review.created_at < end)
        .order_by(Review.id)
        .all()
    )


def count_reviews_by_rating(db: Session) -> dict[int, int]:
    rows = db.query(Review.rating, func.count(Review.id)).group_by(Review.rating).all()
    counts = {rating: 0 for rating in range(1, 6)}
    for rating, count in rows:
        if rating in counts:
            counts[rating] = count
    return counts


def format_review(review: Review) -> str:
    return f"{rating_in_stars(review.rating)}\n{review.text}"


def format_rating_counts(counts: dict[int, int]) -> str:
    return "\n".join(f"{rating_in_stars(rating)} - {counts[rating]}" for rating in sorted(counts))


def send_reviews(db: Session, telegram, chat_id: int, interval: ReviewInterval) -> int:
    """Send reviews for the interval (or rating counts for ALL). Returns messages sent."""
    if interval == ReviewInterval.ALL:
        telegram.send_message(chat_id, format_rating_counts(count_reviews_by_rating(db)))
        return 1

    start, end = interval_bounds(interval)
    reviews = list_reviews_in_range(db, start, end)
    for review in reviews:
        telegram.send_message(chat_id, format_review(review))
    return len(reviews)
