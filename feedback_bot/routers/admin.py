"""Admin API: employee management and read-only views over questions and reviews."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from feedback_bot.config import settings
from feedback_bot.database import get_db
from feedback_bot.models import Participant
from feedback_bot.schemas.admin import EmployeeRequest, EmployeeResponse, QuestionSummary, ReviewStats
from feedback_bot.services.participant_service import list_employees, set_employee
from feedback_bot.services.question_service import list_new_questions
from feedback_bot.services.review_service import count_reviews_by_rating

router = APIRouter(prefix="/admin", tags=["admin"])


def _require_admin_token(x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token")) -> None:
    expected = settings.admin_token
    if not expected:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")
    if not x_admin_token or x_admin_token != expected:
        raise HTTPException(status_code=401, detail="Invalid admin token")


def _employee_response(participant: Participant) -> EmployeeResponse:
    return EmployeeResponse(
        id=participant.id,
        chat_id=participant.chat_id,
        nickname=participant.nickname,
        is_employee=participant.is_employee,
        is_receiver=participant.is_receiver,
        state=participant.state,
    )


@router.get("/employees", response_model=list[EmployeeResponse], dependencies=[Depends(_require_admin_token)])
def get_employees(db: Session = Depends(get_db)):
    """Employees added by handle show no chat_id until they send /start."""
    return [_employee_response(participant) for participant in list_employees(db)]


@router.post("/employees", response_model=EmployeeResponse, dependencies=[Depends(_require_admin_token)])
def add_employee(data: EmployeeRequest, db: Session = Depends(get_db)):
    participant = set_employee(db, True, chat_id=data.chat_id, nickname=data.nickname)
    return _employee_response(participant)


@router.delete("/employees", response_model=EmployeeResponse, dependencies=[Depends(_require_admin_token)])
def remove_employee(data: EmployeeRequest, db: Session = Depends(get_db)):
    participant = set_employee(db, False, chat_id=data.chat_id, nickname=data.nickname)
    return _employee_response(participant)


@router.get("/questions/open", response_model=list[QuestionSummary], dependencies=[Depends(_require_admin_token)])
def get_open_questions(db: Session = Depends(get_db)):
    return [
        QuestionSummary(
            id=question.id,
            header=question.header,
            asker_chat_id=question.asker.chat_id,
            asker_nickname=question.asker.nickname,
        )
        for question in list_new_questions(db)
    ]


@router.get("/reviews/stats", response_model=ReviewStats, dependencies=[Depends(_require_admin_token)])
def get_review_stats(db: Session = Depends(get_db)):
    counts = count_reviews_by_rating(db)
    return ReviewStats(counts=counts, total=sum(counts.values()))
