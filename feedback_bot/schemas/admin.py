from typing import Optional

from pydantic import BaseModel, field_validator, model_validator


class EmployeeRequest(BaseModel):
    chat_id: Optional[int] = None
    nickname: Optional[str] = None

    @field_validator("nickname", mode="before")
    @classmethod
    def strip_at_sign(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        nickname = str(value).strip().lstrip("@")
        return nickname or None

    @model_validator(mode="after")
    def require_identity(self) -> "EmployeeRequest":
        if self.chat_id is None and not self.nickname:
            raise ValueError("chat_id or nickname is required")
        return self


class EmployeeResponse(BaseModel):
    id: int
    chat_id: Optional[int] = None
    nickname: Optional[str] = None
    is_employee: bool
    is_receiver: bool
    state: str


class QuestionSummary(BaseModel):
    id: int
    header: str
    asker_chat_id: Optional[int] = None
    asker_nickname: Optional[str] = None


class ReviewStats(BaseModel):
    counts: dict[int, int]
    total: int
