from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """Outcome of an operation whose failure is an expected, user-facing case."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None  # text shown to the participant
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown", value: Optional[T] = None) -> "Result[T]":
        return Result(ok=False, value=value, error=error, error_code=code)
