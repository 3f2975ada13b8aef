"""Response envelope shared by the public API."""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from src.database.base import utcnow

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Generic API response wrapper.

    Every caller-facing auth operation answers with a success flag, a
    human-readable message and an optional payload.
    """

    success: bool
    message: str
    data: T | None = None
    errors: list[str] | None = None
    timestamp: datetime = Field(default_factory=utcnow)
