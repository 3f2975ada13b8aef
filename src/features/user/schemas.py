"""User schemas (DTOs)."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .models import User


class UserProfile(BaseModel):
    """Read-only projection of a user: identity, verification flags and roles."""

    id: UUID | None = None
    full_name: str
    phone: str
    email: str | None = None
    is_phone_verified: bool = False
    is_kyc_verified: bool = False
    roles: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        return cls.model_validate(user)
