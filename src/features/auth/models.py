"""Authentication models (refresh token management)."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, UUIDPrimaryKeyMixin, as_utc, utcnow


class RefreshToken(Base, UUIDPrimaryKeyMixin):
    """Opaque refresh token, rotated on every use.

    User-scoped model: ``user_id`` is a weak reference, token rows are removed
    by the expiry sweep rather than with the user.
    """

    __tablename__ = "refresh_tokens"

    # Token data
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    jwt_token_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)  # jti of the paired access token

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Audit trail
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)  # IPv6 max length is 45
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @property
    def is_expired(self) -> bool:
        return utcnow() > as_utc(self.expires_at)

    @property
    def is_valid(self) -> bool:
        return not self.is_revoked and not self.is_expired
