"""User domain models."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import JSON, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class UserRole(StrEnum):
    """Marketplace roles.

    VENDOR: Lists products and receives orders.
    BUYER: Browses listings and places orders (default for new accounts).
    TRANSPORTER: Publishes transport routes and carries shipments.
    ADMIN: Platform-level administrator.
    """

    VENDOR = "vendor"
    BUYER = "buyer"
    TRANSPORTER = "transporter"
    ADMIN = "admin"


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Marketplace user, identified by phone number.

    The auth core only touches the verification flags and ``last_login_at``;
    the rest of the profile belongs to the user-management endpoints.
    """

    __tablename__ = "users"

    # Identity
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Authorization
    roles: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=lambda: [UserRole.BUYER.value],
    )

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    is_phone_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    is_kyc_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    # Audit
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def has_role(self, role: UserRole) -> bool:
        """Check if user has a specific role."""
        return role.value in (self.roles or [])
