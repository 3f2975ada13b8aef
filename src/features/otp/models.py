"""One-time passcode models."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Enum, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, UUIDPrimaryKeyMixin, as_utc, utcnow
from src.features.sms.providers import SmsProviderType


class OtpPurpose(StrEnum):
    """What a passcode proves control of the phone for."""

    REGISTRATION = "registration"
    LOGIN = "login"
    PASSWORD_RESET = "password_reset"
    PHONE_VERIFICATION = "phone_verification"


class OneTimePasscode(Base, UUIDPrimaryKeyMixin):
    """A numeric passcode sent to a phone number for one purpose.

    ``user_id`` is a weak reference: it stays empty for registration codes,
    which are issued before the account exists.
    """

    __tablename__ = "user_otps"

    user_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True, index=True)

    # Denormalized for lookup by phone before an account exists
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    otp_code: Mapped[str] = mapped_column(String(12), nullable=False)
    purpose: Mapped[str] = mapped_column(Enum(OtpPurpose, native_enum=False, length=50), nullable=False, index=True)
    provider: Mapped[str] = mapped_column(
        Enum(SmsProviderType, native_enum=False, length=50),
        nullable=False,
        default=SmsProviderType.TWILIO.value,
    )

    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3, server_default="3")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_expired(self) -> bool:
        return utcnow() > as_utc(self.expires_at)

    @property
    def attempts_exhausted(self) -> bool:
        return self.attempt_count >= self.max_attempts

    @property
    def remaining_attempts(self) -> int:
        return max(self.max_attempts - self.attempt_count, 0)


class OtpRequestLog(Base, UUIDPrimaryKeyMixin):
    """One row per accepted OTP request, used for per-phone rate limiting.

    Passcodes themselves are deleted when superseded, so they cannot be
    counted to enforce the per-minute ceiling.
    """

    __tablename__ = "otp_request_log"

    phone_number: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    purpose: Mapped[str] = mapped_column(Enum(OtpPurpose, native_enum=False, length=50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
