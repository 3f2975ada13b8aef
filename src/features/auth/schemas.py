"""Authentication schemas (DTOs)."""

from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from src.features.otp.models import OtpPurpose
from src.features.user.models import UserRole
from src.features.user.schemas import UserProfile
from src.shared.validators.phone import validate_phone_number


class AuthError(StrEnum):
    """Why an authentication flow failed."""

    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    ALREADY_REGISTERED = "already_registered"
    EXPIRED = "expired"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    MISMATCH = "mismatch"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    DELIVERY_FAILED = "delivery_failed"
    UNAUTHORIZED = "unauthorized"
    INFRASTRUCTURE = "infrastructure"


# Request schemas
class PhoneRequest(BaseModel):
    """Base for requests identified by phone number."""

    phone_number: str = Field(..., min_length=1, max_length=20, description="Phone number in E.164 format")

    @field_validator("phone_number")
    @classmethod
    def check_phone(cls, value: str) -> str:
        """Validate phone number format using shared validator."""
        return validate_phone_number(value)


class RegistrationRequest(PhoneRequest):
    """Registration request: sends a registration OTP."""

    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr | None = None
    desired_role: UserRole = UserRole.BUYER


class CompleteRegistrationRequest(RegistrationRequest):
    """Registration OTP verification with the profile to create."""

    otp_code: str = Field(..., min_length=4, max_length=12, pattern=r"^[0-9]+$")


class LoginRequest(PhoneRequest):
    """Login request: sends a login OTP."""


class VerifyLoginRequest(PhoneRequest):
    """Login OTP verification."""

    otp_code: str = Field(..., min_length=4, max_length=12, pattern=r"^[0-9]+$")


class VerifyOtpRequest(PhoneRequest):
    """OTP verification for any purpose."""

    otp_code: str = Field(..., min_length=4, max_length=12, pattern=r"^[0-9]+$")
    purpose: OtpPurpose = OtpPurpose.PHONE_VERIFICATION


class RefreshTokenRequest(BaseModel):
    """Refresh token request."""

    refresh_token: str


# Response schemas
class TokenResponse(BaseModel):
    """JWT token response."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int  # seconds


class RegistrationResponse(BaseModel):
    """Result of a registration step."""

    success: bool
    message: str
    user_id: UUID | None = None
    user: UserProfile | None = None
    otp_code: str | None = None  # only with otp_expose_code and the mock provider
    error: AuthError | None = None


class LoginResponse(BaseModel):
    """Result of a login step."""

    success: bool
    message: str
    token: TokenResponse | None = None
    user: UserProfile | None = None
    otp_code: str | None = None  # only with otp_expose_code and the mock provider
    error: AuthError | None = None


class OtpVerificationResponse(BaseModel):
    """Result of an OTP verification."""

    success: bool
    message: str
    purpose: OtpPurpose
    error: AuthError | None = None
