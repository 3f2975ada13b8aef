"""OTP result types."""

from dataclasses import dataclass
from enum import StrEnum


class OtpError(StrEnum):
    """Why an OTP operation failed."""

    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    MISMATCH = "mismatch"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    DELIVERY_FAILED = "delivery_failed"
    INFRASTRUCTURE = "infrastructure"


@dataclass(frozen=True, slots=True)
class OtpSendResult:
    """Outcome of generating and sending a passcode.

    ``otp_code`` is only populated for mock deliveries when code exposure is enabled.
    """

    success: bool
    message: str
    otp_code: str | None = None
    error: OtpError | None = None


@dataclass(frozen=True, slots=True)
class OtpVerifyResult:
    """Outcome of a verification attempt."""

    is_valid: bool
    message: str
    error: OtpError | None = None
