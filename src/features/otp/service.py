"""OTP service layer.

Lifecycle of a passcode for one (phone, purpose) pair::

    none -> pending -> verified
                    -> expired
                    -> attempts exhausted

A new request supersedes the pending code instead of adding a second one.
"""

import hmac
import logging
import secrets
from datetime import timedelta
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.config.logging_config import mask_phone
from src.config.settings import Settings, settings
from src.database.base import utcnow
from src.features.sms.provider_router import SmsProviderRouter
from src.features.sms.providers import SmsProviderType
from src.shared.locks import KeyedLock
from src.shared.validators.phone import is_valid_phone

from .models import OneTimePasscode, OtpPurpose, OtpRequestLog
from .schemas import OtpError, OtpSendResult, OtpVerifyResult

logger = logging.getLogger(__name__)

RATE_LIMIT_WINDOW = timedelta(seconds=60)

# Serializes the rate-limit check, supersession and insert per phone within this process
_issue_locks = KeyedLock()


def generate_otp_code(length: int) -> str:
    """Generate a numeric code from the OS CSPRNG."""
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def codes_match(expected: str, given: str | None) -> bool:
    """Constant-time comparison that treats non-ASCII input as a plain mismatch."""
    return hmac.compare_digest(expected.encode(), (given or "").encode())


class OtpService:
    """Generates, sends, rate-limits and verifies one-time passcodes."""

    def __init__(self, session: AsyncSession, sms_router: SmsProviderRouter, config: Settings = settings):
        self.session = session
        self.sms_router = sms_router
        self.config = config

    async def generate_and_send(
        self, phone_number: str, purpose: OtpPurpose, user_id: UUID | None = None
    ) -> OtpSendResult:
        """Generate a passcode for (phone, purpose) and send it by SMS.

        Args:
            phone_number: Recipient phone number (E.164)
            purpose: What the passcode will be used for
            user_id: Owning user, when the account already exists

        Returns:
            OtpSendResult with the raw code only for mock deliveries with code exposure enabled

        """
        masked = mask_phone(phone_number)
        try:
            if not is_valid_phone(phone_number, self.config.phone_min_length):
                return OtpSendResult(False, "Invalid phone number", error=OtpError.VALIDATION)

            async with _issue_locks.acquire(phone_number):
                recent = await self._count_recent(phone_number)
                if recent >= self.config.otp_rate_limit_per_minute:
                    logger.warning(f"Rate limit exceeded for phone: {masked}")
                    return OtpSendResult(
                        False, "Too many OTP requests. Please try after 1 minute.", error=OtpError.RATE_LIMITED
                    )

                now = utcnow()
                self.session.add(OtpRequestLog(phone_number=phone_number, purpose=purpose, created_at=now))

                await self._supersede_pending(phone_number, purpose)

                otp_code = generate_otp_code(self.config.otp_length)
                otp = OneTimePasscode(
                    user_id=user_id,
                    phone_number=phone_number,
                    otp_code=otp_code,
                    purpose=purpose,
                    provider=SmsProviderType(self.config.sms_preferred_provider),
                    is_verified=False,
                    attempt_count=0,
                    max_attempts=self.config.otp_max_attempts,
                    created_at=now,
                    expires_at=now + timedelta(minutes=self.config.otp_validity_minutes),
                )
                self.session.add(otp)
                await self.session.commit()

            provider = await self.sms_router.select_provider(SmsProviderType(self.config.sms_preferred_provider))
            if provider is None:
                # The stored code stays valid; a manual resend can still deliver it
                logger.error("No SMS provider available for OTP")
                return OtpSendResult(
                    False,
                    "SMS service temporarily unavailable. Please try again later.",
                    error=OtpError.PROVIDER_UNAVAILABLE,
                )

            message = f"Your OTP is: {otp_code}. Valid for {self.config.otp_validity_minutes} minutes."
            if not await provider.send_otp(phone_number, message):
                logger.error(f"Failed to send SMS to {masked} via {provider.name}")
                return OtpSendResult(False, "Failed to send OTP. Please try again.", error=OtpError.DELIVERY_FAILED)

            # A parallel request may already have superseded this record
            await self.session.execute(
                update(OneTimePasscode)
                .where(OneTimePasscode.id == otp.id)
                .values(provider=provider.provider_type)
                .execution_options(synchronize_session="fetch")
            )
            await self.session.commit()

            logger.info(f"OTP sent successfully to {masked} for purpose {purpose} via {provider.name}")

            expose = self.config.otp_expose_code and provider.provider_type == SmsProviderType.MOCK
            return OtpSendResult(True, "OTP sent successfully", otp_code=otp_code if expose else None)

        except Exception:
            logger.exception(f"Error generating and sending OTP for {masked}")
            await self.session.rollback()
            return OtpSendResult(False, "An error occurred. Please try again.", error=OtpError.INFRASTRUCTURE)

    async def verify(self, phone_number: str, otp_code: str, purpose: OtpPurpose) -> OtpVerifyResult:
        """Verify a code against the latest pending passcode for (phone, purpose).

        Every attempt that reaches the comparison counts against the attempt
        budget, including mismatches. The counter and the verified flag move in
        one conditional UPDATE, so parallel attempts cannot exceed the budget
        and a code verifies at most once.
        """
        masked = mask_phone(phone_number)
        try:
            otp = await self._latest_pending(phone_number, purpose)

            if otp is None:
                return OtpVerifyResult(False, "No valid OTP found for this phone number.", OtpError.NOT_FOUND)

            if otp.is_expired:
                return OtpVerifyResult(False, "OTP has expired. Please request a new one.", OtpError.EXPIRED)

            if otp.attempts_exhausted:
                return OtpVerifyResult(
                    False, "Maximum attempts exceeded. Please request a new OTP.", OtpError.ATTEMPTS_EXHAUSTED
                )

            matched = codes_match(otp.otp_code, otp_code)
            values = {"attempt_count": OneTimePasscode.attempt_count + 1}
            if matched:
                values.update(is_verified=True, verified_at=utcnow())

            stmt = (
                update(OneTimePasscode)
                .where(
                    OneTimePasscode.id == otp.id,
                    OneTimePasscode.is_verified.is_(False),
                    OneTimePasscode.attempt_count < OneTimePasscode.max_attempts,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            await self.session.commit()

            if result.rowcount != 1:
                # The row changed under a parallel request
                verified = await self.session.scalar(
                    select(OneTimePasscode.is_verified).where(OneTimePasscode.id == otp.id)
                )
                if verified is None or verified:
                    return OtpVerifyResult(False, "No valid OTP found for this phone number.", OtpError.NOT_FOUND)
                return OtpVerifyResult(
                    False, "Maximum attempts exceeded. Please request a new OTP.", OtpError.ATTEMPTS_EXHAUSTED
                )

            await self.session.refresh(otp)

            if not matched:
                logger.warning(f"Invalid OTP attempt for {masked} ({otp.attempt_count}/{otp.max_attempts})")
                return OtpVerifyResult(
                    False, f"Invalid OTP. {otp.remaining_attempts} attempts remaining.", OtpError.MISMATCH
                )

            logger.info(f"OTP verified successfully for phone {masked}")
            return OtpVerifyResult(True, "OTP verified successfully.")

        except Exception:
            logger.exception(f"Error verifying OTP for {masked}")
            await self.session.rollback()
            return OtpVerifyResult(False, "An error occurred while verifying OTP.", OtpError.INFRASTRUCTURE)

    async def get_latest(self, phone_number: str) -> OneTimePasscode | None:
        """Get the most recent passcode for a phone number, any purpose or state."""
        stmt = (
            select(OneTimePasscode)
            .where(OneTimePasscode.phone_number == phone_number)
            .order_by(OneTimePasscode.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def has_verified(self, phone_number: str, purpose: OtpPurpose, within_minutes: int | None = None) -> bool:
        """Check for a passcode for (phone, purpose) verified within the last ``within_minutes``."""
        if within_minutes is None:
            within_minutes = self.config.otp_validity_minutes
        since = utcnow() - timedelta(minutes=within_minutes)
        stmt = (
            select(func.count())
            .select_from(OneTimePasscode)
            .where(
                OneTimePasscode.phone_number == phone_number,
                OneTimePasscode.purpose == purpose,
                OneTimePasscode.is_verified.is_(True),
                OneTimePasscode.verified_at >= since,
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar_one() > 0

    async def cleanup_expired(self) -> int:
        """Delete unverified passcodes past their expiry.

        Returns:
            Number of deleted passcodes

        """
        stmt = delete(OneTimePasscode).where(
            OneTimePasscode.is_verified.is_(False),
            OneTimePasscode.expires_at < utcnow(),
        )
        result = await self.session.execute(stmt)
        deleted = result.rowcount or 0

        # Request log rows only matter inside the rate-limit window
        log_cutoff = utcnow() - RATE_LIMIT_WINDOW
        await self.session.execute(delete(OtpRequestLog).where(OtpRequestLog.created_at < log_cutoff))
        await self.session.commit()

        logger.info(f"Cleaned up {deleted} expired OTPs")
        return deleted

    async def _count_recent(self, phone_number: str) -> int:
        since = utcnow() - RATE_LIMIT_WINDOW
        stmt = (
            select(func.count())
            .select_from(OtpRequestLog)
            .where(OtpRequestLog.phone_number == phone_number, OtpRequestLog.created_at > since)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def _supersede_pending(self, phone_number: str, purpose: OtpPurpose) -> None:
        stmt = delete(OneTimePasscode).where(
            OneTimePasscode.phone_number == phone_number,
            OneTimePasscode.purpose == purpose,
            OneTimePasscode.is_verified.is_(False),
        )
        await self.session.execute(stmt)

    async def _latest_pending(self, phone_number: str, purpose: OtpPurpose) -> OneTimePasscode | None:
        stmt = (
            select(OneTimePasscode)
            .where(
                OneTimePasscode.phone_number == phone_number,
                OneTimePasscode.purpose == purpose,
                OneTimePasscode.is_verified.is_(False),
            )
            .order_by(OneTimePasscode.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
