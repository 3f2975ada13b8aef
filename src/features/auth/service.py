"""Authentication service layer.

Composes the OTP service, the token service and the user collaborator into
the registration, login, refresh and logout flows. A user moves through
anonymous -> otp-pending -> phone-verified / session-active.

Every flow answers with a typed response; only unexpected infrastructure
errors are logged with a traceback, and callers get a generic message.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.config.logging_config import mask_phone
from src.features.otp.models import OtpPurpose
from src.features.otp.schemas import OtpError
from src.features.otp.service import OtpService
from src.features.user.exceptions import PhoneAlreadyRegistered
from src.features.user.models import UserRole
from src.features.user.schemas import UserProfile
from src.features.user.service import UserService
from src.shared.validators.phone import is_valid_phone

from .schemas import AuthError, LoginResponse, OtpVerificationResponse, RegistrationResponse, TokenResponse
from .token_service import TokenService

logger = logging.getLogger(__name__)

OTP_ERRORS: dict[OtpError, AuthError] = {
    OtpError.VALIDATION: AuthError.VALIDATION,
    OtpError.RATE_LIMITED: AuthError.RATE_LIMITED,
    OtpError.NOT_FOUND: AuthError.NOT_FOUND,
    OtpError.EXPIRED: AuthError.EXPIRED,
    OtpError.ATTEMPTS_EXHAUSTED: AuthError.ATTEMPTS_EXHAUSTED,
    OtpError.MISMATCH: AuthError.MISMATCH,
    OtpError.PROVIDER_UNAVAILABLE: AuthError.PROVIDER_UNAVAILABLE,
    OtpError.DELIVERY_FAILED: AuthError.DELIVERY_FAILED,
    OtpError.INFRASTRUCTURE: AuthError.INFRASTRUCTURE,
}


def map_otp_error(error: OtpError | None) -> AuthError | None:
    if error is None:
        return None
    return OTP_ERRORS[error]


class AuthService:
    """Phone/OTP authentication flows."""

    def __init__(self, session: AsyncSession, otp_service: OtpService):
        self.session = session
        self.otp_service = otp_service

    async def register(
        self,
        phone_number: str,
        full_name: str,
        email: str | None = None,
        desired_role: UserRole = UserRole.BUYER,
    ) -> RegistrationResponse:
        """Start a registration by sending a registration OTP.

        The account itself is created only after the OTP is verified
        (see ``complete_registration``).
        """
        try:
            if not is_valid_phone(phone_number, self.otp_service.config.phone_min_length):
                return RegistrationResponse(success=False, message="Invalid phone number", error=AuthError.VALIDATION)

            if not full_name or not full_name.strip():
                return RegistrationResponse(
                    success=False, message="Full name is required", error=AuthError.VALIDATION
                )

            existing = await UserService.get_by_phone(self.session, phone_number)
            if existing is not None:
                return RegistrationResponse(
                    success=False,
                    message="User already registered with this phone number",
                    user_id=existing.id,
                    user=UserProfile.from_user(existing),
                    error=AuthError.ALREADY_REGISTERED,
                )

            result = await self.otp_service.generate_and_send(phone_number, OtpPurpose.REGISTRATION)
            if not result.success:
                return RegistrationResponse(success=False, message=result.message, error=map_otp_error(result.error))

            logger.info(f"Registration OTP sent for phone {mask_phone(phone_number)}")
            return RegistrationResponse(
                success=True,
                message="OTP sent successfully. Please verify to complete registration.",
                user=UserProfile(
                    phone=phone_number, full_name=full_name, email=email, roles=[UserRole(desired_role).value]
                ),
                otp_code=result.otp_code,
            )

        except Exception:
            logger.exception(f"Error registering user with phone {mask_phone(phone_number)}")
            return RegistrationResponse(
                success=False, message="An error occurred during registration", error=AuthError.INFRASTRUCTURE
            )

    async def verify_otp(self, phone_number: str, otp_code: str, purpose: OtpPurpose) -> OtpVerificationResponse:
        """Verify an OTP; a successful check marks an existing user's phone as verified."""
        result = await self.otp_service.verify(phone_number, otp_code, purpose)
        if not result.is_valid:
            return OtpVerificationResponse(
                success=False, message=result.message, purpose=purpose, error=map_otp_error(result.error)
            )

        try:
            user = await UserService.get_by_phone(self.session, phone_number)
            if user is not None:
                await UserService.mark_phone_verified(self.session, user)
                await self.session.commit()
        except Exception:
            logger.exception(f"Error marking phone verified for {mask_phone(phone_number)}")
            await self.session.rollback()
            return OtpVerificationResponse(
                success=False,
                message="An error occurred while verifying OTP.",
                purpose=purpose,
                error=AuthError.INFRASTRUCTURE,
            )

        return OtpVerificationResponse(success=True, message=result.message, purpose=purpose)

    async def complete_registration(
        self,
        phone_number: str,
        full_name: str,
        email: str | None = None,
        desired_role: UserRole = UserRole.BUYER,
    ) -> RegistrationResponse:
        """Create the account once a registration OTP has been verified for the phone."""
        try:
            if not await self.otp_service.has_verified(phone_number, OtpPurpose.REGISTRATION):
                return RegistrationResponse(
                    success=False,
                    message="Phone number not verified. Please verify the registration OTP first.",
                    error=AuthError.UNAUTHORIZED,
                )

            user = await UserService.create_user(
                self.session,
                phone=phone_number,
                full_name=full_name.strip(),
                email=email,
                roles=[UserRole(desired_role)],
                is_phone_verified=True,
            )
            await self.session.commit()

            return RegistrationResponse(
                success=True,
                message="Phone number verified successfully. Registration complete.",
                user_id=user.id,
                user=UserProfile.from_user(user),
            )

        except PhoneAlreadyRegistered:
            return RegistrationResponse(
                success=False,
                message="User already registered with this phone number",
                error=AuthError.ALREADY_REGISTERED,
            )
        except Exception:
            logger.exception(f"Error completing registration for {mask_phone(phone_number)}")
            await self.session.rollback()
            return RegistrationResponse(
                success=False, message="An error occurred during registration", error=AuthError.INFRASTRUCTURE
            )

    async def login(self, phone_number: str) -> LoginResponse:
        """Start a login by sending a login OTP to an existing, active user."""
        try:
            if not is_valid_phone(phone_number, self.otp_service.config.phone_min_length):
                return LoginResponse(success=False, message="Invalid phone number", error=AuthError.VALIDATION)

            user = await UserService.get_by_phone(self.session, phone_number, active_only=True)
            if user is None:
                return LoginResponse(
                    success=False, message="User not found with this phone number", error=AuthError.NOT_FOUND
                )

            result = await self.otp_service.generate_and_send(phone_number, OtpPurpose.LOGIN, user.id)
            if not result.success:
                return LoginResponse(success=False, message=result.message, error=map_otp_error(result.error))

            logger.info(f"Login OTP sent for phone {mask_phone(phone_number)}")
            return LoginResponse(
                success=True,
                message="OTP sent successfully. Please verify to login.",
                user=UserProfile.from_user(user),
                otp_code=result.otp_code,
            )

        except Exception:
            logger.exception(f"Error initiating login for phone {mask_phone(phone_number)}")
            return LoginResponse(
                success=False, message="An error occurred during login", error=AuthError.INFRASTRUCTURE
            )

    async def complete_login(
        self, phone_number: str, ip_address: str | None = None, user_agent: str | None = None
    ) -> LoginResponse:
        """Issue a session for a user whose phone is verified."""
        try:
            user = await UserService.get_by_phone(self.session, phone_number, active_only=True)
            if user is None:
                return LoginResponse(success=False, message="User not found", error=AuthError.NOT_FOUND)

            if not user.is_phone_verified:
                return LoginResponse(
                    success=False,
                    message="Phone number not verified. Please complete registration first.",
                    error=AuthError.UNAUTHORIZED,
                )

            await UserService.record_login(self.session, user)
            tokens = await TokenService.issue_token_response(self.session, user, ip_address, user_agent)
            await self.session.commit()

            logger.info(f"User {user.id} logged in successfully")
            return LoginResponse(
                success=True, message="Login successful", token=tokens, user=UserProfile.from_user(user)
            )

        except Exception:
            logger.exception(f"Error completing login for phone {mask_phone(phone_number)}")
            await self.session.rollback()
            return LoginResponse(
                success=False, message="An error occurred during login", error=AuthError.INFRASTRUCTURE
            )

    async def refresh(
        self, refresh_token: str, ip_address: str | None = None, user_agent: str | None = None
    ) -> TokenResponse | None:
        """Exchange a refresh token for a new token pair, revoking the old refresh token.

        Returns:
            New TokenResponse, or None if the token is unknown, revoked, expired
            or its user no longer exists or is inactive

        """
        try:
            if not await TokenService.verify_refresh_token(self.session, refresh_token):
                logger.warning("Invalid refresh token attempt")
                return None

            stored = await TokenService.get_refresh_token(self.session, refresh_token)
            user = await UserService.get_user(self.session, stored.user_id) if stored else None
            if user is None or not user.is_active:
                logger.warning("Refresh token owner not found or inactive")
                return None

            if not await TokenService.revoke_refresh_token(self.session, refresh_token):
                # Rotated by a concurrent request
                logger.warning(f"Refresh token already used for user {user.id}")
                await self.session.rollback()
                return None

            tokens = await TokenService.issue_token_response(self.session, user, ip_address, user_agent)
            await self.session.commit()

            logger.info(f"Token refreshed for user {user.id}")
            return tokens

        except Exception:
            logger.exception("Error refreshing token")
            await self.session.rollback()
            return None

    async def logout(self, user_id: UUID) -> int:
        """Revoke every active refresh token of a user, on all devices.

        Returns:
            Number of revoked tokens

        """
        revoked = await TokenService.revoke_all_for_user(self.session, user_id)
        await self.session.commit()

        logger.info(f"User {user_id} logged out ({revoked} refresh tokens revoked)")
        return revoked

    async def get_user(self, user_id: UUID) -> UserProfile | None:
        """Get the profile of a user."""
        try:
            user = await UserService.get_user(self.session, user_id)
            return UserProfile.from_user(user) if user else None
        except Exception:
            logger.exception(f"Error getting user {user_id}")
            return None
