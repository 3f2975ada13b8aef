"""Authentication router (phone OTP registration, login and token endpoints)."""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from src.config.settings import settings
from src.features.otp.models import OtpPurpose
from src.features.user.models import User
from src.features.user.schemas import UserProfile
from src.shared.rate_limit import limiter
from src.shared.responses import ApiResponse

from .dependencies import get_auth_service, get_current_active_user
from .schemas import (
    AuthError,
    CompleteRegistrationRequest,
    LoginRequest,
    LoginResponse,
    OtpVerificationResponse,
    RefreshTokenRequest,
    RegistrationRequest,
    RegistrationResponse,
    TokenResponse,
    VerifyLoginRequest,
    VerifyOtpRequest,
)
from .service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


def _client_info(request: Request) -> tuple[str | None, str | None]:
    ip_address = request.client.host if request.client else None
    return ip_address, request.headers.get("user-agent")


def _failure(status_code: int, message: str, error: AuthError | None = None) -> JSONResponse:
    body = ApiResponse[None](success=False, message=message, errors=[error.value] if error else None)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _server_error(message: str) -> JSONResponse:
    return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, message, AuthError.INFRASTRUCTURE)


@router.post("/register", response_model=ApiResponse[RegistrationResponse])
@limiter.limit(settings.otp_ip_rate_limit)
async def register(
    request: Request, data: RegistrationRequest, auth_service: AuthService = Depends(get_auth_service)
):
    """Start a registration: sends a registration OTP to the phone number.

    - **phone_number**: Phone number in E.164 format
    - **full_name**: Display name
    - **email**: Email address (optional)
    - **desired_role**: vendor, buyer or transporter (defaults to buyer)
    """
    result = await auth_service.register(data.phone_number, data.full_name, data.email, data.desired_role)
    return ApiResponse(success=result.success, message=result.message, data=result)


@router.post("/verify-registration", response_model=ApiResponse[RegistrationResponse])
async def verify_registration(
    data: CompleteRegistrationRequest, auth_service: AuthService = Depends(get_auth_service)
):
    """Verify the registration OTP and create the account.

    Returns 400 when the OTP is rejected and 409 when the phone is already registered.
    """
    verification = await auth_service.verify_otp(data.phone_number, data.otp_code, OtpPurpose.REGISTRATION)
    if not verification.success:
        if verification.error == AuthError.INFRASTRUCTURE:
            return _server_error(verification.message)
        return _failure(status.HTTP_400_BAD_REQUEST, verification.message, verification.error)

    result = await auth_service.complete_registration(
        data.phone_number, data.full_name, data.email, data.desired_role
    )
    if not result.success:
        if result.error == AuthError.ALREADY_REGISTERED:
            return _failure(status.HTTP_409_CONFLICT, result.message, result.error)
        if result.error == AuthError.INFRASTRUCTURE:
            return _server_error(result.message)
        return _failure(status.HTTP_400_BAD_REQUEST, result.message, result.error)

    logger.info(f"User registered: {result.user_id}")
    return ApiResponse(success=True, message=result.message, data=result)


@router.post("/send-login-otp", response_model=ApiResponse[LoginResponse])
@limiter.limit(settings.otp_ip_rate_limit)
async def send_login_otp(request: Request, data: LoginRequest, auth_service: AuthService = Depends(get_auth_service)):
    """Start a login: sends a login OTP to a registered phone number."""
    result = await auth_service.login(data.phone_number)
    return ApiResponse(success=result.success, message=result.message, data=result)


@router.post("/verify-login", response_model=ApiResponse[LoginResponse])
async def verify_login(
    request: Request, data: VerifyLoginRequest, auth_service: AuthService = Depends(get_auth_service)
):
    """Verify the login OTP and issue an access/refresh token pair.

    Returns 400 when the OTP is rejected and 401 when the login cannot complete.
    """
    verification = await auth_service.verify_otp(data.phone_number, data.otp_code, OtpPurpose.LOGIN)
    if not verification.success:
        if verification.error == AuthError.INFRASTRUCTURE:
            return _server_error(verification.message)
        return _failure(status.HTTP_400_BAD_REQUEST, verification.message, verification.error)

    ip_address, user_agent = _client_info(request)
    result = await auth_service.complete_login(data.phone_number, ip_address, user_agent)
    if not result.success:
        if result.error == AuthError.INFRASTRUCTURE:
            return _server_error(result.message)
        return _failure(status.HTTP_401_UNAUTHORIZED, result.message, result.error)

    return ApiResponse(success=True, message=result.message, data=result)


@router.post("/verify-otp", response_model=ApiResponse[OtpVerificationResponse])
async def verify_otp(data: VerifyOtpRequest, auth_service: AuthService = Depends(get_auth_service)):
    """Verify an OTP for any purpose.

    - **phone_number**: Phone number the OTP was sent to
    - **otp_code**: The received code
    - **purpose**: registration, login, password_reset or phone_verification
    """
    result = await auth_service.verify_otp(data.phone_number, data.otp_code, data.purpose)
    if not result.success:
        if result.error == AuthError.INFRASTRUCTURE:
            return _server_error(result.message)
        return _failure(status.HTTP_400_BAD_REQUEST, result.message, result.error)

    return ApiResponse(success=True, message=result.message, data=result)


@router.post("/refresh-token", response_model=ApiResponse[TokenResponse])
async def refresh_token(
    request: Request, data: RefreshTokenRequest, auth_service: AuthService = Depends(get_auth_service)
):
    """Exchange a refresh token for a new token pair.

    The presented refresh token is revoked; reusing it fails with 401.
    """
    if not data.refresh_token or not data.refresh_token.strip():
        return _failure(status.HTTP_400_BAD_REQUEST, "Refresh token is required", AuthError.VALIDATION)

    ip_address, user_agent = _client_info(request)
    tokens = await auth_service.refresh(data.refresh_token, ip_address, user_agent)
    if tokens is None:
        return _failure(status.HTTP_401_UNAUTHORIZED, "Invalid or expired refresh token", AuthError.UNAUTHORIZED)

    return ApiResponse(success=True, message="Token refreshed successfully", data=tokens)


@router.post("/logout", response_model=ApiResponse[dict])
async def logout(
    current_user: User = Depends(get_current_active_user), auth_service: AuthService = Depends(get_auth_service)
):
    """Logout from all devices: revokes every refresh token of the current user."""
    try:
        revoked = await auth_service.logout(current_user.id)
    except Exception:
        logger.exception(f"Error logging out user {current_user.id}")
        return _server_error("An error occurred during logout")

    return ApiResponse(success=True, message="Logged out successfully", data={"revoked_tokens": revoked})


@router.get("/profile", response_model=ApiResponse[UserProfile])
async def get_profile(
    current_user: User = Depends(get_current_active_user), auth_service: AuthService = Depends(get_auth_service)
):
    """Get the profile of the current user."""
    profile = await auth_service.get_user(current_user.id)
    if profile is None:
        return _failure(status.HTTP_404_NOT_FOUND, "User not found", AuthError.NOT_FOUND)

    return ApiResponse(success=True, message="Profile retrieved successfully", data=profile)
