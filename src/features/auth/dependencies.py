"""Authentication dependencies for FastAPI."""

from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.dependencies import get_db_session
from src.features.otp.service import OtpService
from src.features.sms.dependencies import get_sms_router
from src.features.sms.provider_router import SmsProviderRouter
from src.features.user.models import User, UserRole
from src.features.user.service import UserService

from .exceptions import InsufficientRoleException, InvalidTokenException, UserInactiveException
from .service import AuthService
from .token_service import TokenService

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_db_session),
) -> User:
    """Get the current authenticated user from the bearer access token.

    Args:
        credentials: HTTP authorization credentials with bearer token
        session: Database session

    Returns:
        User object

    Raises:
        InvalidTokenException: If token is invalid or user not found
        UserInactiveException: If the account has been deactivated

    """
    payload = TokenService.validate_access_token(credentials.credentials)
    if payload is None:
        raise InvalidTokenException()

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise InvalidTokenException(detail="Invalid token payload") from None

    user = await UserService.get_user(session, user_id)

    if user is None:
        raise InvalidTokenException(detail="User not found")

    if not user.is_active:
        raise UserInactiveException()

    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """Get current active user (convenience wrapper)."""
    return current_user


def require_role(*required_roles: UserRole):
    """Dependency factory to require specific roles.

    Usage:
        # For single role
        Depends(require_role(UserRole.ADMIN))

        # For multiple roles (OR logic - user needs ANY of these)
        Depends(require_role(UserRole.VENDOR, UserRole.TRANSPORTER))
    """

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if not any(current_user.has_role(role) for role in required_roles):
            raise InsufficientRoleException([r.value for r in required_roles])
        return current_user

    return role_checker


def get_otp_service(
    session: AsyncSession = Depends(get_db_session),
    sms_router: SmsProviderRouter = Depends(get_sms_router),
) -> OtpService:
    """Request-scoped OTP service."""
    return OtpService(session, sms_router)


def get_auth_service(
    session: AsyncSession = Depends(get_db_session),
    otp_service: OtpService = Depends(get_otp_service),
) -> AuthService:
    """Request-scoped authentication orchestrator."""
    return AuthService(session, otp_service)
