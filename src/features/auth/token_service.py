"""Token service: signed access tokens and opaque refresh tokens."""

import base64
import logging
import secrets
from datetime import timedelta
from typing import Any
from uuid import UUID

from jwt.exceptions import InvalidTokenError
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.config.settings import settings
from src.database.base import utcnow
from src.features.user.models import User

from .jwt_utils import create_access_token, decode_token, verify_token_type
from .models import RefreshToken
from .schemas import TokenResponse

logger = logging.getLogger(__name__)

REFRESH_TOKEN_BYTES = 64


class TokenService:
    """Issues, validates, rotates and revokes tokens."""

    @staticmethod
    def issue_access_token(user: User) -> tuple[str, str, int]:
        """Create a signed access token carrying the user's identity and roles.

        Returns:
            Tuple of (token, jti, expires_in seconds)

        """
        claims = {
            "sub": str(user.id),
            "name": user.full_name,
            "email": user.email or "",
            "phone": user.phone,
            "phone_verified": user.is_phone_verified,
            "kyc_verified": user.is_kyc_verified,
            "roles": list(user.roles or []),
        }
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
        token, jti, _ = create_access_token(claims, expires_delta)

        logger.info(f"Access token generated for user {user.id}")
        return token, jti, int(expires_delta.total_seconds())

    @staticmethod
    async def issue_refresh_token(
        session: AsyncSession,
        user_id: UUID,
        jwt_token_id: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> str:
        """Create and store an opaque refresh token.

        Args:
            session: Database session
            user_id: Owning user
            jwt_token_id: ``jti`` of the access token issued alongside
            ip_address: Requester's IP address (optional)
            user_agent: Requester's User-Agent header (optional)

        Returns:
            Base64-encoded random token

        """
        token = base64.b64encode(secrets.token_bytes(REFRESH_TOKEN_BYTES)).decode("ascii")
        now = utcnow()

        refresh_token = RefreshToken(
            user_id=user_id,
            token=token,
            jwt_token_id=jwt_token_id,
            created_at=now,
            expires_at=now + timedelta(days=settings.refresh_token_expire_days),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        session.add(refresh_token)
        await session.flush()

        logger.info(f"Refresh token generated for user {user_id}")
        return token

    @staticmethod
    async def issue_token_response(
        session: AsyncSession, user: User, ip_address: str | None = None, user_agent: str | None = None
    ) -> TokenResponse:
        """Issue an access/refresh token pair linked through the access token's ``jti``."""
        access_token, jti, expires_in = TokenService.issue_access_token(user)
        refresh_token = await TokenService.issue_refresh_token(session, user.id, jti, ip_address, user_agent)

        return TokenResponse(access_token=access_token, refresh_token=refresh_token, expires_in=expires_in)

    @staticmethod
    def validate_access_token(token: str) -> dict[str, Any] | None:
        """Validate an access token.

        Returns:
            The claim set, or None if the signature, issuer, audience, lifetime
            or token type is invalid

        """
        try:
            payload = decode_token(token)
        except InvalidTokenError as exc:
            logger.warning(f"Token validation failed: {exc}")
            return None

        if not verify_token_type(payload, "access"):
            logger.warning("Token validation failed: not an access token")
            return None

        return payload

    @staticmethod
    async def get_refresh_token(session: AsyncSession, token: str) -> RefreshToken | None:
        """Look up a stored refresh token."""
        stmt = select(RefreshToken).where(RefreshToken.token == token)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def verify_refresh_token(session: AsyncSession, token: str) -> bool:
        """Check that a refresh token exists, is not revoked and is not expired."""
        stored = await TokenService.get_refresh_token(session, token)

        if stored is None:
            logger.warning("Refresh token not found in database")
            return False

        if stored.is_revoked:
            logger.warning("Refresh token has been revoked")
            return False

        if stored.is_expired:
            logger.warning("Refresh token has expired")

        return stored.is_valid

    @staticmethod
    async def revoke_refresh_token(session: AsyncSession, token: str) -> bool:
        """Revoke a refresh token.

        The update only matches a non-revoked row, so when several requests
        race on one token exactly one of them sees True.

        Returns:
            True if a matching, non-revoked token was revoked; False otherwise

        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.token == token, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        result = await session.execute(stmt)

        if result.rowcount != 1:
            return False

        logger.info("Refresh token revoked")
        return True

    @staticmethod
    async def revoke_all_for_user(session: AsyncSession, user_id: UUID) -> int:
        """Revoke every non-revoked refresh token owned by a user.

        Returns:
            Number of revoked tokens

        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        result = await session.execute(stmt)
        return result.rowcount or 0

    @staticmethod
    async def cleanup_expired(session: AsyncSession) -> int:
        """Delete refresh tokens past their expiry.

        Returns:
            Number of deleted tokens

        """
        stmt = delete(RefreshToken).where(RefreshToken.expires_at < utcnow())
        result = await session.execute(stmt)

        deleted = result.rowcount or 0
        logger.info(f"Cleaned up {deleted} expired refresh tokens")
        return deleted
