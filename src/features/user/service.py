"""User service layer.

Thin persistence collaborator for the auth core: lookups by id and phone,
account creation after a verified registration, and the two mutations the
auth flows own (phone verification flag, last login).
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config.logging_config import mask_phone
from src.database.base import utcnow

from .exceptions import PhoneAlreadyRegistered
from .models import User, UserRole

logger = logging.getLogger(__name__)


class UserService:
    """Service for user operations."""

    @staticmethod
    async def get_user(session: AsyncSession, user_id: UUID) -> User | None:
        """Get user by ID."""
        stmt = select(User).where(User.id == user_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_phone(session: AsyncSession, phone: str, active_only: bool = False) -> User | None:
        """Get user by phone number.

        Args:
            session: Database session
            phone: E.164 phone number
            active_only: Only match users whose account is active

        Returns:
            User object or None

        """
        stmt = select(User).where(User.phone == phone)
        if active_only:
            stmt = stmt.where(User.is_active.is_(True))
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_user(
        session: AsyncSession,
        phone: str,
        full_name: str,
        email: str | None = None,
        roles: list[UserRole] | None = None,
        is_phone_verified: bool = False,
    ) -> User:
        """Create a user account.

        Raises:
            PhoneAlreadyRegistered: If the phone number already has an account

        """
        if await UserService.get_by_phone(session, phone):
            raise PhoneAlreadyRegistered()

        user = User(
            phone=phone,
            full_name=full_name,
            email=email,
            roles=[role.value for role in (roles or [UserRole.BUYER])],
            is_active=True,
            is_phone_verified=is_phone_verified,
        )
        session.add(user)
        await session.flush()

        logger.info(f"New user registered: {user.id} ({mask_phone(phone)})")
        return user

    @staticmethod
    async def mark_phone_verified(session: AsyncSession, user: User) -> User:
        """Set the phone-verified flag."""
        if not user.is_phone_verified:
            user.is_phone_verified = True
            await session.flush()
            logger.info(f"Phone verified for user {user.id}")
        return user

    @staticmethod
    async def record_login(session: AsyncSession, user: User) -> User:
        """Stamp the last-login time."""
        user.last_login_at = utcnow()
        await session.flush()
        return user
