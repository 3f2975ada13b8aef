"""Database dependencies."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from src.database.client import get_session


async def get_db_session() -> AsyncGenerator[AsyncSession]:
    """Get a database session for the duration of a request.

    The session commits when the request handler returns and rolls back if it raises.
    """
    async with get_session() as session:
        yield session
