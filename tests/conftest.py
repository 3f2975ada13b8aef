"""Test configuration and fixtures.

Test setup:
1. Environment comes from .env.test, loaded before the application is imported
2. Each test gets a fresh schema on its own engine (in-memory SQLite by default,
   any async URL through TEST_DATABASE_URL)
3. Endpoints share the test's session through a dependency override, so
   service commits are visible to assertions
4. The SMS router is replaced with an unconfigured Twilio provider plus an
. Tests that race requests get a file-backed database from session_factory,
   one session per request
"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

from dotenv import load_dotenv

# Load test environment variables before settings are instantiated
test_env_path = Path(__file__).parent.parent / ".env.test"
load_dotenv(test_env_path, override=True)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool, StaticPool  # noqa: E402

from src.config.settings import Settings, settings  # noqa: E402
from src.database.base import Base  # noqa: E402
from src.database.dependencies import get_db_session  # noqa: E402
from src.features.auth.dependencies import get_current_active_user, get_current_user  # noqa: E402
from src.features.otp.service import OtpService  # noqa: E402
from src.features.sms.dependencies import get_sms_router  # noqa: E402
from src.features.sms.provider_router import SmsProviderRouter  # noqa: E402
from src.features.sms.providers import MockSmsProvider, TwilioSmsProvider  # noqa: E402
from src.features.user.models import User, UserRole  # noqa: E402
from src.main import app  # noqa: E402
from src.shared.rate_limit import limiter  # noqa: E402

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


# Database Setup


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an engine with a fresh schema for one test."""
    # A single shared connection keeps an in-memory SQLite database alive
    poolclass = StaticPool if TEST_DATABASE_URL.startswith("sqlite") else NullPool
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=poolclass)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create a database session per test."""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as async_session:
        yield async_session


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """Session factory for tests that run requests in parallel, one session each.

    In-memory SQLite lives on a single connection, so these tests use a
    file-backed SQLite database unless TEST_DATABASE_URL points elsewhere.
    """
    url = TEST_DATABASE_URL
    if url.startswith("sqlite"):
        url = f"sqlite+aiosqlite:///{tmp_path / 'parallel.db'}"
    engine = create_async_engine(url, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


# SMS & OTP


@pytest.fixture
def sms_router() -> SmsProviderRouter:
    """Router preferring an unconfigured Twilio, falling back to an instant mock."""
    return SmsProviderRouter(
        [
            TwilioSmsProvider(account_sid="", auth_token="", from_number=""),
            MockSmsProvider(delay_seconds=0),
        ]
    )


@pytest.fixture
def otp_settings() -> Settings:
    """Settings copy for OTP service tests, with mock codes exposed."""
    return settings.model_copy(
        update={
            "otp_expose_code": True,
            "sms_preferred_provider": "twilio",
            "otp_length": 6,
            "otp_validity_minutes": 10,
            "otp_max_attempts": 3,
            "otp_rate_limit_per_minute": 3,
        }
    )


@pytest.fixture
def otp_service(session: AsyncSession, sms_router: SmsProviderRouter, otp_settings: Settings) -> OtpService:
    return OtpService(session, sms_router, config=otp_settings)


# FastAPI Client & Dependency Overrides


@pytest_asyncio.fixture(autouse=True)
async def override_dependencies(session: AsyncSession, sms_router: SmsProviderRouter):
    """Route endpoints to the test session and the test SMS router.

    Also clears the per-IP rate limit counters so tests do not throttle each other.
    """

    async def _get_test_session():
        yield session

    app.dependency_overrides[get_db_session] = _get_test_session
    app.dependency_overrides[get_sms_router] = lambda: sms_router
    limiter.reset()
    yield
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP test client.

    This client is unauthenticated by default. Use auth_client or admin_client
    for authenticated requests.
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Test User Factories


@pytest_asyncio.fixture
async def make_user(session: AsyncSession):
    """Factory fixture to create test users with custom fields.

    Usage:
        user = await make_user()                               # verified buyer
        admin = await make_user(roles=[UserRole.ADMIN])        # admin
        fresh = await make_user(is_phone_verified=False)       # unverified phone
    """
    counter = 0  # Counter for unique phone generation

    async def _factory(
        phone=None,
        full_name="Test User",
        email=None,
        roles=None,
        is_active=True,
        is_phone_verified=True,
        **kwargs,
    ) -> User:
        nonlocal counter
        counter += 1

        if phone is None:
            phone = f"+9198765{counter:05d}"
        if email is None:
            email = f"testuser{counter}@example.com"

        user = User(
            phone=phone,
            full_name=full_name,
            email=email,
            roles=[role.value for role in (roles or [UserRole.BUYER])],
            is_active=is_active,
            is_phone_verified=is_phone_verified,
            **kwargs,
        )

        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user

    yield _factory


@pytest_asyncio.fixture
async def auth_client(client: AsyncClient, make_user):
    """Authenticated client with a regular user.

    Overrides the auth dependency directly - no JWT issued, no login endpoint hit.

    Returns:
        tuple: (client, user) - both the HTTP client and the authenticated user

    """
    user = await make_user()

    async def override_get_current_user():
        return user

    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_current_active_user] = override_get_current_user

    yield client, user


@pytest_asyncio.fixture
async def admin_client(client: AsyncClient, make_user):
    """Authenticated client with an admin user.

    Returns:
        tuple: (client, user) - both the HTTP client and the admin user

    """
    user = await make_user(roles=[UserRole.ADMIN])

    async def override_get_current_user():
        return user

    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_current_active_user] = override_get_current_user

    yield client, user
