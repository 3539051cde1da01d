"""Pytest configuration and fixtures for backend tests.

Database Handling:
- Every test gets a fresh in-memory SQLite database (aiosqlite, single
  shared connection via StaticPool) with all tables created from the models.
- Set TEST_DATABASE_URL to run the same suite against PostgreSQL.
"""

import os
from collections.abc import AsyncGenerator, Callable, Coroutine
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

# Set test environment variables before importing app modules
os.environ["JWT_SECRET_KEY"] = "test-access-secret-" + "a" * 32
os.environ["JWT_REFRESH_SECRET_KEY"] = "test-refresh-secret-" + "b" * 32
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["LOG_LEVEL"] = "INFO"

# Test user credentials
TEST_USER_EMAIL = "a@x.com"
TEST_USER_PASSWORD = "secret1"
TEST_USER_NAME = "Alice"


def _get_database_url() -> str:
    return os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


_password_hash: str | None = None


def _test_password_hash() -> str:
    """Argon2 hash of TEST_USER_PASSWORD, computed once per session."""
    global _password_hash
    if _password_hash is None:
        from fintrack.services.users import hash_password

        _password_hash = hash_password(TEST_USER_PASSWORD)
    return _password_hash


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a database engine with a fresh schema for one test."""
    from fintrack.models.base import BaseModel

    url = _get_database_url()
    if url.startswith("sqlite"):
        engine = create_async_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )
    else:
        engine = create_async_engine(url, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(BaseModel.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(BaseModel.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine (for code that opens its own sessions)."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database override."""
    from fintrack.core.database import get_db
    from fintrack.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# --- Model Factories ---


@pytest.fixture
def user_factory(db_session) -> Callable[..., Coroutine[Any, Any, Any]]:
    """Factory for creating test users directly in the database."""
    from fintrack.services.users import UserService

    counter = 0

    async def _create_user(
        email: str | None = None,
        name: str = TEST_USER_NAME,
        **preferences: Any,
    ):
        nonlocal counter
        counter += 1
        user = await UserService(db_session).create(
            email=email or f"user{counter}@fintrack.io",
            name=name,
            password_hash=_test_password_hash(),
            preferences=preferences or None,
        )
        await db_session.commit()
        return user

    return _create_user


@pytest_asyncio.fixture
async def test_user(user_factory):
    """The default test user (a@x.com / secret1)."""
    return await user_factory(email=TEST_USER_EMAIL)


@pytest_asyncio.fixture
async def token_pair(db_session, test_user):
    """A token pair issued for the default test user."""
    from fintrack.services.tokens import TokenService

    return await TokenService(db_session).issue_token_pair(test_user.id, test_user.email)


@pytest.fixture
def auth_headers(token_pair) -> dict[str, str]:
    """Bearer headers for the default test user."""
    return {"Authorization": f"Bearer {token_pair.access_token}"}
