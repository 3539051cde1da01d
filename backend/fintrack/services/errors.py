"""Exception taxonomy for authentication and session storage."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base authentication error."""

    pass


class InvalidCredentialsError(AuthError):
    """Invalid email or password (never says which)."""

    pass


class InvalidTokenError(AuthError):
    """JWT token is malformed, badly signed, or of the wrong class."""

    pass


class TokenExpiredError(InvalidTokenError):
    """JWT token has expired."""

    pass


class TokenRevokedError(AuthError):
    """Token was revoked: blacklisted access token, or a refresh token that
    is missing, revoked, or expired in storage."""

    pass


class UnknownUserError(AuthError):
    """Token is valid but its user no longer exists."""

    pass


class EmailAlreadyRegisteredError(AuthError):
    """Another account already uses this email."""

    pass


class StorageError(Exception):
    """A persistence operation failed; the session has been rolled back."""

    pass


@asynccontextmanager
async def storage_guard(db: AsyncSession, operation: str) -> AsyncIterator[None]:
    """Translate SQLAlchemy failures into StorageError after rolling back."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Storage failure during {operation}: {e}")
        await db.rollback()
        raise StorageError(f"{operation} failed") from e
