"""Credential store - user records and password verification."""

import logging
from typing import Any

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fintrack.models import User
from fintrack.models.user import DEFAULT_CURRENCY, DEFAULT_LANGUAGE
from fintrack.schemas.auth import PreferencesUpdate, ProfileUpdate
from fintrack.services.errors import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    storage_guard,
)

logger = logging.getLogger(__name__)

# Argon2id with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

# Verified against when the email is unknown so both failure paths cost the same
_DUMMY_HASH = ph.hash("fintrack-dummy-password")


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison."""
    try:
        ph.verify(password_hash, password)
        return True
    except (VerificationError, InvalidHashError):
        return False


class UserService:
    """Service for user records: lookup, registration, credential checks."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> User | None:
        """Get user by (case-insensitive) email."""
        async with storage_guard(self.db, "user lookup"):
            result = await self.db.execute(select(User).where(User.email == email.strip().lower()))
            return result.scalar_one_or_none()

    async def get_by_id(self, user_id: int) -> User | None:
        """Get user by ID."""
        async with storage_guard(self.db, "user lookup"):
            result = await self.db.execute(select(User).where(User.id == user_id))
            return result.scalar_one_or_none()

    async def create(
        self,
        email: str,
        name: str,
        password_hash: str,
        preferences: dict[str, Any] | None = None,
    ) -> User:
        """Insert a user row. Preferences default to the column defaults.

        Raises:
            EmailAlreadyRegisteredError: If the email was taken concurrently
        """
        prefs = preferences or {}
        user = User(
            email=email.strip().lower(),
            name=name,
            password_hash=password_hash,
            currency=prefs.get("currency") or DEFAULT_CURRENCY,
            language=prefs.get("language") or DEFAULT_LANGUAGE,
            email_notifications=prefs.get("email_notifications", True),
            push_notifications=prefs.get("push_notifications", True),
            weekly_reports=prefs.get("weekly_reports", True),
            budget_alerts=prefs.get("budget_alerts", True),
        )
        async with storage_guard(self.db, "user create"):
            self.db.add(user)
            try:
                await self.db.flush()
            except IntegrityError as e:
                # Lost a race against another registration with this email
                await self.db.rollback()
                raise EmailAlreadyRegisteredError("User with this email already exists") from e
            await self.db.refresh(user)
        return user

    def verify_password(self, password: str, password_hash: str) -> bool:
        return verify_password(password, password_hash)

    async def register(
        self,
        email: str,
        name: str,
        password: str,
        currency: str | None = None,
        language: str | None = None,
    ) -> User:
        """Create a new account.

        Raises:
            EmailAlreadyRegisteredError: If the email is taken
        """
        if await self.get_by_email(email) is not None:
            raise EmailAlreadyRegisteredError("User with this email already exists")

        user = await self.create(
            email=email,
            name=name,
            password_hash=hash_password(password),
            preferences={"currency": currency, "language": language},
        )
        logger.info(
            f"Registered user id={user.id}", extra={"user_id": user.id, "event": "register"}
        )
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Check credentials and return the user.

        Raises InvalidCredentialsError for both "user not found" and
        "wrong password" to prevent user enumeration.
        """
        user = await self.get_by_email(email)

        if user is None:
            verify_password(password, _DUMMY_HASH)
            raise InvalidCredentialsError("Invalid email or password")

        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Invalid email or password")

        return user

    async def update_preferences(self, user_id: int, data: PreferencesUpdate) -> User | None:
        """Apply only the preference fields present in ``data``.

        An update with no fields returns the stored record without writing.
        """
        user = await self.get_by_id(user_id)
        if user is None:
            return None

        changes = data.changes()
        if not changes:
            return user

        async with storage_guard(self.db, "preferences update"):
            for field, value in changes.items():
                setattr(user, field, value)
            await self.db.flush()
            await self.db.refresh(user)
        return user

    async def update_profile(self, user_id: int, data: ProfileUpdate) -> User | None:
        """Apply name/email changes present in ``data``.

        Raises:
            EmailAlreadyRegisteredError: If the new email belongs to another user
        """
        user = await self.get_by_id(user_id)
        if user is None:
            return None

        changes = data.changes()
        if not changes:
            return user

        new_email = changes.get("email")
        if new_email is not None and new_email != user.email:
            owner = await self.get_by_email(str(new_email))
            if owner is not None and owner.id != user.id:
                raise EmailAlreadyRegisteredError("Email already exists")

        async with storage_guard(self.db, "profile update"):
            for field, value in changes.items():
                setattr(user, field, value)
            try:
                await self.db.flush()
            except IntegrityError as e:
                await self.db.rollback()
                raise EmailAlreadyRegisteredError("Email already exists") from e
            await self.db.refresh(user)
        return user
