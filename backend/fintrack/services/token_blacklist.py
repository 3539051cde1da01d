"""Token blacklist store - access tokens revoked before they expire.

Database-backed so revocations survive process restarts.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fintrack.models import TokenBlacklist
from fintrack.models.base import utcnow
from fintrack.services.errors import storage_guard

logger = logging.getLogger(__name__)


class TokenBlacklistStore:
    """Rows of ``token_blacklist`` keyed by access-token JTI."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get(self, jti: str) -> TokenBlacklist | None:
        result = await self.db.execute(select(TokenBlacklist).where(TokenBlacklist.jti == jti))
        return result.scalar_one_or_none()

    async def insert(self, jti: str, expires_at: datetime) -> TokenBlacklist:
        """Blacklist a JTI until ``expires_at``.

        Inserting an already blacklisted JTI returns the existing row, so a
        repeated logout is a no-op. A concurrent insert of the same JTI rolls
        back the session, so this must be the first write of its transaction.
        """
        async with storage_guard(self.db, "blacklist insert"):
            existing = await self._get(jti)
            if existing is not None:
                return existing

            entry = TokenBlacklist(jti=jti, expires_at=expires_at)
            self.db.add(entry)
            try:
                await self.db.flush()
            except IntegrityError:
                await self.db.rollback()
                existing = await self._get(jti)
                if existing is None:
                    raise
                return existing
            logger.debug(f"Blacklisted jti={jti} until {expires_at.isoformat()}")
            return entry

    async def is_active(self, jti: str) -> bool:
        """True if the JTI is blacklisted and the entry has not expired."""
        async with storage_guard(self.db, "blacklist lookup"):
            result = await self.db.execute(
                select(TokenBlacklist.id).where(
                    TokenBlacklist.jti == jti,
                    TokenBlacklist.expires_at > utcnow(),
                )
            )
            return result.scalar_one_or_none() is not None

    async def delete_expired(self) -> int:
        """Remove entries whose token would have expired anyway."""
        async with storage_guard(self.db, "blacklist cleanup"):
            result: CursorResult[Any] = await self.db.execute(  # type: ignore[assignment]
                delete(TokenBlacklist)
                .where(TokenBlacklist.expires_at < utcnow())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount
