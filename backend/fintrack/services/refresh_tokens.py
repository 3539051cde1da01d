"""Refresh token store - persistence for issued refresh tokens."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, or_, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from fintrack.models import RefreshToken
from fintrack.models.base import utcnow
from fintrack.services.errors import storage_guard

logger = logging.getLogger(__name__)


class RefreshTokenStore:
    """Rows of ``refresh_tokens``; one per active (or formerly active) session.

    Every "is it usable" read filters on ``revoked`` and ``expires_at`` at
    query time, so correctness never depends on the cleanup sweep.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(
        self,
        user_id: int,
        token: str,
        expires_at: datetime,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> RefreshToken:
        """Persist a newly issued refresh token (flushed, not committed)."""
        row = RefreshToken(
            user_id=user_id,
            token=token,
            expires_at=expires_at,
            revoked=False,
            device_info=device_info,
            ip_address=ip_address,
        )
        async with storage_guard(self.db, "refresh token insert"):
            self.db.add(row)
            await self.db.flush()
            await self.db.refresh(row)
        return row

    async def find_valid_by_token(self, token: str) -> RefreshToken | None:
        """Return the row for ``token`` if it is unrevoked and unexpired."""
        async with storage_guard(self.db, "refresh token lookup"):
            result = await self.db.execute(
                select(RefreshToken).where(
                    RefreshToken.token == token,
                    RefreshToken.revoked.is_(False),
                    RefreshToken.expires_at > utcnow(),
                )
            )
            return result.scalar_one_or_none()

    async def revoke_if_valid(self, token: str, user_id: int) -> int:
        """Atomically revoke ``token`` only if it is currently usable.

        The guarded UPDATE is the single point where two concurrent rotations
        of the same token are serialized: the storage engine lets exactly one
        of them match ``revoked = false``. Returns the affected row count.
        """
        now = utcnow()
        async with storage_guard(self.db, "refresh token rotation revoke"):
            result: CursorResult[Any] = await self.db.execute(  # type: ignore[assignment]
                update(RefreshToken)
                .where(
                    RefreshToken.token == token,
                    RefreshToken.user_id == user_id,
                    RefreshToken.revoked.is_(False),
                    RefreshToken.expires_at > now,
                )
                .values(revoked=True, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    async def revoke_by_token(self, token: str, user_id: int | None = None) -> int:
        """Revoke a single token, optionally scoped to its owner."""
        stmt = update(RefreshToken).where(
            RefreshToken.token == token,
            RefreshToken.revoked.is_(False),
        )
        if user_id is not None:
            stmt = stmt.where(RefreshToken.user_id == user_id)

        async with storage_guard(self.db, "refresh token revoke"):
            result: CursorResult[Any] = await self.db.execute(  # type: ignore[assignment]
                stmt.values(revoked=True, updated_at=utcnow()).execution_options(
                    synchronize_session=False
                )
            )
            return result.rowcount

    async def revoke_all_for_user(self, user_id: int) -> int:
        """Revoke every non-revoked token of a user (all-devices logout)."""
        async with storage_guard(self.db, "refresh token bulk revoke"):
            result: CursorResult[Any] = await self.db.execute(  # type: ignore[assignment]
                update(RefreshToken)
                .where(
                    RefreshToken.user_id == user_id,
                    RefreshToken.revoked.is_(False),
                )
                .values(revoked=True, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            logger.debug(f"Revoked {result.rowcount} refresh tokens for user_id={user_id}")
            return result.rowcount

    async def delete_expired_or_revoked(self) -> int:
        """Delete rows that can never be used again. Returns count removed."""
        async with storage_guard(self.db, "refresh token cleanup"):
            result: CursorResult[Any] = await self.db.execute(  # type: ignore[assignment]
                delete(RefreshToken)
                .where(
                    or_(
                        RefreshToken.expires_at < utcnow(),
                        RefreshToken.revoked.is_(True),
                    )
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    async def list_active_for_user(self, user_id: int) -> list[RefreshToken]:
        """Usable sessions of a user, newest first."""
        async with storage_guard(self.db, "active session listing"):
            result = await self.db.execute(
                select(RefreshToken)
                .where(
                    RefreshToken.user_id == user_id,
                    RefreshToken.revoked.is_(False),
                    RefreshToken.expires_at > utcnow(),
                )
                .order_by(RefreshToken.created_at.desc(), RefreshToken.id.desc())
            )
            return list(result.scalars().all())
