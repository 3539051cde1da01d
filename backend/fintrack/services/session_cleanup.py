"""Session cleanup scheduler - periodically deletes dead token rows.

Purely garbage collection: every validity check already filters on
revocation and expiry at read time, so a missed sweep only costs storage.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fintrack.core import async_session_maker, settings
from fintrack.core.logging import get_logger
from fintrack.services.errors import storage_guard
from fintrack.services.refresh_tokens import RefreshTokenStore
from fintrack.services.token_blacklist import TokenBlacklistStore

logger = get_logger("session_cleanup")


@dataclass(frozen=True)
class CleanupResult:
    refresh_tokens: int
    blacklisted_tokens: int


class SessionCleanupScheduler:
    """Background task sweeping expired/revoked refresh tokens and expired
    blacklist entries.

    The owner (the application lifespan) holds the instance and drives
    ``start``/``stop``. The first sweep runs immediately; each following one
    is scheduled a full interval after the previous sweep finished, so runs
    never overlap.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        interval_seconds: int | None = None,
    ):
        self._session_factory = session_factory or async_session_maker
        self._interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.session_cleanup_interval_seconds
        )
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def interval_seconds(self) -> int:
        return self._interval_seconds

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background sweep task (no-op if already running)."""
        if self._running:
            logger.warning("Session cleanup scheduler is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._cleanup_loop(), name="session-cleanup")
        logger.info(f"Session cleanup scheduler started (interval: {self._interval_seconds}s)")

    async def stop(self) -> None:
        """Cancel the background task (no-op if not running)."""
        was_running = self._running
        self._running = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if was_running:
            logger.info("Session cleanup scheduler stopped")

    async def _cleanup_loop(self) -> None:
        """Sweep, then sleep a full interval, until stopped."""
        while self._running:
            try:
                await self._run_cleanup()
            except Exception as e:
                logger.error(f"Error in session cleanup: {e}")

            await asyncio.sleep(self._interval_seconds)

    async def _run_cleanup(self) -> None:
        """Execute a single scheduled sweep and log what it removed."""
        result = await self.run_cleanup_now()
        if result.refresh_tokens > 0 or result.blacklisted_tokens > 0:
            logger.info(
                f"Session cleanup: removed {result.refresh_tokens} refresh tokens, "
                f"{result.blacklisted_tokens} blacklisted tokens"
            )

    async def _sweep(self, name: str, action: Callable[[AsyncSession], Awaitable[int]]) -> int:
        async with self._session_factory() as db:
            removed = await action(db)
            async with storage_guard(db, f"{name} cleanup commit"):
                await db.commit()
            return removed

    async def run_cleanup_now(self) -> CleanupResult:
        """Run one sweep immediately.

        Both stores are swept in separate transactions so a failure in one
        does not undo the other; the first failure is re-raised afterwards.

        Returns:
            Number of rows deleted from each store
        """
        counts: dict[str, int] = {}
        failure: Exception | None = None

        sweeps: dict[str, Callable[[AsyncSession], Awaitable[int]]] = {
            "refresh_tokens": lambda db: RefreshTokenStore(db).delete_expired_or_revoked(),
            "blacklisted_tokens": lambda db: TokenBlacklistStore(db).delete_expired(),
        }
        for name, action in sweeps.items():
            try:
                counts[name] = await self._sweep(name, action)
            except Exception as e:
                logger.exception(f"Error sweeping {name}: {e}")
                counts[name] = 0
                failure = failure or e

        if failure is not None:
            raise failure

        return CleanupResult(**counts)
