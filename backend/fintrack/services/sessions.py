"""Session revocation (logout) and active-session listing."""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from fintrack.models import RefreshToken
from fintrack.services.errors import storage_guard
from fintrack.services.refresh_tokens import RefreshTokenStore
from fintrack.services.token_blacklist import TokenBlacklistStore
from fintrack.services.tokens import token_expiry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogoutResult:
    access_token_blacklisted: bool
    refresh_tokens_revoked: int


class SessionService:
    """Ends sessions: blacklists the current access token and revokes refresh tokens."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.refresh_tokens = RefreshTokenStore(db)
        self.blacklist = TokenBlacklistStore(db)

    async def logout(
        self,
        user_id: int,
        access_token_jti: str | None = None,
        access_token: str | None = None,
        refresh_token: str | None = None,
        all_devices: bool = False,
    ) -> LogoutResult:
        """Terminate the current session, or every session of the user.

        Safe to repeat: an already blacklisted JTI or already revoked refresh
        token is left as is.
        """
        blacklisted = False
        if access_token_jti and access_token:
            expires_at = token_expiry(access_token)
            if expires_at is not None:
                await self.blacklist.insert(access_token_jti, expires_at)
                blacklisted = True

        revoked = 0
        if all_devices:
            revoked = await self.refresh_tokens.revoke_all_for_user(user_id)
        elif refresh_token:
            revoked = await self.refresh_tokens.revoke_by_token(refresh_token, user_id=user_id)

        async with storage_guard(self.db, "logout commit"):
            await self.db.commit()

        logger.info(
            f"User logged out: id={user_id} all_devices={all_devices} "
            f"revoked_refresh_tokens={revoked}",
            extra={"user_id": user_id, "event": "logout"},
        )
        return LogoutResult(access_token_blacklisted=blacklisted, refresh_tokens_revoked=revoked)

    async def list_sessions(self, user_id: int) -> list[RefreshToken]:
        """Active sessions (usable refresh tokens) of a user, newest first."""
        return await self.refresh_tokens.list_active_for_user(user_id)
