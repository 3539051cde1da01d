"""Authentication entry points: login/registration and the auth gate."""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from fintrack.core.config import Settings
from fintrack.models import User
from fintrack.services.errors import TokenRevokedError, UnknownUserError
from fintrack.services.token_blacklist import TokenBlacklistStore
from fintrack.services.tokens import TokenPair, TokenService
from fintrack.services.users import UserService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """The authenticated principal attached to a request."""

    id: int
    email: str
    name: str
    currency: str
    language: str
    email_notifications: bool
    push_notifications: bool
    weekly_reports: bool
    budget_alerts: bool
    # Needed at logout to blacklist this exact access token
    jti: str | None

    @classmethod
    def from_user(cls, user: User, jti: str | None) -> "Identity":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            currency=user.currency,
            language=user.language,
            email_notifications=user.email_notifications,
            push_notifications=user.push_notifications,
            weekly_reports=user.weekly_reports,
            budget_alerts=user.budget_alerts,
            jti=jti,
        )


class AuthGate:
    """Verifies inbound access tokens for every protected call."""

    def __init__(self, db: AsyncSession, config: Settings | None = None):
        self.tokens = TokenService(db, config)
        self.blacklist = TokenBlacklistStore(db)
        self.users = UserService(db)

    async def authenticate(self, access_token: str) -> Identity:
        """Resolve an access token to an Identity.

        Raises InvalidTokenError, TokenRevokedError or UnknownUserError; callers
        must report all of them identically.
        """
        claims = self.tokens.verify_access_token(access_token)

        # Tokens minted without a JTI predate blacklisting and skip the check
        if claims.jti and await self.blacklist.is_active(claims.jti):
            logger.warning(
                f"Blacklisted access token used by user_id={claims.user_id}",
                extra={"user_id": claims.user_id, "event": "revoked_token_use"},
            )
            raise TokenRevokedError("Token has been revoked")

        user = await self.users.get_by_id(claims.user_id)
        if user is None:
            raise UnknownUserError("User not found")

        return Identity.from_user(user, claims.jti)


class AuthService:
    """Login and registration: verify identity, then mint a token pair."""

    def __init__(self, db: AsyncSession, config: Settings | None = None):
        self.users = UserService(db)
        self.tokens = TokenService(db, config)

    async def register(
        self,
        email: str,
        name: str,
        password: str,
        currency: str | None = None,
        language: str | None = None,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[User, TokenPair]:
        """Create an account and open its first session."""
        user = await self.users.register(email, name, password, currency, language)
        pair = await self.tokens.issue_token_pair(user.id, user.email, device_info, ip_address)
        return user, pair

    async def login(
        self,
        email: str,
        password: str,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[User, TokenPair]:
        """Verify credentials and open a new session.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password
        """
        user = await self.users.authenticate(email, password)
        pair = await self.tokens.issue_token_pair(user.id, user.email, device_info, ip_address)
        logger.info(
            f"User logged in: id={user.id}",
            extra={"user_id": user.id, "event": "login", "client_ip": ip_address},
        )
        return user, pair
