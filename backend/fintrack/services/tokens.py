"""Token service - issues, verifies and rotates JWT access/refresh pairs.

Access and refresh tokens are signed with different secrets, so leaking one
secret never lets an attacker forge the other token class. Every token
carries a unique ``jti``; access-token JTIs are what logout blacklists.

A refresh token is single-use: rotation revokes the stored row with a
guarded UPDATE before a new pair is minted. The row is authoritative, a
correctly signed token whose row is missing, revoked or expired is refused.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt.exceptions import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from fintrack.core.config import Settings, settings as default_settings
from fintrack.services.errors import (
    InvalidTokenError,
    TokenExpiredError,
    TokenRevokedError,
    UnknownUserError,
    storage_guard,
)
from fintrack.services.refresh_tokens import RefreshTokenStore
from fintrack.services.users import UserService

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

_REQUIRED_CLAIMS = ["exp", "iat", "sub", "iss", "aud"]


@dataclass(frozen=True)
class TokenPair:
    """A freshly minted access/refresh pair."""

    access_token: str
    refresh_token: str
    access_token_expires_at: datetime
    refresh_token_expires_at: datetime
    expires_in: int
    token_type: str = "bearer"


@dataclass(frozen=True)
class AccessTokenClaims:
    user_id: int
    email: str
    # None for tokens minted before JTIs were embedded
    jti: str | None
    expires_at: datetime


@dataclass(frozen=True)
class RefreshTokenClaims:
    user_id: int
    jti: str | None
    expires_at: datetime


def token_expiry(token: str) -> datetime | None:
    """Read ``exp`` without verifying the signature.

    Best-effort helper for logout, where the token was already verified by
    the auth gate and only its expiry is needed.
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except PyJWTError:
        return None
    exp = payload.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=UTC)


def _subject_to_user_id(payload: dict[str, Any]) -> int:
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidTokenError("Token subject is not a user id") from e


class TokenService:
    """Service for the token-pair lifecycle."""

    def __init__(self, db: AsyncSession, config: Settings | None = None):
        self.db = db
        self.settings = config or default_settings
        self.refresh_tokens = RefreshTokenStore(db)

    # --- Encoding / decoding ---

    def _encode(self, claims: dict[str, Any], secret: str) -> str:
        token = jwt.encode(claims, secret, algorithm=self.settings.jwt_algorithm)
        # PyJWT 2.x returns str; older type stubs may declare bytes
        return str(token)

    def _decode(self, token: str, secret: str, expected_type: str) -> dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.settings.jwt_algorithm],
                audience=self.settings.jwt_audience,
                issuer=self.settings.jwt_issuer,
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except PyJWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e

        if payload.get("type") != expected_type:
            raise InvalidTokenError(f"Not an {expected_type} token")
        return payload

    # --- Issuance ---

    async def issue_token_pair(
        self,
        user_id: int,
        email: str,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> TokenPair:
        """Mint an access/refresh pair and persist the refresh token.

        The refresh row is committed before the pair is returned; if storage
        fails a StorageError propagates and no token leaves this method.
        """
        # JWT exp has second resolution; keep the stored expiry identical
        now = datetime.now(UTC).replace(microsecond=0)
        access_expires_at = now + timedelta(minutes=self.settings.jwt_access_token_expire_minutes)
        refresh_expires_at = now + timedelta(days=self.settings.jwt_refresh_token_expire_days)

        common = {
            "sub": str(user_id),
            "iss": self.settings.jwt_issuer,
            "aud": self.settings.jwt_audience,
            "iat": now,
        }
        access_token = self._encode(
            {
                **common,
                "email": email,
                "jti": str(uuid.uuid4()),
                "type": ACCESS_TOKEN_TYPE,
                "exp": access_expires_at,
            },
            self.settings.jwt_secret_key,
        )
        refresh_token = self._encode(
            {
                **common,
                "jti": str(uuid.uuid4()),
                "type": REFRESH_TOKEN_TYPE,
                "exp": refresh_expires_at,
            },
            self.settings.jwt_refresh_secret_key,
        )

        await self.refresh_tokens.insert(
            user_id=user_id,
            token=refresh_token,
            expires_at=refresh_expires_at,
            device_info=device_info,
            ip_address=ip_address,
        )
        async with storage_guard(self.db, "token issuance commit"):
            await self.db.commit()

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            access_token_expires_at=access_expires_at,
            refresh_token_expires_at=refresh_expires_at,
            expires_in=self.settings.jwt_access_token_expire_minutes * 60,
        )

    # --- Verification ---

    def verify_access_token(self, token: str) -> AccessTokenClaims:
        """Validate signature, issuer, audience, expiry and token class."""
        payload = self._decode(token, self.settings.jwt_secret_key, ACCESS_TOKEN_TYPE)
        email = payload.get("email")
        if not isinstance(email, str):
            raise InvalidTokenError("Token missing email")
        return AccessTokenClaims(
            user_id=_subject_to_user_id(payload),
            email=email,
            jti=payload.get("jti"),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
        )

    def verify_refresh_token(self, token: str) -> RefreshTokenClaims:
        """Validate a refresh token against the refresh secret."""
        payload = self._decode(token, self.settings.jwt_refresh_secret_key, REFRESH_TOKEN_TYPE)
        return RefreshTokenClaims(
            user_id=_subject_to_user_id(payload),
            jti=payload.get("jti"),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
        )

    # --- Rotation ---

    async def rotate_refresh_token(
        self,
        old_refresh_token: str,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> TokenPair:
        """Exchange a refresh token for a new pair, revoking the old one.

        Raises:
            InvalidTokenError: Bad signature, wrong class, or expired
            TokenRevokedError: Row missing, already revoked, or expired in storage
            UnknownUserError: The token's user no longer exists
        """
        claims = self.verify_refresh_token(old_refresh_token)

        revoked = await self.refresh_tokens.revoke_if_valid(old_refresh_token, claims.user_id)
        if revoked != 1:
            # Either never issued, already rotated/logged out, or a concurrent
            # rotation with the same token won the update
            logger.warning(
                f"Refresh token reuse or unknown token for user_id={claims.user_id}",
                extra={"user_id": claims.user_id, "event": "refresh_token_reuse"},
            )
            raise TokenRevokedError("Refresh token not found, revoked or expired")

        user = await UserService(self.db).get_by_id(claims.user_id)
        if user is None:
            # Keep the revoke: the token must not outlive its user
            async with storage_guard(self.db, "refresh token revoke commit"):
                await self.db.commit()
            raise UnknownUserError("User not found")

        # issue_token_pair commits the revoke and the new row together
        return await self.issue_token_pair(user.id, user.email, device_info, ip_address)
