"""Tests for the auth gate, logout and active-session listing."""

import logging
from datetime import UTC, datetime, timedelta

import jwt
import pytest
from sqlalchemy import func, select

from fintrack.core import settings
from fintrack.models import RefreshToken, TokenBlacklist
from fintrack.services.auth import AuthGate, Identity
from fintrack.services.errors import (
    InvalidTokenError,
    TokenRevokedError,
    UnknownUserError,
)
from fintrack.services.sessions import SessionService
from fintrack.services.tokens import TokenService

pytestmark = pytest.mark.asyncio


async def _issue(db_session, user, **kwargs):
    return await TokenService(db_session).issue_token_pair(user.id, user.email, **kwargs)


async def _revoked(db_session, token: str) -> bool:
    result = await db_session.execute(
        select(RefreshToken.revoked).where(RefreshToken.token == token)
    )
    return result.scalar_one()


class TestAuthGate:
    """Tests for AuthGate.authenticate."""

    async def test_valid_token_resolves_identity(self, db_session, test_user, token_pair):
        identity = await AuthGate(db_session).authenticate(token_pair.access_token)

        assert isinstance(identity, Identity)
        assert identity.id == test_user.id
        assert identity.email == "a@x.com"
        assert identity.currency == "USD"
        assert identity.language == "en"
        assert identity.jti == jwt.decode(
            token_pair.access_token, options={"verify_signature": False}
        )["jti"]

    async def test_blacklisted_token_rejected(self, db_session, test_user, token_pair):
        identity = await AuthGate(db_session).authenticate(token_pair.access_token)
        await SessionService(db_session).logout(
            user_id=test_user.id,
            access_token_jti=identity.jti,
            access_token=token_pair.access_token,
        )

        with pytest.raises(TokenRevokedError):
            await AuthGate(db_session).authenticate(token_pair.access_token)

    async def test_expired_blacklist_entry_ignored(self, db_session, test_user, token_pair):
        """Only blacklist entries that have not expired block a token."""
        identity = await AuthGate(db_session).authenticate(token_pair.access_token)
        db_session.add(
            TokenBlacklist(jti=identity.jti, expires_at=datetime.now(UTC) - timedelta(seconds=1))
        )
        await db_session.commit()

        again = await AuthGate(db_session).authenticate(token_pair.access_token)
        assert again.id == test_user.id

    async def test_token_without_jti_skips_blacklist(self, db_session, test_user):
        now = datetime.now(UTC)
        token = jwt.encode(
            {
                "sub": str(test_user.id),
                "email": test_user.email,
                "type": "access",
                "iss": settings.jwt_issuer,
                "aud": settings.jwt_audience,
                "iat": now,
                "exp": now + timedelta(minutes=5),
            },
            settings.jwt_secret_key,
            algorithm="HS256",
        )
        identity = await AuthGate(db_session).authenticate(token)
        assert identity.id == test_user.id
        assert identity.jti is None

    async def test_unknown_user_rejected(self, db_session, test_user, token_pair):
        await db_session.delete(test_user)
        await db_session.commit()

        with pytest.raises(UnknownUserError):
            await AuthGate(db_session).authenticate(token_pair.access_token)

    async def test_invalid_token_rejected(self, db_session):
        with pytest.raises(InvalidTokenError):
            await AuthGate(db_session).authenticate("invalid")


class TestLogout:
    """Tests for SessionService.logout."""

    async def test_single_device_logout(self, db_session, test_user):
        first = await _issue(db_session, test_user)
        second = await _issue(db_session, test_user)
        identity = await AuthGate(db_session).authenticate(first.access_token)

        result = await SessionService(db_session).logout(
            user_id=test_user.id,
            access_token_jti=identity.jti,
            access_token=first.access_token,
            refresh_token=first.refresh_token,
        )

        assert result.access_token_blacklisted is True
        assert result.refresh_tokens_revoked == 1
        assert await _revoked(db_session, first.refresh_token) is True
        assert await _revoked(db_session, second.refresh_token) is False

        # The other session is unaffected
        other = await AuthGate(db_session).authenticate(second.access_token)
        assert other.id == test_user.id

    async def test_all_devices_logout(self, db_session, test_user):
        pairs = [await _issue(db_session, test_user) for _ in range(3)]
        identity = await AuthGate(db_session).authenticate(pairs[0].access_token)

        result = await SessionService(db_session).logout(
            user_id=test_user.id,
            access_token_jti=identity.jti,
            access_token=pairs[0].access_token,
            all_devices=True,
        )

        assert result.refresh_tokens_revoked == 3
        for pair in pairs:
            assert await _revoked(db_session, pair.refresh_token) is True
            with pytest.raises(TokenRevokedError):
                await TokenService(db_session).rotate_refresh_token(pair.refresh_token)

    async def test_all_devices_leaves_other_users(self, db_session, test_user, user_factory):
        mine = await _issue(db_session, test_user)
        other_user = await user_factory()
        theirs = await _issue(db_session, other_user)

        await SessionService(db_session).logout(user_id=test_user.id, all_devices=True)

        assert await _revoked(db_session, mine.refresh_token) is True
        assert await _revoked(db_session, theirs.refresh_token) is False

    async def test_cannot_revoke_another_users_token(self, db_session, test_user, user_factory):
        other_user = await user_factory()
        theirs = await _issue(db_session, other_user)

        result = await SessionService(db_session).logout(
            user_id=test_user.id, refresh_token=theirs.refresh_token
        )

        assert result.refresh_tokens_revoked == 0
        assert await _revoked(db_session, theirs.refresh_token) is False

    async def test_logout_is_idempotent(self, db_session, test_user, token_pair):
        identity = await AuthGate(db_session).authenticate(token_pair.access_token)
        service = SessionService(db_session)
        kwargs = {
            "user_id": test_user.id,
            "access_token_jti": identity.jti,
            "access_token": token_pair.access_token,
            "refresh_token": token_pair.refresh_token,
        }

        first = await service.logout(**kwargs)
        second = await service.logout(**kwargs)

        assert first.refresh_tokens_revoked == 1
        assert second.refresh_tokens_revoked == 0
        assert second.access_token_blacklisted is True

        count = await db_session.execute(
            select(func.count())
            .select_from(TokenBlacklist)
            .where(TokenBlacklist.jti == identity.jti)
        )
        assert count.scalar_one() == 1

    async def test_logout_logs_security_event(self, db_session, test_user, caplog):
        caplog.set_level(logging.INFO, logger="fintrack.services.sessions")

        await SessionService(db_session).logout(user_id=test_user.id, all_devices=True)

        record = next(r for r in caplog.records if getattr(r, "event", None) == "logout")
        assert record.user_id == test_user.id

    async def test_blacklist_entry_expires_with_token(self, db_session, test_user, token_pair):
        identity = await AuthGate(db_session).authenticate(token_pair.access_token)
        await SessionService(db_session).logout(
            user_id=test_user.id,
            access_token_jti=identity.jti,
            access_token=token_pair.access_token,
        )

        result = await db_session.execute(
            select(TokenBlacklist.expires_at).where(TokenBlacklist.jti == identity.jti)
        )
        assert result.scalar_one() == token_pair.access_token_expires_at


class TestListSessions:
    """Tests for SessionService.list_sessions."""

    async def test_lists_only_active_sessions_newest_first(self, db_session, test_user):
        first = await _issue(db_session, test_user, device_info="Phone")
        second = await _issue(db_session, test_user, device_info="Laptop")
        revoked = await _issue(db_session, test_user, device_info="Tablet")
        await SessionService(db_session).logout(
            user_id=test_user.id, refresh_token=revoked.refresh_token
        )

        sessions = await SessionService(db_session).list_sessions(test_user.id)

        assert [s.device_info for s in sessions] == ["Laptop", "Phone"]
        assert {s.token for s in sessions} == {first.refresh_token, second.refresh_token}

    async def test_no_sessions(self, db_session, test_user):
        assert await SessionService(db_session).list_sessions(test_user.id) == []
