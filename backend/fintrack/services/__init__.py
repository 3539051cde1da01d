# Fintrack Services
from fintrack.services.auth import AuthGate, AuthService, Identity
from fintrack.services.refresh_tokens import RefreshTokenStore
from fintrack.services.session_cleanup import CleanupResult, SessionCleanupScheduler
from fintrack.services.sessions import LogoutResult, SessionService
from fintrack.services.token_blacklist import TokenBlacklistStore
from fintrack.services.tokens import TokenPair, TokenService, token_expiry
from fintrack.services.users import UserService

__all__ = [
    "AuthGate",
    "AuthService",
    "CleanupResult",
    "Identity",
    "LogoutResult",
    "RefreshTokenStore",
    "SessionCleanupScheduler",
    "SessionService",
    "TokenBlacklistStore",
    "TokenPair",
    "TokenService",
    "UserService",
    "token_expiry",
]
