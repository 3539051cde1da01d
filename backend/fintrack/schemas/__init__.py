# Fintrack Schemas
from fintrack.schemas.auth import (
    AuthResponse,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    PreferencesUpdate,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    SessionListResponse,
    SessionResponse,
    TokenResponse,
    UserResponse,
)

__all__ = [
    "AuthResponse",
    "LoginRequest",
    "LogoutRequest",
    "MessageResponse",
    "PreferencesUpdate",
    "ProfileUpdate",
    "RefreshRequest",
    "RegisterRequest",
    "SessionListResponse",
    "SessionResponse",
    "TokenResponse",
    "UserResponse",
]
