"""Pydantic schemas for authentication and session API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

_CURRENCY_PATTERN = r"^[A-Z]{3}$"
_LANGUAGE_PATTERN = r"^[a-z]{2}(-[A-Z]{2})?$"


def _normalize_email(value: str) -> str:
    return value.strip().lower()


def _strip_name(value: str) -> str:
    value = value.strip()
    if len(value) < 2:
        raise ValueError("Name must be between 2 and 100 characters")
    return value


class RegisterRequest(BaseModel):
    """Request for account registration."""

    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)
    password: str = Field(
        ...,
        min_length=6,
        max_length=128,
        description="Password (minimum 6 characters)",
    )
    currency: str | None = Field(None, pattern=_CURRENCY_PATTERN, description="ISO-4217 code")
    language: str | None = Field(
        None, pattern=_LANGUAGE_PATTERN, description="e.g. 'en' or 'pt-BR'"
    )

    @field_validator("email", mode="after")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _strip_name(v)


class LoginRequest(BaseModel):
    """Request for login."""

    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="after")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class RefreshRequest(BaseModel):
    """Request for token rotation."""

    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    """Request for logout with optional refresh token revocation."""

    refresh_token: str | None = Field(
        None,
        description="Refresh token of this session to revoke.",
    )
    all_devices: bool = Field(
        False,
        description="Revoke every refresh token of the user (log out everywhere).",
    )


class PreferencesUpdate(BaseModel):
    """Partial preference update. Only fields present in the request are applied."""

    currency: str | None = Field(None, pattern=_CURRENCY_PATTERN)
    language: str | None = Field(None, pattern=_LANGUAGE_PATTERN)
    email_notifications: bool | None = None
    push_notifications: bool | None = None
    weekly_reports: bool | None = None
    budget_alerts: bool | None = None

    def changes(self) -> dict[str, object]:
        """Fields explicitly set to a non-null value."""
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}


class ProfileUpdate(BaseModel):
    """Partial profile update."""

    name: str | None = Field(None, min_length=2, max_length=100)
    email: EmailStr | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        return _strip_name(v) if v is not None else None

    @field_validator("email", mode="after")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return _normalize_email(v) if v is not None else None

    def changes(self) -> dict[str, object]:
        """Fields explicitly set to a non-null value."""
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}


class UserResponse(BaseModel):
    """Response with user information."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    currency: str
    language: str
    email_notifications: bool
    push_notifications: bool
    weekly_reports: bool
    budget_alerts: bool


class TokenResponse(BaseModel):
    """Response with a JWT token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token lifetime in seconds")
    access_token_expires_at: datetime
    refresh_token_expires_at: datetime


class AuthResponse(TokenResponse):
    """Token pair plus the authenticated user (login/registration)."""

    user: UserResponse


class SessionResponse(BaseModel):
    """One active session (unrevoked refresh token)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    device_info: str | None
    ip_address: str | None
    created_at: datetime
    expires_at: datetime


class SessionListResponse(BaseModel):
    """Active sessions of the current user."""

    sessions: list[SessionResponse]
    total: int


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
