"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from fintrack.core import get_db
from fintrack.core.request_utils import get_client_ip, get_device_info
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
from fintrack.services.auth import AuthGate, AuthService, Identity
from fintrack.services.errors import (
    AuthError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
)
from fintrack.services.sessions import SessionService
from fintrack.services.tokens import TokenPair, TokenService
from fintrack.services.users import UserService

logger = logging.getLogger(__name__)

# Single message for every token failure so callers cannot tell which check failed
INVALID_TOKEN_DETAIL = "Invalid or expired token"
INVALID_REFRESH_DETAIL = "Invalid or expired refresh token"
INVALID_CREDENTIALS_DETAIL = "Invalid email or password"

router = APIRouter(prefix="/auth", tags=["auth"])


def _unauthorized(detail: str = INVALID_TOKEN_DETAIL) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _bearer_token(request: Request) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def _token_fields(pair: TokenPair) -> dict:
    return {
        "access_token": pair.access_token,
        "refresh_token": pair.refresh_token,
        "token_type": pair.token_type,
        "expires_in": pair.expires_in,
        "access_token_expires_at": pair.access_token_expires_at,
        "refresh_token_expires_at": pair.refresh_token_expires_at,
    }


def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    """Dependency to get auth service."""
    return AuthService(db)


def get_auth_gate(db: AsyncSession = Depends(get_db)) -> AuthGate:
    """Dependency to get the auth gate."""
    return AuthGate(db)


async def get_current_identity(
    request: Request,
    gate: AuthGate = Depends(get_auth_gate),
) -> Identity:
    """Dependency resolving the bearer token to the current identity."""
    token = _bearer_token(request)
    if token is None:
        raise _unauthorized()

    try:
        return await gate.authenticate(token)
    except AuthError as e:
        logger.debug(f"Rejected access token: {type(e).__name__}: {e}")
        raise _unauthorized() from e


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Create an account and return its first token pair."""
    try:
        user, pair = await auth_service.register(
            email=body.email,
            name=body.name,
            password=body.password,
            currency=body.currency,
            language=body.language,
            device_info=get_device_info(request),
            ip_address=get_client_ip(request),
        )
    except EmailAlreadyRegisteredError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    return AuthResponse(user=UserResponse.model_validate(user), **_token_fields(pair))


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Authenticate with email and password and open a new session."""
    client_ip = get_client_ip(request)
    try:
        user, pair = await auth_service.login(
            email=body.email,
            password=body.password,
            device_info=get_device_info(request),
            ip_address=client_ip,
        )
    except InvalidCredentialsError as e:
        logger.warning(f"Failed login from {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS_DETAIL,
        ) from e

    return AuthResponse(user=UserResponse.model_validate(user), **_token_fields(pair))


@router.post("/refresh", response_model=TokenResponse)
async def refresh_tokens(
    body: RefreshRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    """Rotate a refresh token: the presented token is revoked, a new pair returned."""
    try:
        pair = await TokenService(db).rotate_refresh_token(
            body.refresh_token,
            device_info=get_device_info(request),
            ip_address=get_client_ip(request),
        )
    except AuthError as e:
        raise _unauthorized(INVALID_REFRESH_DETAIL) from e

    return TokenResponse(**_token_fields(pair))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    body: LogoutRequest | None = None,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> MessageResponse:
    """Log out this session, or every session with ``all_devices``.

    Blacklists the presented access token for the rest of its lifetime.
    """
    body = body or LogoutRequest()
    await SessionService(db).logout(
        user_id=identity.id,
        access_token_jti=identity.jti,
        access_token=_bearer_token(request),
        refresh_token=body.refresh_token,
        all_devices=body.all_devices,
    )
    if body.all_devices:
        return MessageResponse(message="Logged out from all devices")
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> UserResponse:
    """Get the current user's profile and preferences."""
    user = await UserService(db).get_by_id(identity.id)
    if user is None:
        raise _unauthorized()
    return UserResponse.model_validate(user)


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> UserResponse:
    """Update name and/or email."""
    try:
        user = await UserService(db).update_profile(identity.id, body)
    except EmailAlreadyRegisteredError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserResponse.model_validate(user)


@router.put("/preferences", response_model=UserResponse)
async def update_preferences(
    body: PreferencesUpdate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> UserResponse:
    """Update currency, language and notification preferences."""
    user = await UserService(db).update_preferences(identity.id, body)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserResponse.model_validate(user)


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> SessionListResponse:
    """List the current user's active sessions."""
    sessions = await SessionService(db).list_sessions(identity.id)
    return SessionListResponse(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        total=len(sessions),
    )
