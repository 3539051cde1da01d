# Fintrack Models
from fintrack.models.base import BaseModel, UTCDateTime
from fintrack.models.refresh_token import RefreshToken
from fintrack.models.token_blacklist import TokenBlacklist
from fintrack.models.user import User

__all__ = [
    "BaseModel",
    "RefreshToken",
    "TokenBlacklist",
    "User",
    "UTCDateTime",
]
