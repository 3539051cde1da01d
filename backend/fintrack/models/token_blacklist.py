"""Blacklisted access tokens, keyed by their per-issuance JTI."""

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from fintrack.models.base import BaseModel, UTCDateTime


class TokenBlacklist(BaseModel):
    """An access token revoked before its natural expiry.

    ``expires_at`` is copied from the token, so once it passes the entry is
    redundant and the cleanup scheduler drops it.
    """

    __tablename__ = "token_blacklist"

    jti: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<TokenBlacklist jti={self.jti}>"
