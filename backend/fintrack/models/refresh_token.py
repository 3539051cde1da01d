"""Refresh token model - one row per issued long-lived session credential."""

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fintrack.models.base import BaseModel, UTCDateTime


class RefreshToken(BaseModel):
    """A refresh token bound to one user session on one device.

    Usable for rotation only while ``revoked`` is false and ``expires_at`` is
    in the future. Rotation and logout flip ``revoked``; the cleanup
    scheduler deletes revoked or expired rows.
    """

    __tablename__ = "refresh_tokens"
    __table_args__ = (Index("ix_refresh_tokens_user_id_revoked", "user_id", "revoked"),)

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # Signed JWT string, looked up verbatim on rotation
    token: Mapped[str] = mapped_column(String(512), nullable=False, unique=True, index=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Session metadata
    device_info: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)

    def __repr__(self) -> str:
        return f"<RefreshToken id={self.id} user_id={self.user_id} revoked={self.revoked}>"
