"""User model - the identity principal behind every session."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from fintrack.models.base import BaseModel

DEFAULT_CURRENCY = "USD"
DEFAULT_LANGUAGE = "en"


class User(BaseModel):
    """Registered user with display and notification preferences.

    Emails are stored lowercased; the unique index is the login key.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Preferences
    currency: Mapped[str] = mapped_column(String(3), default=DEFAULT_CURRENCY, nullable=False)
    language: Mapped[str] = mapped_column(String(5), default=DEFAULT_LANGUAGE, nullable=False)
    email_notifications: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    push_notifications: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    weekly_reports: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    budget_alerts: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User {self.email}>"
