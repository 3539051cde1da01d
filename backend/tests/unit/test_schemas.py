"""Unit tests for auth request schemas."""

import pytest
from pydantic import ValidationError

from fintrack.schemas.auth import (
    LoginRequest,
    LogoutRequest,
    PreferencesUpdate,
    ProfileUpdate,
    RegisterRequest,
)


class TestRegisterRequest:
    """Tests for RegisterRequest validation."""

    def test_email_lowercased_and_name_stripped(self):
        req = RegisterRequest(email="Alice@X.COM", name="  Alice  ", password="secret1")
        assert req.email == "alice@x.com"
        assert req.name == "Alice"
        assert req.currency is None
        assert req.language is None

    def test_whitespace_name_rejected(self):
        with pytest.raises(ValidationError):
            RegisterRequest(email="a@x.com", name="   a ", password="secret1")

    @pytest.mark.parametrize("currency", ["usd", "US", "DOLLAR"])
    def test_invalid_currency(self, currency):
        with pytest.raises(ValidationError):
            RegisterRequest(email="a@x.com", name="Al", password="secret1", currency=currency)

    @pytest.mark.parametrize("language", ["en", "pt-BR"])
    def test_valid_language(self, language):
        req = RegisterRequest(email="a@x.com", name="Al", password="secret1", language=language)
        assert req.language == language

    @pytest.mark.parametrize("language", ["EN", "pt_br", "english"])
    def test_invalid_language(self, language):
        with pytest.raises(ValidationError):
            RegisterRequest(email="a@x.com", name="Al", password="secret1", language=language)

    def test_password_length(self):
        with pytest.raises(ValidationError):
            RegisterRequest(email="a@x.com", name="Al", password="12345")
        with pytest.raises(ValidationError):
            RegisterRequest(email="a@x.com", name="Al", password="x" * 129)


class TestLoginRequest:
    def test_email_lowercased(self):
        assert LoginRequest(email="A@X.com", password="p").email == "a@x.com"

    def test_empty_password_rejected(self):
        with pytest.raises(ValidationError):
            LoginRequest(email="a@x.com", password="")


class TestLogoutRequest:
    def test_defaults(self):
        req = LogoutRequest()
        assert req.refresh_token is None
        assert req.all_devices is False


class TestPartialUpdates:
    """Only explicitly provided, non-null fields count as changes."""

    def test_preferences_changes(self):
        update = PreferencesUpdate(currency="EUR", push_notifications=False)
        assert update.changes() == {"currency": "EUR", "push_notifications": False}

    def test_preferences_empty(self):
        assert PreferencesUpdate().changes() == {}

    def test_preferences_null_dropped(self):
        assert PreferencesUpdate(currency=None, weekly_reports=True).changes() == {
            "weekly_reports": True
        }

    def test_profile_changes(self):
        update = ProfileUpdate(email="New@X.com")
        assert update.changes() == {"email": "new@x.com"}

    def test_profile_name_length(self):
        with pytest.raises(ValidationError):
            ProfileUpdate(name="A")
        with pytest.raises(ValidationError):
            ProfileUpdate(name="x" * 101)

    def test_profile_name_stripped(self):
        assert ProfileUpdate(name="  Alicia ").changes() == {"name": "Alicia"}

    def test_profile_whitespace_name_rejected(self):
        with pytest.raises(ValidationError):
            ProfileUpdate(name="     ")
