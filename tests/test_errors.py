"""Tests for the error taxonomy, configuration and audit helpers."""

import pytest

from finflow.audit import AuditLogger, InMemoryAuditStorage, mask_headers, truncate_body
from finflow.audit.logger import mask_secret
from finflow.config import NetworkSettings, get_settings, validate_all_settings
from finflow.errors import (
    AppError,
    DecodingError,
    ErrorCategory,
    NetworkError,
    ServerError,
    UnauthorizedError,
    UnknownError,
    ValidationError,
)
from finflow.models.audit import AuditEventType


class TestHttpStatusMapping:
    """Business codes that stand for an HTTP status."""

    @pytest.mark.parametrize("code, status", [
        (1006, 401),
        (1010, 401),
        (1011, 401),
        (1007, 403),
        (1002, 404),
        (1005, 400),
        (500, 400),
    ])
    def test_server_error_status(self, code, status):
        assert ServerError(code, "message").http_status_code == status

    def test_unauthorized_is_401(self):
        assert UnauthorizedError("expired").http_status_code == 401

    def test_other_errors_have_no_status(self):
        assert NetworkError("offline").http_status_code is None
        assert DecodingError().http_status_code is None
        assert ValidationError("bad").http_status_code is None


class TestErrorCategories:
    """Alert families a UI maps errors onto."""

    def test_categories(self):
        assert NetworkError("offline").category == ErrorCategory.NETWORK
        assert UnauthorizedError("expired").category == ErrorCategory.AUTH
        assert DecodingError().category == ErrorCategory.DATA
        assert ValidationError("bad").category == ErrorCategory.DATA
        assert UnknownError().category == ErrorCategory.GENERAL

    def test_server_error_auth_codes(self):
        assert ServerError(1006, "Unauthenticated").category == ErrorCategory.AUTH
        assert ServerError(401, "Unauthorized").category == ErrorCategory.AUTH
        assert ServerError(1002, "Not found").category == ErrorCategory.GENERAL

    def test_messages_are_verbatim(self):
        error = ServerError(1005, "Số dư không đủ")
        assert error.message == "Số dư không đủ"
        assert error.code == 1005
        assert isinstance(error, AppError)

    def test_default_messages(self):
        assert UnknownError().message == "Unknown error"
        assert DecodingError().message == "Could not process the server response"
        assert str(NetworkError("timed out")) == "Connection error: timed out"


class TestSettings:
    """Tests for pydantic-settings configuration."""

    def test_defaults(self):
        settings = NetworkSettings()
        assert settings.api_version == "1"
        assert settings.request_timeout == 30.0
        assert settings.resource_timeout == 60.0

    def test_trailing_slash_is_stripped(self):
        assert NetworkSettings(base_url="https://api.test/api/").base_url == "https://api.test/api"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("FINFLOW_NETWORK_API_VERSION", "2")
        assert NetworkSettings().api_version == "2"

    def test_connect_attempts_bounds(self):
        with pytest.raises(ValueError):
            NetworkSettings(connect_attempts=0)

    def test_validate_all_settings(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        get_settings.cache_clear()
        try:
            results = validate_all_settings()
        finally:
            get_settings.cache_clear()
        assert results["network"] is True
        assert results["storage"] is True
        assert results["app"] is False
        assert "app_error" in results


class TestAuditHelpers:
    """Masking, truncation and the never-raise contract."""

    def test_mask_bearer_keeps_scheme_and_tail(self):
        assert mask_secret("Bearer abcdefghijkl") == "Bearer ***ijkl"

    def test_mask_short_secret_hides_everything(self):
        assert mask_secret("Bearer abc") == "Bearer ***"

    def test_mask_headers_only_touches_sensitive(self):
        masked = mask_headers({
            "Authorization": "Bearer abcdefghijkl",
            "X-Registration-Token": "registration-token-1",
            "API-Version": "1",
        })
        assert masked["Authorization"] == "Bearer ***ijkl"
        assert masked["X-Registration-Token"] == "***en-1"
        assert masked["API-Version"] == "1"

    def test_truncate_body(self):
        assert truncate_body("short", 10) == "short"
        assert truncate_body(None, 10) is None
        assert truncate_body("abcdefghij-tail", 10) == "abcdefghij... (5 more chars)"

    async def test_unbuildable_event_is_dropped(self):
        """Test an event that fails validation never raises to the caller."""
        storage = InMemoryAuditStorage()
        audit = AuditLogger(storage)

        await audit.log_unauthorized("x" * 600)

        assert await storage.get_recent_events() == []

    async def test_storage_receives_events(self):
        storage = InMemoryAuditStorage(max_events=2)
        audit = AuditLogger(storage)

        await audit.log_logout(server_invalidated=True)
        await audit.log_session_transition("loading", "unauthenticated")
        await audit.log_login("alice")

        events = await storage.get_recent_events()
        assert [e.event_type for e in events] == [
            AuditEventType.LOGIN_SUCCEEDED,
            AuditEventType.SESSION_STATE_CHANGED,
        ]
