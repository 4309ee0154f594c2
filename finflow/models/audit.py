"""
Audit Models for FinFlow

Every request, token refresh and session transition produces an audit
event. This provides:
1. Traceability of each logical API call, including its refresh and retry
2. Debugging information when a session unexpectedly ends
3. A record of which credentials were created or cleared, and when

DESIGN DECISION: Audit events never contain secrets. Tokens are masked
before they reach an event.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # HTTP traffic
    HTTP_REQUEST_SENT = "http_request_sent"
    HTTP_RESPONSE_RECEIVED = "http_response_received"
    HTTP_TRANSPORT_FAILED = "http_transport_failed"
    SERVER_ERROR_DECODED = "server_error_decoded"
    RESPONSE_DECODING_FAILED = "response_decoding_failed"

    # Token lifecycle
    TOKEN_REFRESH_STARTED = "token_refresh_started"
    TOKEN_REFRESHED = "token_refreshed"
    TOKEN_REFRESH_FAILED = "token_refresh_failed"
    UNAUTHORIZED = "unauthorized"

    # Identity operations
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGOUT_COMPLETED = "logout_completed"
    SERVER_LOGOUT_FAILED = "server_logout_failed"
    PROFILE_LOADED = "profile_loaded"
    PROFILE_CACHE_FALLBACK = "profile_cache_fallback"

    # Session
    SESSION_STATE_CHANGED = "session_state_changed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )
    category: str = Field(
        default="App",
        description="Subsystem that emitted the event (Network, Auth, Session)"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'request', 'user', 'session')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - ties one logical request to its refresh and retry
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "category": self.category,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.http_request("GET", url, headers, None, correlation_id)
        event = AuditEventBuilder.session_state_changed("loading", "authenticated")
    """

    @staticmethod
    def http_request(
        method: str,
        url: str,
        headers: dict[str, str],
        body: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HTTP_REQUEST_SENT,
            severity=AuditSeverity.DEBUG,
            category="Network",
            entity_type="request",
            correlation_id=correlation_id,
            description=f"{method} {url}",
            details={
                "method": method,
                "url": url,
                "headers": headers,
                "body": body,
            },
        )

    @staticmethod
    def http_response(
        status_code: int,
        url: str,
        body: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HTTP_RESPONSE_RECEIVED,
            severity=AuditSeverity.DEBUG if status_code < 400 else AuditSeverity.WARNING,
            category="Network",
            entity_type="request",
            correlation_id=correlation_id,
            description=f"{status_code} {url}",
            details={
                "status_code": status_code,
                "url": url,
                "body": body,
            },
        )

    @staticmethod
    def transport_failed(
        method: str,
        url: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HTTP_TRANSPORT_FAILED,
            severity=AuditSeverity.ERROR,
            category="Network",
            entity_type="request",
            correlation_id=correlation_id,
            description=f"{method} {url} failed before a response arrived",
            error_message=error_message,
        )

    @staticmethod
    def server_error(
        code: int,
        message: str,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SERVER_ERROR_DECODED,
            severity=AuditSeverity.ERROR,
            category="Network",
            correlation_id=correlation_id,
            description=f"Server error ({source}): Code {code}",
            details={"source": source},
            error_code=str(code),
            error_message=message,
        )

    @staticmethod
    def decoding_failed(
        url: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESPONSE_DECODING_FAILED,
            severity=AuditSeverity.ERROR,
            category="Network",
            correlation_id=correlation_id,
            description=f"Decoding error for {url}",
            error_message=error_message[:500],
        )

    @staticmethod
    def token_refresh_started(correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TOKEN_REFRESH_STARTED,
            category="Auth",
            correlation_id=correlation_id,
            description="Access token rejected, refreshing",
        )

    @staticmethod
    def token_refreshed(
        rotated_refresh_token: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TOKEN_REFRESHED,
            category="Auth",
            correlation_id=correlation_id,
            description="Access token refreshed",
            details={"rotated_refresh_token": rotated_refresh_token},
        )

    @staticmethod
    def token_refresh_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TOKEN_REFRESH_FAILED,
            severity=AuditSeverity.ERROR,
            category="Auth",
            correlation_id=correlation_id,
            description="Token refresh failed",
            error_message=error_message,
        )

    @staticmethod
    def unauthorized(
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNAUTHORIZED,
            severity=AuditSeverity.WARNING,
            category="Auth",
            correlation_id=correlation_id,
            description=f"Unauthorized: {reason}",
        )

    @staticmethod
    def login_succeeded(username: str, method: str = "password") -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            category="Auth",
            entity_type="user",
            entity_id=username,
            description=f"Login succeeded for {username}",
            details={"method": method},
        )

    @staticmethod
    def login_failed(error_message: str, method: str = "password") -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            category="Auth",
            description="Login failed",
            details={"method": method},
            error_message=error_message,
        )

    @staticmethod
    def logout_completed(server_invalidated: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGOUT_COMPLETED,
            category="Auth",
            description="Logout complete, tokens and cache cleared",
            details={"server_invalidated": server_invalidated},
        )

    @staticmethod
    def server_logout_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SERVER_LOGOUT_FAILED,
            severity=AuditSeverity.WARNING,
            category="Auth",
            description="Server-side logout failed, continuing with local cleanup",
            error_message=error_message,
        )

    @staticmethod
    def profile_loaded(user_id: str, cached: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_LOADED,
            category="Auth",
            entity_type="user",
            entity_id=user_id,
            description="Profile loaded" + (" and cached" if cached else ""),
            details={"cached": cached},
        )

    @staticmethod
    def profile_cache_fallback(user_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_CACHE_FALLBACK,
            severity=AuditSeverity.WARNING,
            category="Auth",
            entity_type="user",
            entity_id=user_id,
            description="Using cached profile after fetch failure",
            error_message=error_message,
        )

    @staticmethod
    def session_state_changed(previous: str, current: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_STATE_CHANGED,
            category="Session",
            entity_type="session",
            description=f"Session {previous} -> {current}",
            details={"previous": previous, "current": current},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        category: str = "App",
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            category=category,
            correlation_id=correlation_id,
            description=f"System error: {error_type}",
            details=details or {},
            error_code=error_type,
            error_message=error_message,
        )
