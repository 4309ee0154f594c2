"""
Audit Logger

DESIGN DECISION: Every request, refresh and session transition is logged.
This provides:
1. Traceability of a logical request across refresh and retry
2. Debugging capability when a session ends unexpectedly
3. A local history of credential changes

The audit logger:
- Never raises (a logging failure must not change control flow)
- Masks bearer tokens before anything is written
- Supports correlation IDs to trace related events
"""

import logging
from typing import Any, Callable, Mapping, Optional
from uuid import UUID, uuid4

import structlog

from finflow.models.audit import AuditEvent, AuditEventBuilder
from finflow.audit.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


SENSITIVE_HEADERS = frozenset({"authorization", "x-registration-token", "x-reset-token"})


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))
    logging.getLogger("finflow").setLevel(level)


def get_logger(category: str) -> structlog.stdlib.BoundLogger:
    """Logger bound to a subsystem category (Network, Auth, Session, Cache)."""
    return structlog.get_logger("finflow").bind(category=category)


def mask_secret(value: str) -> str:
    """Keep the scheme and last four characters of a credential."""
    scheme, _, secret = value.rpartition(" ")
    tail = secret[-4:] if len(secret) > 8 else ""
    masked = f"***{tail}"
    return f"{scheme} {masked}" if scheme else masked


def mask_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {
        name: mask_secret(value) if name.lower() in SENSITIVE_HEADERS else value
        for name, value in headers.items()
    }


def truncate_body(body: Optional[str], limit: int) -> Optional[str]:
    if body is None or len(body) <= limit:
        return body
    return f"{body[:limit]}... ({len(body) - limit} more chars)"


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An optional audit storage (for inspection by tests or tooling)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        body_limit: int = 1000,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            body_limit: Maximum characters of an HTTP body kept in an event
        """
        self._storage = storage
        self._body_limit = body_limit
        self._logger = structlog.get_logger("finflow.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        try:
            log_dict = event.to_log_dict()

            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            elif event.severity.value == "debug":
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            # Local logging is best-effort
            return False

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def _safe_log(
        self,
        factory: Callable[..., AuditEvent],
        *args: Any,
        **kwargs: Any,
    ) -> None:
        """Build an event and log it, dropping it if it cannot be built."""
        try:
            event = factory(*args, **kwargs)
        except Exception as e:
            self._logger.warning("audit_event_dropped", error=str(e))
            return
        await self.log(event)

    async def log_request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an outgoing HTTP request with secrets masked."""
        await self._safe_log(
            AuditEventBuilder.http_request,
            method=method,
            url=url,
            headers=mask_headers(headers),
            body=truncate_body(body, self._body_limit),
            correlation_id=correlation_id,
        )

    async def log_response(
        self,
        status_code: int,
        url: str,
        body: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an HTTP response."""
        await self._safe_log(
            AuditEventBuilder.http_response,
            status_code=status_code,
            url=url,
            body=truncate_body(body, self._body_limit),
            correlation_id=correlation_id,
        )

    async def log_transport_failed(
        self,
        method: str,
        url: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self._safe_log(
            AuditEventBuilder.transport_failed,
            method=method,
            url=url,
            error_message=error_message,
            correlation_id=correlation_id,
        )

    async def log_server_error(
        self,
        code: int,
        message: str,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self._safe_log(
            AuditEventBuilder.server_error,
            code=code,
            message=message,
            source=source,
            correlation_id=correlation_id,
        )

    async def log_decoding_failed(
        self,
        url: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self._safe_log(
            AuditEventBuilder.decoding_failed,
            url=url,
            error_message=error_message,
            correlation_id=correlation_id,
        )

    async def log_refresh_started(self, correlation_id: Optional[UUID] = None) -> None:
        await self._safe_log(AuditEventBuilder.token_refresh_started, correlation_id)

    async def log_token_refreshed(
        self,
        rotated_refresh_token: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self._safe_log(AuditEventBuilder.token_refreshed, rotated_refresh_token, correlation_id)

    async def log_refresh_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self._safe_log(AuditEventBuilder.token_refresh_failed, error_message, correlation_id)

    async def log_unauthorized(
        self,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self._safe_log(AuditEventBuilder.unauthorized, reason, correlation_id)

    async def log_login(self, username: str, method: str = "password") -> None:
        await self._safe_log(AuditEventBuilder.login_succeeded, username, method)

    async def log_login_failed(self, error_message: str, method: str = "password") -> None:
        await self._safe_log(AuditEventBuilder.login_failed, error_message, method)

    async def log_logout(self, server_invalidated: bool) -> None:
        await self._safe_log(AuditEventBuilder.logout_completed, server_invalidated)

    async def log_server_logout_failed(self, error_message: str) -> None:
        await self._safe_log(AuditEventBuilder.server_logout_failed, error_message)

    async def log_profile_loaded(self, user_id: str, cached: bool) -> None:
        await self._safe_log(AuditEventBuilder.profile_loaded, user_id, cached)

    async def log_profile_cache_fallback(self, user_id: str, error_message: str) -> None:
        await self._safe_log(AuditEventBuilder.profile_cache_fallback, user_id, error_message)

    async def log_session_transition(self, previous: str, current: str) -> None:
        await self._safe_log(AuditEventBuilder.session_state_changed, previous, current)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        category: str = "App",
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self._safe_log(
            AuditEventBuilder.system_error,
            error_type=error_type,
            error_message=error_message,
            category=category,
            details=details,
            correlation_id=correlation_id,
        )


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    The API client creates one per logical request; the refresh it
    triggers and the retry that follows share it.
    """
    return uuid4()
