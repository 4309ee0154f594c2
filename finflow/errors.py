"""
Application-wide error types

DESIGN DECISION: The client only DISPLAYS messages that come from the
backend. ServerError carries the backend message verbatim; nothing in
this package reformats or localizes it.

Each error exposes:
- category: which kind of alert a UI should show
- http_status_code: the HTTP status the error corresponds to
"""

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """Alert families a presentation layer maps errors onto."""
    NETWORK = "network"
    AUTH = "auth"
    DATA = "data"
    GENERAL = "general"


# Backend business codes that stand for an HTTP status regardless of the
# status the transport reported. Must track the backend error-code catalog.
BUSINESS_CODE_HTTP_STATUS: dict[int, int] = {
    1006: 401,
    1010: 401,
    1011: 401,
    1007: 403,
    1002: 404,
}


class AppError(Exception):
    """Base exception for everything the session core raises."""

    category: ErrorCategory = ErrorCategory.GENERAL

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)

    @property
    def http_status_code(self) -> Optional[int]:
        return None


class NetworkError(AppError):
    """The request never produced an HTTP response."""

    category = ErrorCategory.NETWORK

    def __str__(self) -> str:
        return f"Connection error: {self.message}"


class ServerError(AppError):
    """Non-2xx response with the backend's own code and message."""

    def __init__(self, code: int, message: str):
        self.code = code
        super().__init__(message)

    @property
    def http_status_code(self) -> Optional[int]:
        return BUSINESS_CODE_HTTP_STATUS.get(self.code, 400)

    @property
    def category(self) -> ErrorCategory:
        if self.http_status_code == 401 or self.code == 401:
            return ErrorCategory.AUTH
        return ErrorCategory.GENERAL

    def __repr__(self) -> str:
        return f"ServerError(code={self.code!r}, message={self.message!r})"


class DecodingError(AppError):
    """A 2xx body did not match the expected response shape."""

    category = ErrorCategory.DATA

    def __init__(self, message: str = "Could not process the server response"):
        super().__init__(message)


class UnauthorizedError(AppError):
    """Credentials are missing, invalid, or could not be refreshed."""

    category = ErrorCategory.AUTH

    @property
    def http_status_code(self) -> Optional[int]:
        return 401


class ValidationError(AppError):
    """Input rejected locally before any network call."""

    category = ErrorCategory.DATA


class UnknownError(AppError):
    """Anything that does not fit the categories above."""

    def __init__(self, message: str = "Unknown error"):
        super().__init__(message)
