"""Input validation package."""

from finflow.validation.validator import (
    EMAIL_PATTERN,
    MIN_PASSWORD_LENGTH,
    AuthInputValidator,
)

__all__ = [
    "AuthInputValidator",
    "EMAIL_PATTERN",
    "MIN_PASSWORD_LENGTH",
]
