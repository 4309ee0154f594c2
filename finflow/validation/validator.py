"""
Auth Input Validation

DESIGN DECISION: Input is checked locally before any network call, so
the obvious mistakes (empty fields, mismatched passwords) never cost a
round trip.

Two kinds of work happen here:

SANITIZATION:
- Surrounding whitespace is trimmed from text fields
- Passwords on registration are left exactly as typed

VALIDATION:
- Required field presence
- Email format
- Password confirmation and minimum length

IMPORTANT: Validation never silently fixes a value beyond trimming.
Anything else is reported as a ValidationError with a readable message.
"""

import re
from typing import Optional

from finflow.errors import ValidationError
from finflow.models.auth import LoginRequest, RegisterRequest, ResetPasswordRequest


MIN_PASSWORD_LENGTH = 6

EMAIL_PATTERN = re.compile(r"^[A-Z0-9a-z._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,64}$")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class AuthInputValidator:
    """Checks and sanitizes identity form input."""

    def require(self, value: Optional[str], field: str) -> str:
        """Trimmed value, or ValidationError if it is blank."""
        cleaned = _clean(value)
        if cleaned is None:
            raise ValidationError(f"{field} is required")
        return cleaned

    def validate_email(self, email: Optional[str]) -> str:
        cleaned = self.require(email, "Email")
        if not EMAIL_PATTERN.match(cleaned):
            raise ValidationError("Invalid email address")
        return cleaned

    def login_request(self, username: str, password: str) -> LoginRequest:
        if not username or not password:
            raise ValidationError("Username and password are required")

        return LoginRequest(
            username=self.require(username, "Username"),
            password=self.require(password, "Password"),
        )

    def register_request(self, request: RegisterRequest) -> RegisterRequest:
        """
        Trim the text fields of a registration.

        The password must be present but is sent untouched.
        """
        if not request.password:
            raise ValidationError("Password is required")

        return request.model_copy(update={
            "username": self.require(request.username, "Username"),
            "email": self.validate_email(request.email),
            "first_name": _clean(request.first_name),
            "last_name": _clean(request.last_name),
            "dob": _clean(request.dob),
        })

    def reset_password_request(self, password: str, confirm_password: str) -> ResetPasswordRequest:
        if password != confirm_password:
            raise ValidationError("Passwords do not match")

        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        return ResetPasswordRequest(password=password, confirm_password=confirm_password)
