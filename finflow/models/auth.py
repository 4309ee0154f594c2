"""
Authentication Models for FinFlow

Request and response bodies exchanged with the identity endpoints.

DESIGN DECISION: Python code uses snake_case, the backend speaks camelCase.
Every model carries a camelCase alias generator and accepts either form
on input, so responses decode directly and requests serialize with
model_dump(by_alias=True).
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for every model that crosses the HTTP boundary."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class EmptyResponse(WireModel):
    """Body of endpoints that return nothing (logout, reset password)."""
    pass


class OtpPurpose(str, Enum):
    """Why a one-time password was requested."""
    REGISTER = "REGISTER"
    RESET_PASSWORD = "RESET_PASSWORD"


# =============================================================================
# LOGIN / REFRESH
# =============================================================================

class LoginRequest(WireModel):
    """Username/password credentials."""
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class GoogleLoginRequest(WireModel):
    """Federated login with an identity provider id token."""

    id_token: str = Field(..., min_length=1)


class LoginResponse(WireModel):
    """Tokens and identity returned by a successful login."""

    email: str
    token: str
    refresh_token: Optional[str] = None
    type: str = "Bearer"
    username: str
    expires_in: Optional[int] = Field(
        default=None,
        description="Access token lifetime in seconds"
    )

    @property
    def authenticated(self) -> bool:
        return bool(self.token)


class RefreshTokenRequest(WireModel):
    refresh_token: str


class RefreshTokenResponse(WireModel):
    """New token pair. The refresh token is only rotated when present."""

    token: str
    refresh_token: Optional[str] = None
    type: str = "Bearer"
    expires_in: Optional[int] = None


# =============================================================================
# REGISTRATION / OTP / PASSWORD RESET
# =============================================================================

class RegisterRequest(WireModel):
    username: str
    email: str
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    dob: Optional[str] = None


class RegisterResponse(WireModel):
    message: str


class SendOtpRequest(WireModel):
    email: str
    purpose: OtpPurpose = OtpPurpose.REGISTER


class VerifyOtpRequest(WireModel):
    email: str
    otp: str
    purpose: OtpPurpose = OtpPurpose.REGISTER


class VerifyOtpResponse(WireModel):
    """
    Result of OTP verification.

    registration_token is an opaque follow-up token. It authorizes the
    registration call or the password reset call, depending on the
    purpose the OTP was sent for.
    """

    message: str
    registration_token: str


class ResetPasswordRequest(WireModel):
    password: str
    confirm_password: str


class CheckUserExistenceRequest(WireModel):
    email: str


class UserExistenceResponse(WireModel):
    exists: bool


# =============================================================================
# PROFILE
# =============================================================================

class UserProfile(WireModel):
    """
    The signed-in user's profile.

    Cached per user id so a device that switches accounts never shows
    one user's profile to another.
    """

    id: str
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    dob: Optional[str] = None
    roles: list[str] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else self.username


class UpdateProfileRequest(WireModel):
    first_name: str
    last_name: str
    dob: str
