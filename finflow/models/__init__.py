"""
Data Models Package

This package contains all Pydantic models used by the FinFlow session core.
Everything crossing the HTTP boundary conforms to these schemas.
"""

from finflow.models.api import ApiResponse, ProblemDetail
from finflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finflow.models.auth import (
    CheckUserExistenceRequest,
    EmptyResponse,
    GoogleLoginRequest,
    LoginRequest,
    LoginResponse,
    OtpPurpose,
    RefreshTokenRequest,
    RefreshTokenResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    SendOtpRequest,
    UpdateProfileRequest,
    UserExistenceResponse,
    UserProfile,
    VerifyOtpRequest,
    VerifyOtpResponse,
    WireModel,
)
from finflow.models.session import SessionPhase, SessionState

__all__ = [
    # Envelopes
    "ApiResponse",
    "ProblemDetail",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Auth models
    "CheckUserExistenceRequest",
    "EmptyResponse",
    "GoogleLoginRequest",
    "LoginRequest",
    "LoginResponse",
    "OtpPurpose",
    "RefreshTokenRequest",
    "RefreshTokenResponse",
    "RegisterRequest",
    "RegisterResponse",
    "ResetPasswordRequest",
    "SendOtpRequest",
    "UpdateProfileRequest",
    "UserExistenceResponse",
    "UserProfile",
    "VerifyOtpRequest",
    "VerifyOtpResponse",
    "WireModel",
    # Session
    "SessionPhase",
    "SessionState",
]
