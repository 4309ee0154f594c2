"""Identity package: authentication, registration and profile."""

from finflow.identity.interface import AuthRepositoryInterface
from finflow.identity.repository import (
    AuthEndpoint,
    AuthRepository,
    decode_user_id_from_token,
)
from finflow.identity.use_cases import (
    ForgotPasswordUseCase,
    GetProfileUseCase,
    LoginUseCase,
    LogoutUseCase,
    RegisterUseCase,
)

__all__ = [
    # Repository
    "AuthEndpoint",
    "AuthRepository",
    "AuthRepositoryInterface",
    "decode_user_id_from_token",
    # Use cases
    "ForgotPasswordUseCase",
    "GetProfileUseCase",
    "LoginUseCase",
    "LogoutUseCase",
    "RegisterUseCase",
]
