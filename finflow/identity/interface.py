"""
Auth Repository Interface

Use cases and the session manager depend on this interface, so they can
be exercised against a fake repository without any HTTP.
"""

from abc import ABC, abstractmethod
from typing import Optional

from finflow.models.auth import (
    LoginRequest,
    LoginResponse,
    OtpPurpose,
    RefreshTokenResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    UpdateProfileRequest,
    UserProfile,
    VerifyOtpResponse,
)


class AuthRepositoryInterface(ABC):
    """Identity operations against the backend."""

    # =========================================================================
    # AUTHENTICATION
    # =========================================================================

    @abstractmethod
    async def login(self, request: LoginRequest) -> LoginResponse:
        """
        Authenticate with username and password.

        Persists the access token and, when present, the refresh token.
        Never triggers a token refresh.
        """
        pass

    @abstractmethod
    async def login_with_federated_token(self, id_token: str) -> LoginResponse:
        """Authenticate with an identity provider id token."""
        pass

    @abstractmethod
    async def register(
        self,
        request: RegisterRequest,
        registration_token: str,
    ) -> RegisterResponse:
        """Create an account. Does not sign the user in."""
        pass

    @abstractmethod
    async def refresh_token(self) -> RefreshTokenResponse:
        """
        Exchange the stored refresh token for a new token pair.

        Raises:
            UnauthorizedError: No refresh token is stored, or the exchange
                failed (local credentials and cache are cleared first)
        """
        pass

    @abstractmethod
    async def logout(self) -> None:
        """Invalidate the session on the server if possible, then locally."""
        pass

    # =========================================================================
    # PROFILE
    # =========================================================================

    @abstractmethod
    async def get_profile(self) -> UserProfile:
        pass

    @abstractmethod
    async def get_profile_with_cache_fallback(self) -> UserProfile:
        """Fresh profile, or the cached one for the current user on failure."""
        pass

    @abstractmethod
    async def get_cached_profile(self) -> Optional[UserProfile]:
        pass

    @abstractmethod
    async def update_profile(self, request: UpdateProfileRequest) -> UserProfile:
        pass

    # =========================================================================
    # OTP / PASSWORD RESET
    # =========================================================================

    @abstractmethod
    async def send_otp(self, email: str, purpose: OtpPurpose = OtpPurpose.REGISTER) -> None:
        pass

    @abstractmethod
    async def verify_otp(
        self,
        email: str,
        otp: str,
        purpose: OtpPurpose = OtpPurpose.REGISTER,
    ) -> VerifyOtpResponse:
        pass

    @abstractmethod
    async def reset_password(self, request: ResetPasswordRequest, reset_token: str) -> None:
        pass

    @abstractmethod
    async def check_user_existence(self, email: str) -> bool:
        pass
