"""
Auth Repository

DESIGN DECISION: The repository is the only code that writes credentials
after a network call. It:
1. Persists tokens on login and refresh
2. Clears credentials and cache on logout and failed refresh
3. Caches the profile per user so it survives going offline

IMPORTANT: The cache key may be derived from the access token's payload.
That decode is NOT verified; it only picks a cache partition and is never
used to decide whether a user is authenticated.
"""

import base64
import json
from typing import Optional

from finflow.audit import AuditLogger, get_logger
from finflow.errors import AppError, ServerError, UnauthorizedError, UnknownError
from finflow.identity.interface import AuthRepositoryInterface
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
)
from finflow.services.network import HTTPClientInterface
from finflow.services.storage import (
    CacheError,
    CacheKey,
    CacheServiceInterface,
    CredentialStoreInterface,
)


class AuthEndpoint:
    """Backend paths used by the repository."""
    LOGIN = "/auth/login"
    GOOGLE_LOGIN = "/auth/google"
    REGISTER = "/auth/register"
    REFRESH = "/auth/refresh"
    LOGOUT = "/auth/logout"
    SEND_OTP = "/auth/send-otp"
    VERIFY_OTP = "/auth/verify-otp"
    RESET_PASSWORD = "/auth/reset-password"
    CHECK_USER_EXISTENCE = "/auth/check-user-existence"
    MY_PROFILE = "/users/my-profile"


REGISTRATION_TOKEN_HEADER = "X-Registration-Token"
RESET_TOKEN_HEADER = "X-Reset-Token"


def decode_user_id_from_token(token: Optional[str]) -> Optional[str]:
    """
    Read the "sub" (else "username") claim from a JWT payload.

    The signature is not checked. Returns None for anything that is not a
    decodable JWT with one of those claims.
    """
    if not token:
        return None

    parts = token.split(".")
    if len(parts) < 2:
        return None

    segment = parts[1]
    segment += "=" * (-len(segment) % 4)

    try:
        payload = json.loads(base64.urlsafe_b64decode(segment))
    except ValueError:
        return None

    if not isinstance(payload, dict):
        return None

    for claim in ("sub", "username"):
        value = payload.get(claim)
        if isinstance(value, str) and value:
            return value
    return None


def _is_unauthorized(error: AppError) -> bool:
    if isinstance(error, UnauthorizedError):
        return True
    return isinstance(error, ServerError) and error.code == 401


class AuthRepository(AuthRepositoryInterface):
    """
    Identity operations over the API client, token store and cache.

    The cache is optional; without one, profile caching and the offline
    fallback are disabled.
    """

    def __init__(
        self,
        api_client: HTTPClientInterface,
        token_store: CredentialStoreInterface,
        cache: Optional[CacheServiceInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._api = api_client
        self._tokens = token_store
        self._cache = cache
        self._audit = audit_logger or AuditLogger()
        self._logger = get_logger("Auth")

    # =========================================================================
    # AUTHENTICATION
    # =========================================================================

    async def login(self, request: LoginRequest) -> LoginResponse:
        return await self._authenticate(AuthEndpoint.LOGIN, request, method="password")

    async def login_with_federated_token(self, id_token: str) -> LoginResponse:
        return await self._authenticate(
            AuthEndpoint.GOOGLE_LOGIN,
            GoogleLoginRequest(id_token=id_token),
            method="google",
        )

    async def _authenticate(self, endpoint: str, body, method: str) -> LoginResponse:
        try:
            response = await self._api.request(
                endpoint,
                LoginResponse,
                method="POST",
                body=body,
                allow_refresh_retry=False,
            )
        except AppError as e:
            await self._audit.log_login_failed(e.message, method)
            raise
        except Exception as e:
            await self._audit.log_login_failed(str(e), method)
            raise UnknownError(str(e) or "Unknown error") from e

        await self._tokens.set_tokens(response.token, response.refresh_token)
        await self._audit.log_login(response.username, method)
        return response

    async def register(
        self,
        request: RegisterRequest,
        registration_token: str,
    ) -> RegisterResponse:
        self._logger.info("register", username=request.username)
        return await self._api.request(
            AuthEndpoint.REGISTER,
            RegisterResponse,
            method="POST",
            body=request,
            headers={REGISTRATION_TOKEN_HEADER: registration_token},
            allow_refresh_retry=False,
        )

    async def refresh_token(self) -> RefreshTokenResponse:
        """
        Exchange the stored refresh token for a new token pair.

        The result is persisted only if no logout happened while the
        request was in flight; otherwise it is dropped.

        Raises:
            UnauthorizedError: No refresh token, the server refused, or the
                session was signed out during the refresh
        """
        generation = self._tokens.generation
        refresh_token = await self._tokens.get_refresh_token()
        if not refresh_token:
            self._logger.warning("refresh_token_missing")
            raise UnauthorizedError("No refresh token available")

        try:
            response = await self._api.request(
                AuthEndpoint.REFRESH,
                RefreshTokenResponse,
                method="POST",
                body=RefreshTokenRequest(refresh_token=refresh_token),
                allow_refresh_retry=False,
            )
        except AppError as e:
            await self._audit.log_refresh_failed(e.message)
            await self._clear_local_session(expected_generation=generation)
            raise UnauthorizedError("Failed to refresh session") from e

        stored = await self._tokens.set_tokens(
            response.token,
            response.refresh_token,
            expected_generation=generation,
        )
        if not stored:
            await self._audit.log_refresh_failed("signed out during refresh")
            raise UnauthorizedError("Session ended during refresh")

        await self._audit.log_token_refreshed(bool(response.refresh_token))
        return response

    async def refresh_access_token(self) -> str:
        """Refresh handler installed on the API client."""
        response = await self.refresh_token()
        return response.token

    async def logout(self) -> None:
        server_invalidated = False
        try:
            await self._api.request(
                AuthEndpoint.LOGOUT,
                EmptyResponse,
                method="POST",
                allow_refresh_retry=False,
            )
            server_invalidated = True
        except AppError as e:
            # Local cleanup proceeds regardless
            await self._audit.log_server_logout_failed(e.message)

        await self._clear_local_session()
        await self._audit.log_logout(server_invalidated)

    async def _clear_local_session(self, expected_generation: Optional[int] = None) -> None:
        if not await self._tokens.clear_all(expected_generation):
            # A later sign-out already cleared this session
            return
        if self._cache is None:
            return
        try:
            await self._cache.clear()
        except CacheError as e:
            self._logger.error("cache_clear_failed", error=str(e))

    # =========================================================================
    # PROFILE
    # =========================================================================

    async def get_profile(self) -> UserProfile:
        """
        Fetch the profile from the server and cache it.

        A 401 the client could not resolve gets one explicit refresh and
        one more fetch.

        Raises:
            UnauthorizedError: The explicit refresh or the second fetch failed
        """
        generation = self._tokens.generation
        try:
            profile = await self._fetch_profile()
        except AppError as e:
            if not _is_unauthorized(e):
                raise
            self._logger.warning("profile_unauthorized_refreshing")
            try:
                await self.refresh_token()
                profile = await self._fetch_profile()
            except AppError as retry_error:
                raise UnauthorizedError("Session expired") from retry_error

        cached = await self._cache_profile(profile, generation)
        await self._audit.log_profile_loaded(profile.id, cached=cached)
        return profile

    async def _fetch_profile(self) -> UserProfile:
        return await self._api.request(AuthEndpoint.MY_PROFILE, UserProfile)

    async def get_profile_with_cache_fallback(self) -> UserProfile:
        try:
            return await self.get_profile()
        except AppError as e:
            cached = await self.get_cached_profile()
            if cached is None:
                raise
            await self._audit.log_profile_cache_fallback(cached.id, e.message)
            return cached

    async def get_cached_profile(self) -> Optional[UserProfile]:
        if self._cache is None:
            return None
        key = await self.current_user_cache_key()
        if key is None:
            return None
        return await self._cache.retrieve(key, UserProfile)

    async def update_profile(self, request: UpdateProfileRequest) -> UserProfile:
        generation = self._tokens.generation
        profile = await self._api.request(
            AuthEndpoint.MY_PROFILE,
            UserProfile,
            method="PUT",
            body=request,
        )
        await self._cache_profile(profile, generation)
        self._logger.info("profile_updated", user_id=profile.id)
        return profile

    async def _cache_profile(self, profile: UserProfile, generation: int) -> bool:
        """Cache profile unless the session was cleared since generation."""
        if self._cache is None:
            return False
        if self._tokens.generation != generation:
            self._logger.info("profile_cache_skipped_signed_out", user_id=profile.id)
            return False
        key = await self.current_user_cache_key(profile.id)
        if key is None:
            return False
        try:
            await self._cache.save(profile, key)
        except CacheError as e:
            self._logger.warning("profile_cache_write_failed", error=str(e))
            return False
        return True

    async def current_user_cache_key(self, user_id: Optional[str] = None) -> Optional[str]:
        """Profile cache key for user_id, else for the token's subject."""
        if user_id:
            return CacheKey.user_profile(user_id)
        derived = decode_user_id_from_token(await self._tokens.get_token())
        if derived is None:
            return None
        return CacheKey.user_profile(derived)

    # =========================================================================
    # OTP / PASSWORD RESET
    # =========================================================================

    async def send_otp(self, email: str, purpose: OtpPurpose = OtpPurpose.REGISTER) -> None:
        self._logger.info("send_otp", purpose=purpose.value)
        await self._api.request(
            AuthEndpoint.SEND_OTP,
            EmptyResponse,
            method="POST",
            body=SendOtpRequest(email=email, purpose=purpose),
            allow_refresh_retry=False,
        )

    async def verify_otp(
        self,
        email: str,
        otp: str,
        purpose: OtpPurpose = OtpPurpose.REGISTER,
    ) -> VerifyOtpResponse:
        return await self._api.request(
            AuthEndpoint.VERIFY_OTP,
            VerifyOtpResponse,
            method="POST",
            body=VerifyOtpRequest(email=email, otp=otp, purpose=purpose),
            allow_refresh_retry=False,
        )

    async def reset_password(self, request: ResetPasswordRequest, reset_token: str) -> None:
        await self._api.request(
            AuthEndpoint.RESET_PASSWORD,
            EmptyResponse,
            method="POST",
            body=request,
            headers={RESET_TOKEN_HEADER: reset_token},
            allow_refresh_retry=False,
        )
        self._logger.info("password_reset")

    async def check_user_existence(self, email: str) -> bool:
        response = await self._api.request(
            AuthEndpoint.CHECK_USER_EXISTENCE,
            UserExistenceResponse,
            method="POST",
            body=CheckUserExistenceRequest(email=email),
            allow_refresh_retry=False,
        )
        return response.exists
