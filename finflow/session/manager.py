"""
Session Manager

DESIGN DECISION: The session manager is the ONLY code that changes the
session state. Everything else (API client hook, use cases, UI) asks it
to, and observes the result through subscribe().

State machine (initial LOADING):
    LOADING          --no token-->      UNAUTHENTICATED
    LOADING          --token found-->   AUTHENTICATED
    AUTHENTICATED    --refresh ok-->    AUTHENTICATED
    AUTHENTICATED |
    REFRESHING       --refresh fails--> SESSION_EXPIRED
    any              --logout-->        UNAUTHENTICATED

SESSION_EXPIRED is left only by login() or restore_session().

State mutations are serialized by one lock. Profile loading runs outside
it: loading can trigger a refresh whose failure calls back into
handle_session_expired().
"""

import asyncio
from typing import Optional

from finflow.audit import AuditLogger, get_logger
from finflow.errors import AppError, UnauthorizedError
from finflow.identity.interface import AuthRepositoryInterface
from finflow.models.auth import LoginResponse, RefreshTokenResponse, UserProfile
from finflow.models.session import SessionPhase, SessionState
from finflow.services.storage import CredentialStoreInterface
from finflow.session.broadcast import SessionSubscription, StateBroadcaster


class SessionManager:
    """Process-wide authentication state."""

    def __init__(
        self,
        token_store: CredentialStoreInterface,
        repository: AuthRepositoryInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._tokens = token_store
        self._repository = repository
        self._audit = audit_logger or AuditLogger()
        self._logger = get_logger("Session")

        self._broadcaster = StateBroadcaster(SessionState.loading())
        self._current_user: Optional[UserProfile] = None
        self._lock = asyncio.Lock()

    # =========================================================================
    # READ ACCESS
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self._broadcaster.current

    @property
    def current_user(self) -> Optional[UserProfile]:
        return self._current_user

    @property
    def is_authenticated(self) -> bool:
        return self.state.is_authenticated

    def subscribe(self) -> SessionSubscription:
        """Current state now, then every transition in order."""
        return self._broadcaster.subscribe()

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def restore_session(self) -> None:
        """
        Resume from stored credentials.

        A stored token is trusted until a request proves otherwise, so the
        state becomes AUTHENTICATED before the profile is fetched, and a
        failed profile fetch leaves it there.
        """
        async with self._lock:
            await self._set_state(SessionState.loading())
            token = await self._tokens.get_token()
            if not token:
                await self._set_state(SessionState.unauthenticated())
                return
            await self._set_state(SessionState.authenticated(token))

        await self._load_current_user()

    async def login(self, login_response: LoginResponse) -> None:
        async with self._lock:
            await self._tokens.set_tokens(login_response.token, login_response.refresh_token)
            await self._set_state(SessionState.authenticated(login_response.token))

        await self._load_current_user()

    async def logout(self) -> None:
        """Local sign-out. Safe to call repeatedly."""
        async with self._lock:
            await self._tokens.clear_all()
            await self._set_state(SessionState.unauthenticated())
            self._current_user = None

    async def refresh_session(self) -> RefreshTokenResponse:
        """
        Refresh the access token on behalf of the session.

        The outcome only applies while the state is still REFRESHING. A
        logout or expiry that lands during the refresh wins: a late success
        is dropped and a late failure leaves the state alone.

        Raises:
            UnauthorizedError: The session has already expired, or it was
                ended while the refresh was in flight
            AppError: The refresh failed (the session is expired first)
        """
        async with self._lock:
            if self.state.phase == SessionPhase.SESSION_EXPIRED:
                raise UnauthorizedError("Session expired")
            await self._set_state(SessionState.refreshing())

        try:
            response = await self._repository.refresh_token()
        except Exception:
            async with self._lock:
                if self.state.phase == SessionPhase.REFRESHING:
                    await self._expire()
            raise

        async with self._lock:
            if self.state.phase != SessionPhase.REFRESHING:
                self._logger.info("refresh_result_dropped", state=str(self.state))
                raise UnauthorizedError("Session ended during refresh")
            await self._tokens.set_token(response.token)
            await self._set_state(SessionState.authenticated(response.token))
        return response

    async def handle_session_expired(self) -> None:
        async with self._lock:
            await self._expire()

    def update_current_user(self, profile: Optional[UserProfile]) -> None:
        """Replace the in-memory profile. Does not touch the session state."""
        self._current_user = profile

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _expire(self) -> None:
        await self._set_state(SessionState.session_expired())
        self._current_user = None

    async def _set_state(self, state: SessionState) -> None:
        previous = self._broadcaster.current
        self._broadcaster.publish(state)
        self._logger.info("session_state", previous=str(previous), current=str(state))
        await self._audit.log_session_transition(str(previous), str(state))

    async def _load_current_user(self) -> None:
        try:
            profile = await self._repository.get_profile_with_cache_fallback()
        except AppError as e:
            self._logger.warning("profile_load_failed", error=str(e))
            return

        # A concurrent logout or expiry wins over a late profile
        if self.is_authenticated:
            self._current_user = profile
