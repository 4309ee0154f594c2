"""
Tests for the session manager and its state broadcast.

These run against the wired components, so the unauthorized hook, the
repository and the manager interact the way they do in the app.
"""

import asyncio
import gc

import pytest

from finflow.errors import UnauthorizedError
from finflow.models.auth import LoginRequest, LoginResponse, UserProfile
from finflow.models.session import SessionPhase, SessionState
from finflow.session import StateBroadcaster

from tests.conftest import PROFILE_JSON, gated, reply


LOGIN_RESPONSE = LoginResponse(
    email="alice@example.com",
    token="access-1",
    refresh_token="refresh-1",
    username="alice",
)


class TestRestoreSession:

    async def test_initial_state_is_loading(self, components):
        assert components.session_manager.state == SessionState.loading()
        assert components.session_manager.is_authenticated is False

    async def test_no_token_is_unauthenticated(self, components, backend):
        await components.session_manager.restore_session()

        assert components.session_manager.state == SessionState.unauthenticated()
        assert backend.requests == []

    async def test_stored_token_is_authenticated(self, components, backend):
        await components.token_store.set_token("abc")
        backend.on("GET", "/users/my-profile", reply(200, json=PROFILE_JSON))

        await components.session_manager.restore_session()

        assert components.session_manager.state == SessionState.authenticated("abc")
        assert components.session_manager.current_user.id == "user-1"

    async def test_profile_failure_keeps_authenticated(self, components, backend):
        """Test a failed profile load does not revert the restored state."""
        await components.token_store.set_token("abc")
        backend.on("GET", "/users/my-profile", reply(500, text="boom"))

        await components.session_manager.restore_session()

        assert components.session_manager.state == SessionState.authenticated("abc")
        assert components.session_manager.current_user is None

    async def test_transitions_are_published_in_order(self, components, backend):
        await components.token_store.set_token("abc")
        backend.on("GET", "/users/my-profile", reply(500))
        subscription = components.session_manager.subscribe()

        await components.session_manager.restore_session()

        assert subscription.drain() == [
            SessionState.loading(),
            SessionState.loading(),
            SessionState.authenticated("abc"),
        ]
        subscription.close()


class TestLoginLogout:

    async def test_login_round_trip(self, components, backend):
        """Test login stores the token and logout leaves nothing behind."""
        backend.on("GET", "/users/my-profile", reply(200, json=PROFILE_JSON))
        backend.on("POST", "/auth/logout", reply(200))

        await components.session_manager.login(LOGIN_RESPONSE)

        assert components.session_manager.state == SessionState.authenticated("access-1")
        assert await components.token_store.get_token() == "access-1"
        assert components.session_manager.current_user.username == "alice"
        assert await components.cache.keys() == ["user_profile_user-1"]

        await components.logout_use_case.execute()
        await components.session_manager.logout()

        assert components.session_manager.state == SessionState.unauthenticated()
        assert await components.token_store.get_token() is None
        assert await components.cache.keys() == []
        assert components.session_manager.current_user is None

    async def test_logout_twice(self, components):
        await components.session_manager.logout()
        assert components.session_manager.state == SessionState.unauthenticated()

        await components.session_manager.logout()
        assert components.session_manager.state == SessionState.unauthenticated()

    async def test_login_through_use_case(self, components, backend):
        backend.on("POST", "/auth/login", reply(200, json={
            "email": "alice@example.com",
            "token": "access-1",
            "refreshToken": "refresh-1",
            "username": "alice",
        }))
        backend.on("GET", "/users/my-profile", reply(200, json=PROFILE_JSON))

        response = await components.login_use_case.execute(" alice ", "secret1")
        await components.session_manager.login(response)

        assert components.session_manager.is_authenticated is True
        assert components.session_manager.state.token == "access-1"

    async def test_update_current_user_leaves_state(self, components):
        profile = UserProfile.model_validate(PROFILE_JSON)

        components.session_manager.update_current_user(profile)

        assert components.session_manager.current_user == profile
        assert components.session_manager.state == SessionState.loading()


class TestRefreshSession:

    async def test_refresh_success(self, components, backend):
        await components.session_manager.login(LOGIN_RESPONSE)
        backend.on("POST", "/auth/refresh", reply(200, json={"token": "access-2", "refreshToken": "refresh-2"}))
        subscription = components.session_manager.subscribe()

        response = await components.session_manager.refresh_session()

        assert response.token == "access-2"
        assert components.session_manager.state == SessionState.authenticated("access-2")
        assert await components.token_store.get_token() == "access-2"
        assert [s.phase for s in subscription.drain()] == [
            SessionPhase.AUTHENTICATED,
            SessionPhase.REFRESHING,
            SessionPhase.AUTHENTICATED,
        ]

    async def test_refresh_failure_expires_and_reraises(self, components, backend):
        await components.session_manager.login(LOGIN_RESPONSE)
        backend.on("POST", "/auth/refresh", reply(401, json={"status": 401, "detail": "revoked"}))

        with pytest.raises(UnauthorizedError):
            await components.session_manager.refresh_session()

        assert components.session_manager.state == SessionState.session_expired()
        assert components.session_manager.current_user is None
        assert await components.token_store.get_token() is None

    async def test_expired_session_is_terminal_for_refresh(self, components, backend):
        await components.session_manager.handle_session_expired()

        with pytest.raises(UnauthorizedError):
            await components.session_manager.refresh_session()

        assert components.session_manager.state == SessionState.session_expired()
        assert backend.requests == []

    async def test_logout_during_refresh_stays_logged_out(self, components, backend):
        await components.session_manager.login(LOGIN_RESPONSE)
        gate, slow_refresh = gated(200, json={"token": "new", "refreshToken": "r2"})
        backend.on("POST", "/auth/refresh", slow_refresh)

        refresh = asyncio.ensure_future(components.session_manager.refresh_session())
        await backend.wait_for("POST", "/auth/refresh")
        await components.session_manager.logout()
        gate.set()

        with pytest.raises(UnauthorizedError):
            await refresh

        assert components.session_manager.state == SessionState.unauthenticated()
        assert await components.token_store.get_token() is None
        assert await components.token_store.get_refresh_token() is None

    async def test_late_refresh_result_does_not_override_expiry(self, components, backend):
        await components.session_manager.login(LOGIN_RESPONSE)
        gate, slow_refresh = gated(200, json={"token": "new"})
        backend.on("POST", "/auth/refresh", slow_refresh)

        refresh = asyncio.ensure_future(components.session_manager.refresh_session())
        await backend.wait_for("POST", "/auth/refresh")
        await components.session_manager.handle_session_expired()
        gate.set()

        with pytest.raises(UnauthorizedError):
            await refresh

        assert components.session_manager.state == SessionState.session_expired()

    async def test_login_leaves_expired_session(self, components, backend):
        await components.session_manager.handle_session_expired()

        await components.session_manager.login(LOGIN_RESPONSE)

        assert components.session_manager.state == SessionState.authenticated("access-1")


class TestUnauthorizedHook:
    """End-to-end behaviour when the backend keeps rejecting the token."""

    async def test_double_401_expires_session(self, components, backend):
        await components.session_manager.login(LOGIN_RESPONSE)
        backend.on("GET", "/users/my-profile", reply(401, json={"status": 401, "detail": "Token expired"}))
        backend.on("POST", "/auth/refresh", reply(200, json={"token": "access-2"}))

        with pytest.raises(UnauthorizedError):
            await components.repository.get_profile()

        assert await components.token_store.get_token() is None
        assert components.session_manager.state == SessionState.session_expired()
        assert len(backend.calls("POST", "/auth/refresh")) == 1

    async def test_logout_during_client_refresh_is_not_expiry(self, components, backend):
        """Test a refresh rejected by a concurrent logout leaves UNAUTHENTICATED."""
        await components.session_manager.login(LOGIN_RESPONSE)
        backend.on("GET", "/users/my-profile", reply(401, json={"status": 401, "detail": "Token expired"}))
        gate, slow_refresh = gated(200, json={"token": "new", "refreshToken": "r2"})
        backend.on("POST", "/auth/refresh", slow_refresh)

        fetch = asyncio.ensure_future(components.repository.get_profile())
        await backend.wait_for("POST", "/auth/refresh")
        await components.session_manager.logout()
        gate.set()

        with pytest.raises(UnauthorizedError):
            await fetch

        assert components.session_manager.state == SessionState.unauthenticated()
        assert await components.token_store.get_token() is None
        assert await components.cache.keys() == []

    async def test_concurrent_failures_expire_once(self, components, backend):
        """Test a shared failed refresh publishes SESSION_EXPIRED once."""
        await components.session_manager.login(LOGIN_RESPONSE)
        backend.on("GET", "/users/my-profile", reply(401))
        gate, slow_refresh = gated(401, json={"status": 401, "detail": "revoked"})
        backend.on("POST", "/auth/refresh", slow_refresh)
        subscription = components.session_manager.subscribe()

        fetches = [
            asyncio.ensure_future(components.api_client.request("/users/my-profile", UserProfile))
            for _ in range(3)
        ]
        # One profile load from login, then the three concurrent fetches
        await backend.wait_for("GET", "/users/my-profile", count=4)
        await asyncio.sleep(0.05)
        gate.set()
        results = await asyncio.gather(*fetches, return_exceptions=True)

        assert all(isinstance(r, UnauthorizedError) for r in results)
        assert len(backend.calls("POST", "/auth/refresh")) == 1
        expired = [s for s in subscription.drain() if s.phase == SessionPhase.SESSION_EXPIRED]
        assert len(expired) == 1

    async def test_refresh_success_keeps_session(self, components, backend):
        await components.session_manager.login(LOGIN_RESPONSE)
        backend.on(
            "GET", "/users/my-profile",
            reply(401, json={"status": 401, "detail": "Token expired"}),
            reply(200, json=PROFILE_JSON),
        )
        backend.on("POST", "/auth/refresh", reply(200, json={"token": "access-2", "refreshToken": "refresh-2"}))

        profile = await components.get_profile_use_case.execute()

        assert profile.id == "user-1"
        assert await components.token_store.get_token() == "access-2"
        assert components.session_manager.is_authenticated is True


class TestSubscriptions:

    async def test_new_subscriber_gets_current_state_first(self, components):
        await components.session_manager.logout()

        async with components.session_manager.subscribe() as states:
            first = await asyncio.wait_for(states.__anext__(), timeout=1)

        assert first == SessionState.unauthenticated()

    async def test_every_transition_is_delivered(self, components):
        subscription = components.session_manager.subscribe()

        await components.session_manager.logout()
        await components.session_manager.handle_session_expired()
        await components.session_manager.logout()

        received = []
        async for state in subscription:
            received.append(state.phase)
            if len(received) == 4:
                break
        subscription.close()

        assert received == [
            SessionPhase.LOADING,
            SessionPhase.UNAUTHENTICATED,
            SessionPhase.SESSION_EXPIRED,
            SessionPhase.UNAUTHENTICATED,
        ]

    async def test_closed_subscription_stops_receiving(self, components):
        subscription = components.session_manager.subscribe()
        subscription.close()

        await components.session_manager.logout()

        assert subscription.closed is True
        assert subscription.drain() == [SessionState.loading()]
        with pytest.raises(StopAsyncIteration):
            await subscription.__anext__()

    async def test_close_wakes_waiting_consumer(self):
        broadcaster = StateBroadcaster()
        subscription = broadcaster.subscribe()
        received = []

        async def consume():
            async for state in subscription:
                received.append(state)

        consumer = asyncio.ensure_future(consume())
        await asyncio.sleep(0.01)
        subscription.close()
        await asyncio.wait_for(consumer, timeout=1)

        assert received == [SessionState.loading()]
        assert broadcaster.subscriber_count == 0

    async def test_dropped_subscription_is_unregistered(self):
        """Test a subscription released without close() stops being fed."""
        broadcaster = StateBroadcaster()
        broadcaster.subscribe()
        kept = broadcaster.subscribe()
        gc.collect()

        broadcaster.publish(SessionState.unauthenticated())

        assert broadcaster.subscriber_count == 1
        assert kept.drain() == [SessionState.loading(), SessionState.unauthenticated()]

    async def test_subscribers_are_independent(self):
        broadcaster = StateBroadcaster()
        slow = broadcaster.subscribe()
        fast = broadcaster.subscribe()

        broadcaster.publish(SessionState.unauthenticated())
        fast.close()
        broadcaster.publish(SessionState.authenticated("abc"))

        assert slow.drain() == [
            SessionState.loading(),
            SessionState.unauthenticated(),
            SessionState.authenticated("abc"),
        ]
        assert broadcaster.subscriber_count == 1
