"""
Main Orchestrator for FinFlow

This module builds the session core and wires its components together.

DESIGN DECISION: Construction happens in two phases, because the API
client and the repository depend on each other:
1. Build the API client with no auth hooks
2. Build the repository and session manager on top of it
3. Inject the repository's refresh and the session manager's expiry
   handling into the client

Until step 3 runs, a 401 fails immediately instead of refreshing.
"""

from pathlib import Path
from typing import NamedTuple, Optional

import httpx

from finflow.audit import AuditLogger, AuditStorageInterface, configure_logging, get_logger
from finflow.config import NetworkSettings, get_settings
from finflow.identity import (
    AuthRepository,
    ForgotPasswordUseCase,
    GetProfileUseCase,
    LoginUseCase,
    LogoutUseCase,
    RegisterUseCase,
)
from finflow.models.session import SessionPhase
from finflow.services.network import APIClient
from finflow.services.storage import (
    CacheError,
    FileCacheService,
    InMemorySecretStore,
    SecretStoreInterface,
    TokenStore,
)
from finflow.session import SessionManager


logger = get_logger("App")


class AppComponents(NamedTuple):
    """Everything a presentation layer needs from the session core."""
    api_client: APIClient
    token_store: TokenStore
    cache: Optional[FileCacheService]
    repository: AuthRepository
    session_manager: SessionManager
    login_use_case: LoginUseCase
    register_use_case: RegisterUseCase
    forgot_password_use_case: ForgotPasswordUseCase
    get_profile_use_case: GetProfileUseCase
    logout_use_case: LogoutUseCase
    audit_logger: AuditLogger


def create_app_components(
    network_settings: Optional[NetworkSettings] = None,
    secret_store: Optional[SecretStoreInterface] = None,
    cache_dir: Optional[Path] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        network_settings: Defaults to the environment
        secret_store: Where tokens live. Defaults to process memory;
                     pass a keychain-backed store in a real app.
        cache_dir: Profile cache directory. Defaults to settings.
        transport: httpx transport override (tests pass MockTransport)
        audit_storage: Optional sink for audit events

    Returns:
        AppComponents with every hook wired
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)
    network_settings = network_settings or settings.network

    audit_logger = AuditLogger(audit_storage, body_limit=network_settings.log_body_limit)
    token_store = TokenStore(
        secret_store or InMemorySecretStore(settings.storage.secret_service)
    )

    try:
        cache = FileCacheService(cache_dir)
    except CacheError as e:
        # No cache: profile fallback is disabled, everything else works
        logger.warning("cache_unavailable", error=str(e))
        cache = None

    # Phase 1: client without hooks
    api_client = APIClient(
        settings=network_settings,
        token_store=token_store,
        audit_logger=audit_logger,
        transport=transport,
    )

    # Phase 2: everything that depends on the client
    repository = AuthRepository(
        api_client=api_client,
        token_store=token_store,
        cache=cache,
        audit_logger=audit_logger,
    )
    session_manager = SessionManager(
        token_store=token_store,
        repository=repository,
        audit_logger=audit_logger,
    )

    # Phase 3: close the loop
    async def on_unauthorized() -> None:
        await token_store.clear_all()
        # A signed-out session stays signed out
        if session_manager.state.phase != SessionPhase.UNAUTHENTICATED:
            await session_manager.handle_session_expired()

    api_client.configure_auth_hooks(
        refresh_handler=repository.refresh_access_token,
        on_unauthorized=on_unauthorized,
    )

    return AppComponents(
        api_client=api_client,
        token_store=token_store,
        cache=cache,
        repository=repository,
        session_manager=session_manager,
        login_use_case=LoginUseCase(repository),
        register_use_case=RegisterUseCase(repository),
        forgot_password_use_case=ForgotPasswordUseCase(repository),
        get_profile_use_case=GetProfileUseCase(repository),
        logout_use_case=LogoutUseCase(repository),
        audit_logger=audit_logger,
    )
