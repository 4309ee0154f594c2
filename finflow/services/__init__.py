"""Services package."""

from finflow.services.network import (
    APIClient,
    HTTPClientInterface,
    RefreshHandler,
    UnauthorizedHook,
)
from finflow.services.storage import (
    CacheError,
    CacheKey,
    CacheServiceInterface,
    CredentialKey,
    CredentialStoreInterface,
    FileCacheService,
    InMemorySecretStore,
    SecretStoreInterface,
    StorageError,
    TokenStore,
)

__all__ = [
    # Network
    "APIClient",
    "HTTPClientInterface",
    "RefreshHandler",
    "UnauthorizedHook",
    # Storage services
    "CacheError",
    "CacheKey",
    "CacheServiceInterface",
    "CredentialKey",
    "CredentialStoreInterface",
    "FileCacheService",
    "InMemorySecretStore",
    "SecretStoreInterface",
    "StorageError",
    "TokenStore",
]
