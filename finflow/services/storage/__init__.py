"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the
credential store and the local profile cache.
"""

from finflow.services.storage.interface import (
    CacheError,
    CacheServiceInterface,
    CredentialStoreInterface,
    SecretStoreInterface,
    StorageError,
)
from finflow.services.storage.credentials import (
    CredentialKey,
    InMemorySecretStore,
    TokenStore,
)
from finflow.services.storage.cache import CacheKey, FileCacheService

__all__ = [
    # Interfaces
    "CacheServiceInterface",
    "CredentialStoreInterface",
    "SecretStoreInterface",
    # Exceptions
    "CacheError",
    "StorageError",
    # Implementations
    "CacheKey",
    "CredentialKey",
    "FileCacheService",
    "InMemorySecretStore",
    "TokenStore",
]
