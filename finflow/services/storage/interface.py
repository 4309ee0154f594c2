"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for the two things the
session core persists. This allows us to:
1. Back secrets with a platform keychain, an OS keyring or memory
2. Use in-memory storage for testing
3. Keep the repository decoupled from where bytes actually live

Credentials and the profile cache are deliberately separate: clearing the
cache must never touch credentials and vice versa.
"""

from abc import ABC, abstractmethod
from typing import Optional, Type, TypeVar

from pydantic import BaseModel


ModelT = TypeVar("ModelT", bound=BaseModel)


class SecretStoreInterface(ABC):
    """
    Opaque secure key-value store.

    Values are short strings addressed by an account name. A keychain
    implementation lives outside this package; it only has to honour
    this contract.
    """

    @abstractmethod
    async def save(self, value: str, account: str) -> None:
        """Store value under account, replacing any previous value."""
        pass

    @abstractmethod
    async def retrieve(self, account: str) -> Optional[str]:
        """Return the stored value, or None if absent."""
        pass

    @abstractmethod
    async def delete(self, account: str) -> None:
        """Remove the value. Deleting a missing account is not an error."""
        pass


class CredentialStoreInterface(ABC):
    """
    Access and refresh token storage.

    The only owner of credentials in the process. Everything else reads
    tokens through this interface at the moment it needs them.
    """

    @abstractmethod
    async def get_token(self) -> Optional[str]:
        pass

    @abstractmethod
    async def set_token(self, token: Optional[str]) -> None:
        """Store the access token; None clears it."""
        pass

    @abstractmethod
    async def clear_token(self) -> None:
        pass

    @abstractmethod
    async def get_refresh_token(self) -> Optional[str]:
        pass

    @abstractmethod
    async def set_refresh_token(self, token: Optional[str]) -> None:
        """Store the refresh token; None clears it."""
        pass

    @abstractmethod
    async def clear_refresh_token(self) -> None:
        pass

    @property
    @abstractmethod
    def generation(self) -> int:
        """Counter bumped by every clear_all(); identifies one sign-in."""
        pass

    @abstractmethod
    async def set_tokens(
        self,
        token: str,
        refresh_token: Optional[str],
        expected_generation: Optional[int] = None,
    ) -> bool:
        """
        Store a token pair; a missing refresh token keeps the stored one.

        With expected_generation, nothing is written if the store has been
        cleared since that generation was read.

        Returns:
            True if the tokens were written
        """
        pass

    @abstractmethod
    async def clear_all(self, expected_generation: Optional[int] = None) -> bool:
        """
        Remove both tokens (used on logout) and bump the generation.

        With expected_generation, nothing is cleared if another clear has
        happened since that generation was read.

        Returns:
            True if the tokens were cleared
        """
        pass


class CacheServiceInterface(ABC):
    """
    Abstract interface for the local data cache.

    Each key holds one JSON document. Keys are independently removable
    and the whole cache is clearable.
    """

    @abstractmethod
    async def save(self, data: BaseModel, key: str) -> None:
        """
        Cache a model under key.

        Raises:
            CacheError: If the entry cannot be written
        """
        pass

    @abstractmethod
    async def retrieve(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        """
        Load a cached entry.

        Returns:
            The entry, or None if absent or unreadable (unreadable
            entries are removed)
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CacheError(StorageError):
    """A cache entry could not be written or the cache could not be cleared."""
    pass
