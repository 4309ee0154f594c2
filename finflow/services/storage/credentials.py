"""
Credential Storage

Tokens live in a secret store under two fixed account names. The token
store serializes every read and write behind one lock, so a reader never
sees a half-applied update (e.g. a new access token with the old refresh
token during rotation).
"""

import asyncio
from typing import Optional

from finflow.audit.logger import get_logger
from finflow.services.storage.interface import (
    CredentialStoreInterface,
    SecretStoreInterface,
)


class CredentialKey:
    """Account names secrets are stored under."""
    ACCESS_TOKEN = "auth_token"
    REFRESH_TOKEN = "refresh_token"


class InMemorySecretStore(SecretStoreInterface):
    """
    Process-local secret store.

    Used for tests and for environments with no keychain. Secrets do not
    survive a restart.
    """

    def __init__(self, service: str = "com.finflow.app"):
        self._service = service
        self._values: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def save(self, value: str, account: str) -> None:
        async with self._lock:
            self._values[account] = value

    async def retrieve(self, account: str) -> Optional[str]:
        async with self._lock:
            return self._values.get(account)

    async def delete(self, account: str) -> None:
        async with self._lock:
            self._values.pop(account, None)


class TokenStore(CredentialStoreInterface):
    """Access and refresh tokens over a secret store."""

    def __init__(self, secrets: Optional[SecretStoreInterface] = None):
        self._secrets = secrets or InMemorySecretStore()
        self._lock = asyncio.Lock()
        self._generation = 0
        self._logger = get_logger("Storage")

    async def _write(self, account: str, value: Optional[str]) -> None:
        # Empty strings are treated as "no token"
        if value:
            await self._secrets.save(value, account)
        else:
            await self._secrets.delete(account)

    # Access token

    async def get_token(self) -> Optional[str]:
        async with self._lock:
            return await self._secrets.retrieve(CredentialKey.ACCESS_TOKEN)

    async def set_token(self, token: Optional[str]) -> None:
        async with self._lock:
            await self._write(CredentialKey.ACCESS_TOKEN, token)

    async def clear_token(self) -> None:
        async with self._lock:
            await self._secrets.delete(CredentialKey.ACCESS_TOKEN)

    # Refresh token

    async def get_refresh_token(self) -> Optional[str]:
        async with self._lock:
            return await self._secrets.retrieve(CredentialKey.REFRESH_TOKEN)

    async def set_refresh_token(self, token: Optional[str]) -> None:
        async with self._lock:
            await self._write(CredentialKey.REFRESH_TOKEN, token)

    async def clear_refresh_token(self) -> None:
        async with self._lock:
            await self._secrets.delete(CredentialKey.REFRESH_TOKEN)

    # Utility

    @property
    def generation(self) -> int:
        return self._generation

    async def set_tokens(
        self,
        token: str,
        refresh_token: Optional[str],
        expected_generation: Optional[int] = None,
    ) -> bool:
        """
        Store a token pair atomically.

        The refresh token is only replaced when one is given; servers that
        do not rotate refresh tokens omit it. A write tagged with a stale
        generation (the store was cleared after the caller read it) is
        dropped, so a refresh finishing after logout cannot sign back in.
        """
        async with self._lock:
            if expected_generation is not None and expected_generation != self._generation:
                self._logger.info(
                    "stale_token_write_dropped",
                    expected=expected_generation,
                    current=self._generation,
                )
                return False
            await self._write(CredentialKey.ACCESS_TOKEN, token)
            if refresh_token:
                await self._write(CredentialKey.REFRESH_TOKEN, refresh_token)
            return True

    async def clear_all(self, expected_generation: Optional[int] = None) -> bool:
        async with self._lock:
            if expected_generation is not None and expected_generation != self._generation:
                return False
            await self._secrets.delete(CredentialKey.ACCESS_TOKEN)
            await self._secrets.delete(CredentialKey.REFRESH_TOKEN)
            self._generation += 1
        self._logger.info("credentials_cleared", generation=self._generation)
        return True
