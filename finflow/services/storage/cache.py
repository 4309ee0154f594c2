"""
File Cache Implementation

DESIGN DECISION: The cache is a directory of JSON files, one per key,
because:
1. Entries are small (one profile per user)
2. Each entry can be removed on its own
3. Clearing the cache is deleting the files

File names are the SHA-256 of the key, so distinct keys never share a
file (not even on case-insensitive filesystems) and no key can name a
path outside the directory. Each file stores its key next to the value;
an entry whose stored key does not match is a miss.

Writes go to a temporary file that is renamed into place, so a crash
mid-write leaves either the old entry or the new one, never a torn file.
Unreadable entries are treated as misses and deleted. File I/O runs in a
worker thread so the event loop is never blocked on disk.
"""

import asyncio
import hashlib
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Type

from pydantic import BaseModel, ValidationError

from finflow.audit.logger import get_logger
from finflow.config import get_settings
from finflow.services.storage.interface import (
    CacheError,
    CacheServiceInterface,
    ModelT,
)


class CacheKey:
    """Cache key constants."""
    USER_PROFILE = "user_profile"

    @staticmethod
    def user_profile(user_id: str) -> str:
        """User-scoped profile key, so switching accounts never leaks a profile."""
        return f"{CacheKey.USER_PROFILE}_{user_id}"


class CacheEntry(BaseModel):
    """On-disk envelope: the original key and the cached document."""
    key: str
    value: Any


def _filename(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest() + ".json"


class FileCacheService(CacheServiceInterface):
    """
    File-based cache service.

    All operations are serialized through one lock per instance.
    """

    def __init__(self, cache_dir: Optional[Path] = None):
        self._cache_dir = Path(cache_dir or get_settings().storage.cache_dir)
        self._lock = asyncio.Lock()
        self._logger = get_logger("Cache")

        try:
            self._cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Failed to create cache directory {self._cache_dir}: {e}")

        self._logger.info("cache_directory", path=str(self._cache_dir))

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def path_for(self, key: str) -> Path:
        """File an entry for key lives in."""
        return self._cache_dir / _filename(key)

    async def save(self, data: BaseModel, key: str) -> None:
        """Cache a model under key."""
        entry = CacheEntry(key=key, value=data.model_dump(mode="json", by_alias=True))
        async with self._lock:
            try:
                await asyncio.to_thread(self._write_file, self.path_for(key), entry.model_dump_json())
            except OSError as e:
                self._logger.error("cache_write_failed", key=key, error=str(e))
                raise CacheError(f"Failed to cache data for key {key}: {e}")

        self._logger.debug("cache_saved", key=key)

    def _write_file(self, path: Path, payload: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self._cache_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def retrieve(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        """Load a cached entry, dropping it if it is corrupt."""
        path = self.path_for(key)
        async with self._lock:
            try:
                raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
            except FileNotFoundError:
                self._logger.debug("cache_miss", key=key)
                return None
            except OSError as e:
                self._logger.error("cache_read_failed", key=key, error=str(e))
                return None

            try:
                entry = CacheEntry.model_validate_json(raw)
                if entry.key != key:
                    raise ValueError(f"entry belongs to key {entry.key!r}")
                value = model.model_validate(entry.value)
            except (ValidationError, ValueError) as e:
                self._logger.error("cache_entry_dropped", key=key, error=str(e))
                await asyncio.to_thread(path.unlink, missing_ok=True)
                return None

        self._logger.debug("cache_hit", key=key)
        return value

    async def remove(self, key: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self.path_for(key).unlink, missing_ok=True)
        self._logger.debug("cache_removed", key=key)

    async def clear(self) -> None:
        """Remove every entry in the cache directory."""
        async with self._lock:
            try:
                await asyncio.to_thread(self._clear_files)
            except OSError as e:
                raise CacheError(f"Failed to clear cache: {e}")

        self._logger.info("cache_cleared")

    def _clear_files(self) -> None:
        for entry in self._cache_dir.iterdir():
            if entry.is_file():
                entry.unlink(missing_ok=True)

    async def keys(self) -> list[str]:
        """Keys of the current readable entries."""
        async with self._lock:
            return await asyncio.to_thread(self._read_keys)

    def _read_keys(self) -> list[str]:
        found = []
        for path in self._cache_dir.glob("*.json"):
            try:
                found.append(CacheEntry.model_validate_json(path.read_text(encoding="utf-8")).key)
            except (OSError, ValidationError):
                continue
        return sorted(found)
