"""
Cache store contract and in-memory backend for the Enrichment Service.

The cache is a performance optimization only: read failures degrade to a
miss and write failures are logged and dropped.
"""

import asyncio
import copy
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from shared.errors import CacheError
from shared.logging import get_logger


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheEntry:
    """A cached value and the moment it stops being live."""
    key: str
    value: Any
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class CacheStore(ABC):
    """Keyed store of JSON values with per-entry expiry."""

    backend = "abstract"

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or utc_now
        self.logger = get_logger(f"enrichment.cache.{self.backend}")

    def now(self) -> datetime:
        return self._clock()

    async def start(self):
        """Open backend connections."""

    async def stop(self):
        """Close backend connections."""

    async def get(self, key: str) -> Optional[Any]:
        """Return the live value for ``key`` or None.

        An expired entry found here is deleted before returning None.
        """
        try:
            entry = await self._load(key)
        except Exception as e:
            self.logger.error("Cache get error", key=key, error=str(e))
            return None

        if entry is None:
            return None

        if entry.is_expired(self.now()):
            self.logger.debug("Evicting expired cache entry", key=key)
            await self.delete(key)
            return None

        return entry.value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """Insert or replace ``key`` with an expiry of now + ttl."""
        entry = CacheEntry(
            key=key,
            value=value,
            expires_at=self.now() + timedelta(seconds=ttl_seconds)
        )
        try:
            await self._store(entry)
        except Exception as e:
            self.logger.error("Cache set error", key=key, error=str(e))
            return False

        self.logger.debug("Cache set", key=key, ttl=ttl_seconds)
        return True

    async def delete(self, key: str) -> bool:
        try:
            await self._remove(key)
        except Exception as e:
            self.logger.error("Cache delete error", key=key, error=str(e))
            return False
        return True

    async def purge_expired(self) -> int:
        """Delete every entry whose expiry is strictly before now.

        Raises:
            CacheError: if the backend fails.
        """
        cutoff = self.now()
        try:
            return await self._purge(cutoff)
        except Exception as e:
            raise CacheError("Failed to purge expired entries", {"backend": self.backend, "error": str(e)}) from e

    async def health_check(self) -> bool:
        return True

    @abstractmethod
    async def _load(self, key: str) -> Optional[CacheEntry]:
        ...

    @abstractmethod
    async def _store(self, entry: CacheEntry):
        ...

    @abstractmethod
    async def _remove(self, key: str):
        ...

    @abstractmethod
    async def _purge(self, cutoff: datetime) -> int:
        ...


class InMemoryCacheStore(CacheStore):
    """Process-local cache store."""

    backend = "memory"

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def _load(self, key: str) -> Optional[CacheEntry]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return CacheEntry(entry.key, copy.deepcopy(entry.value), entry.expires_at)

    async def _store(self, entry: CacheEntry):
        # Round-trip through JSON so only serializable values are accepted
        value = json.loads(json.dumps(entry.value))
        async with self._lock:
            self._entries[entry.key] = CacheEntry(entry.key, value, entry.expires_at)

    async def _remove(self, key: str):
        async with self._lock:
            self._entries.pop(key, None)

    async def _purge(self, cutoff: datetime) -> int:
        async with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.expires_at < cutoff]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
