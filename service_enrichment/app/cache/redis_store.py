"""
Redis cache backend for the Enrichment Service.
"""

import json
import math
from datetime import datetime
from typing import Optional

import redis.asyncio as redis

from shared.errors import CacheError
from .store import CacheEntry, CacheStore, Clock


class RedisCacheStore(CacheStore):
    """Cache entries as JSON documents in Redis.

    Each document carries its own ``expires_at`` which is authoritative;
    the Redis key TTL is only a backstop so abandoned keys do not pile up.
    """

    backend = "redis"

    KEY_PREFIX = "relief:cache:"

    def __init__(self, redis_url: str, clock: Optional[Clock] = None):
        super().__init__(clock)
        self.redis_url = redis_url
        self.redis: Optional[redis.Redis] = None

    async def start(self):
        """Connect to Redis; on failure the store stays unset and every call degrades."""
        client = redis.from_url(
            self.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30
        )

        try:
            await client.ping()
        except Exception as e:
            self.logger.error("Redis cache unavailable, running degraded", error=str(e))
            await client.aclose()
            return

        self.redis = client
        self.logger.info("Redis cache started")

    async def stop(self):
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis cache stopped")

    def _redis_key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"

    def _require_client(self) -> redis.Redis:
        if self.redis is None:
            raise CacheError("Redis cache not started")
        return self.redis

    async def _load(self, key: str) -> Optional[CacheEntry]:
        raw = await self._require_client().get(self._redis_key(key))
        if not raw:
            return None
        return self._decode(key, raw)

    async def _store(self, entry: CacheEntry):
        ttl = max(1, math.ceil((entry.expires_at - self.now()).total_seconds()))
        document = json.dumps({
            "value": entry.value,
            "expires_at": entry.expires_at.isoformat()
        })
        await self._require_client().setex(self._redis_key(entry.key), ttl, document)

    async def _remove(self, key: str):
        await self._require_client().delete(self._redis_key(key))

    async def _purge(self, cutoff: datetime) -> int:
        client = self._require_client()
        removed = 0

        async for redis_key in client.scan_iter(match=f"{self.KEY_PREFIX}*", count=500):
            raw = await client.get(redis_key)
            if not raw:
                continue
            entry = self._decode(redis_key[len(self.KEY_PREFIX):], raw)
            if entry.expires_at < cutoff:
                removed += await client.delete(redis_key)

        return removed

    @staticmethod
    def _decode(key: str, raw: str) -> CacheEntry:
        data = json.loads(raw)
        return CacheEntry(
            key=key,
            value=data["value"],
            expires_at=datetime.fromisoformat(data["expires_at"])
        )

    async def health_check(self) -> bool:
        try:
            await self._require_client().ping()
            return True
        except Exception:
            return False
