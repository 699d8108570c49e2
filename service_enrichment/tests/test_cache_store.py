"""
Unit tests for the Enrichment cache store.
"""

import json
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

from service_enrichment.app.cache.factory import create_cache_store
from service_enrichment.app.cache.postgres_store import PostgresCacheStore
from service_enrichment.app.cache.redis_store import RedisCacheStore
from service_enrichment.app.cache.store import CacheEntry, InMemoryCacheStore
from shared.config import get_config
from shared.errors import CacheError, InputError
from shared.test_helpers import FakeClock


class TestInMemoryCacheStore:
    """Test cases for InMemoryCacheStore."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        return InMemoryCacheStore(clock=clock)

    @pytest.mark.asyncio
    async def test_get_missing_key(self, cache):
        """Test get on a key that was never set."""
        assert await cache.get("nope") is None

    @pytest.mark.asyncio
    async def test_value_live_until_expiry(self, cache, clock):
        """Test a value is returned for the whole TTL window and absent after."""
        await cache.set("k", {"a": 1}, 60)

        clock.advance(seconds=59)
        assert await cache.get("k") == {"a": 1}

        clock.advance(seconds=1)
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_geocode_paris_scenario(self, cache, clock):
        """Test the 24h geocode entry is live at T+1h and gone at T+25h."""
        await cache.set("geocode_paris", {"lat": 48.85, "lng": 2.35}, 24 * 3600)

        clock.advance(hours=1)
        assert await cache.get("geocode_paris") == {"lat": 48.85, "lng": 2.35}

        clock.advance(hours=24)
        assert await cache.get("geocode_paris") is None

    @pytest.mark.asyncio
    async def test_expired_entry_is_evicted_on_read(self, cache, clock):
        """Test lazy eviction deletes the physical entry."""
        await cache.set("k", "v", 10)
        clock.advance(seconds=11)

        assert "k" in cache
        assert await cache.get("k") is None
        assert "k" not in cache

    @pytest.mark.asyncio
    async def test_set_replaces_value_and_resets_expiry(self, cache, clock):
        """Test repeated set overwrites the value and restarts the window."""
        await cache.set("k", "old", 10)
        clock.advance(seconds=8)
        await cache.set("k", "new", 10)
        clock.advance(seconds=8)

        assert await cache.get("k") == "new"
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_identical_set_is_idempotent(self, cache):
        """Test setting the same value twice is observably the same as once."""
        await cache.set("k", [1, 2], 30)
        await cache.set("k", [1, 2], 30)

        assert await cache.get("k") == [1, 2]
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_returned_value_is_a_copy(self, cache):
        """Test mutating a returned value does not change the cache."""
        await cache.set("k", {"items": [1]}, 30)
        value = await cache.get("k")
        value["items"].append(2)

        assert await cache.get("k") == {"items": [1]}

    @pytest.mark.asyncio
    async def test_set_rejects_unserializable_value(self, cache):
        """Test write errors are swallowed and reported as False."""
        assert await cache.set("k", {"bad": object()}, 30) is False
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_delete_missing_key(self, cache):
        """Test delete is unconditional."""
        assert await cache.delete("missing") is True

    @pytest.mark.asyncio
    async def test_purge_expired_strictly_before_now(self, cache, clock):
        """Test purge removes only entries whose expiry has passed."""
        await cache.set("short", 1, 10)
        await cache.set("exact", 2, 20)
        await cache.set("long", 3, 60)

        clock.advance(seconds=20)
        deleted = await cache.purge_expired()

        assert deleted == 1
        assert "short" not in cache
        assert "exact" in cache
        assert "long" in cache

    @pytest.mark.asyncio
    async def test_get_degrades_to_miss_on_backend_error(self, cache):
        """Test a failing load is treated as a miss."""
        with patch.object(cache, "_load", AsyncMock(side_effect=RuntimeError("boom"))):
            assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_purge_wraps_backend_error(self, cache):
        """Test purge failures surface as CacheError."""
        with patch.object(cache, "_purge", AsyncMock(side_effect=RuntimeError("boom"))):
            with pytest.raises(CacheError) as exc_info:
                await cache.purge_expired()

        assert exc_info.value.code == "CACHE_ERROR"


class TestCacheEntry:
    """Test cases for CacheEntry."""

    def test_expired_at_boundary(self):
        clock = FakeClock()
        entry = CacheEntry("k", 1, clock() + timedelta(seconds=5))

        assert entry.is_expired(clock()) is False
        assert entry.is_expired(clock.advance(seconds=5)) is True


class TestRedisCacheStore:
    """Test cases for RedisCacheStore with a mocked client."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def redis_client(self):
        client = AsyncMock()
        client.get = AsyncMock(return_value=None)
        client.setex = AsyncMock(return_value=True)
        client.delete = AsyncMock(return_value=1)
        return client

    @pytest.fixture
    def cache(self, clock, redis_client):
        store = RedisCacheStore("redis://localhost:6379/0", clock=clock)
        store.redis = redis_client
        return store

    @pytest.mark.asyncio
    async def test_set_uses_prefixed_key_and_native_ttl(self, cache, redis_client):
        await cache.set("geocode:abc", {"lat": 1.0}, 120)

        redis_client.setex.assert_called_once()
        key, ttl, raw = redis_client.setex.call_args.args
        assert key == "relief:cache:geocode:abc"
        assert ttl == 120
        assert json.loads(raw)["value"] == {"lat": 1.0}

    @pytest.mark.asyncio
    async def test_get_honours_explicit_expiry(self, cache, clock, redis_client):
        expires_at = (clock() - timedelta(seconds=1)).isoformat()
        redis_client.get = AsyncMock(return_value=json.dumps({"value": 1, "expires_at": expires_at}))

        assert await cache.get("k") is None
        redis_client.delete.assert_called_once_with("relief:cache:k")

    @pytest.mark.asyncio
    async def test_get_live_value(self, cache, clock, redis_client):
        expires_at = (clock() + timedelta(seconds=30)).isoformat()
        redis_client.get = AsyncMock(return_value=json.dumps({"value": {"x": 1}, "expires_at": expires_at}))

        assert await cache.get("k") == {"x": 1}

    @pytest.mark.asyncio
    async def test_unreachable_redis_starts_degraded(self, clock):
        """Test a failed ping at startup leaves the store usable as a permanent miss."""
        client = AsyncMock()
        client.ping = AsyncMock(side_effect=ConnectionError("connection refused"))
        store = RedisCacheStore("redis://127.0.0.1:1/0", clock=clock)

        with patch("service_enrichment.app.cache.redis_store.redis.from_url", return_value=client):
            await store.start()

        assert store.redis is None
        client.aclose.assert_awaited_once()
        assert await store.get("k") is None
        assert await store.set("k", 1, 10) is False
        assert await store.health_check() is False


class TestPostgresCacheStore:
    """Test cases for PostgresCacheStore with a mocked connection pool."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def conn(self):
        conn = AsyncMock()
        conn.fetchrow = AsyncMock(return_value=None)
        conn.execute = AsyncMock(return_value="DELETE 0")
        return conn

    @pytest.fixture
    def cache(self, clock, conn):
        acquired = MagicMock()
        acquired.__aenter__.return_value = conn
        acquired.__aexit__.return_value = False

        pool = MagicMock()
        pool.acquire.return_value = acquired

        store = PostgresCacheStore("postgres://localhost/relief", clock=clock)
        store.pool = pool
        return store

    @pytest.mark.asyncio
    async def test_set_upserts_row(self, cache, clock, conn):
        assert await cache.set("geocode:abc", {"lat": 1.0}, 120) is True

        sql, key, raw, expires_at = conn.execute.call_args.args
        assert "INSERT INTO cache (key, value, expires_at)" in sql
        assert "ON CONFLICT (key) DO UPDATE" in sql
        assert key == "geocode:abc"
        assert json.loads(raw) == {"lat": 1.0}
        assert expires_at == clock() + timedelta(seconds=120)

    @pytest.mark.asyncio
    async def test_get_decodes_live_row(self, cache, clock, conn):
        conn.fetchrow = AsyncMock(return_value={
            "key": "k",
            "value": json.dumps({"posts": [1, 2]}),
            "expires_at": clock() + timedelta(seconds=30)
        })

        assert await cache.get("k") == {"posts": [1, 2]}
        sql, key = conn.fetchrow.call_args.args
        assert "WHERE key = $1" in sql
        assert key == "k"

    @pytest.mark.asyncio
    async def test_get_missing_row(self, cache):
        assert await cache.get("missing") is None

    @pytest.mark.asyncio
    async def test_get_evicts_expired_row(self, cache, clock, conn):
        conn.fetchrow = AsyncMock(return_value={
            "key": "k",
            "value": json.dumps(1),
            "expires_at": clock() - timedelta(seconds=1)
        })

        assert await cache.get("k") is None
        conn.execute.assert_awaited_once_with("DELETE FROM cache WHERE key = $1", "k")

    @pytest.mark.asyncio
    async def test_purge_uses_strict_cutoff_and_parses_tag(self, cache, clock, conn):
        conn.execute = AsyncMock(return_value="DELETE 3")

        assert await cache.purge_expired() == 3
        sql, cutoff = conn.execute.call_args.args
        assert "WHERE expires_at < $1" in sql
        assert cutoff == clock()

    @pytest.mark.asyncio
    async def test_purge_failure_raises_cache_error(self, cache, conn):
        conn.execute = AsyncMock(side_effect=OSError("connection lost"))

        with pytest.raises(CacheError):
            await cache.purge_expired()

    @pytest.mark.asyncio
    async def test_operations_before_start_degrade(self):
        """Test the store reports errors the way the contract requires when not started."""
        cache = PostgresCacheStore("postgres://localhost/relief")

        assert await cache.get("k") is None
        assert await cache.set("k", 1, 10) is False
        with pytest.raises(CacheError):
            await cache.purge_expired()

    @pytest.mark.asyncio
    async def test_unreachable_database_starts_degraded(self):
        cache = PostgresCacheStore("postgres://127.0.0.1:1/relief")

        with patch(
            "service_enrichment.app.cache.postgres_store.asyncpg.create_pool",
            AsyncMock(side_effect=OSError("connection refused"))
        ):
            await cache.start()

        assert cache.pool is None
        assert await cache.health_check() is False


class TestCacheFactory:
    """Test cases for create_cache_store."""

    def test_memory_backend(self):
        config = get_config("enrichment", 8000, cache_backend="memory")
        assert isinstance(create_cache_store(config), InMemoryCacheStore)

    def test_redis_backend(self):
        config = get_config("enrichment", 8000, cache_backend="redis")
        assert isinstance(create_cache_store(config), RedisCacheStore)

    def test_postgres_backend(self):
        config = get_config("enrichment", 8000, cache_backend="POSTGRES")
        assert isinstance(create_cache_store(config), PostgresCacheStore)

    def test_unknown_backend(self):
        config = get_config("enrichment", 8000, cache_backend="memcached")
        with pytest.raises(InputError):
            create_cache_store(config)
