"""
PostgreSQL cache backend for the Enrichment Service.
"""

import json
from datetime import datetime
from typing import Optional

import asyncpg

from shared.errors import CacheError
from .store import CacheEntry, CacheStore, Clock


class PostgresCacheStore(CacheStore):
    """Cache rows of (key, value jsonb, expires_at) in PostgreSQL."""

    backend = "postgres"

    def __init__(self, dsn: str, clock: Optional[Clock] = None, table: str = "cache"):
        super().__init__(clock)
        self.dsn = dsn
        self.table = table
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Open the pool; on failure the store stays unset and every call degrades."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=1,
                max_size=10,
                command_timeout=10
            )
            await self._create_tables()
            self.logger.info("PostgreSQL cache started", table=self.table)

        except Exception as e:
            self.logger.error("PostgreSQL cache unavailable, running degraded", error=str(e))
            if self.pool:
                await self.pool.close()
                self.pool = None

    async def stop(self):
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL cache stopped")

    async def _create_tables(self):
        async with self.pool.acquire() as conn:
            await conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    key TEXT PRIMARY KEY,
                    value JSONB NOT NULL,
                    expires_at TIMESTAMP WITH TIME ZONE NOT NULL
                );
            """)
            await conn.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{self.table}_expires_at ON {self.table}(expires_at);
            """)

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise CacheError("PostgreSQL cache not started")
        return self.pool

    async def _load(self, key: str) -> Optional[CacheEntry]:
        async with self._require_pool().acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT key, value, expires_at FROM {self.table} WHERE key = $1",
                key
            )

        if row is None:
            return None

        return CacheEntry(
            key=row["key"],
            value=json.loads(row["value"]),
            expires_at=row["expires_at"]
        )

    async def _store(self, entry: CacheEntry):
        async with self._require_pool().acquire() as conn:
            await conn.execute(
                f"""
                INSERT INTO {self.table} (key, value, expires_at)
                VALUES ($1, $2::jsonb, $3)
                ON CONFLICT (key) DO UPDATE SET
                    value = EXCLUDED.value,
                    expires_at = EXCLUDED.expires_at
                """,
                entry.key,
                json.dumps(entry.value),
                entry.expires_at
            )

    async def _remove(self, key: str):
        async with self._require_pool().acquire() as conn:
            await conn.execute(f"DELETE FROM {self.table} WHERE key = $1", key)

    async def _purge(self, cutoff: datetime) -> int:
        async with self._require_pool().acquire() as conn:
            status = await conn.execute(f"DELETE FROM {self.table} WHERE expires_at < $1", cutoff)

        # asyncpg returns the command tag, e.g. "DELETE 3"
        return int(status.split()[-1])

    async def health_check(self) -> bool:
        try:
            async with self._require_pool().acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception:
            return False
