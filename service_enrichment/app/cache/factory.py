"""
Cache backend selection.
"""

from typing import Optional

from shared.config import BaseConfig
from shared.errors import InputError
from .store import CacheStore, Clock, InMemoryCacheStore
from .postgres_store import PostgresCacheStore
from .redis_store import RedisCacheStore


def create_cache_store(config: BaseConfig, clock: Optional[Clock] = None) -> CacheStore:
    """Build the backend named by ``config.cache_backend``."""
    backend = config.cache_backend.lower()

    if backend == "memory":
        return InMemoryCacheStore(clock=clock)
    if backend == "postgres":
        return PostgresCacheStore(config.postgres_dsn, clock=clock)
    if backend == "redis":
        return RedisCacheStore(config.redis_url, clock=clock)

    raise InputError(
        f"Unknown cache backend: {config.cache_backend}",
        {"supported": ["memory", "postgres", "redis"]}
    )
