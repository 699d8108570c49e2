#!/usr/bin/env python3
"""
Purge expired entries from the enrichment cache.

Runs the same sweep as the Enrichment Service's ``/cron/cache-cleanup``
endpoint, but directly against the configured PostgreSQL or Redis backend, so
it can be executed manually from a developer workstation or a CI job.
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import Optional
import sys

from shared.config import get_config
from shared.errors import CacheError
from shared.logging import configure_logging
from service_enrichment.app.cache.factory import create_cache_store
from service_enrichment.app.cache.sweeper import CleanupSweeper, SweepResult


SHARED_BACKENDS = ("postgres", "redis")


async def sweep(
    *,
    backend: str,
    postgres_dsn: Optional[str],
    redis_url: Optional[str],
) -> SweepResult:
    """Connect to the backend, sweep once and disconnect."""
    overrides = {"cache_backend": backend}
    if postgres_dsn:
        overrides["postgres_dsn"] = postgres_dsn
    if redis_url:
        overrides["redis_url"] = redis_url

    config = get_config("cache-sweeper", 0, **overrides)
    configure_logging("cache-sweeper", config.log_level)

    cache = create_cache_store(config)
    await cache.start()
    try:
        if not await cache.health_check():
            raise CacheError(f"{backend} cache backend is unreachable")
        return await CleanupSweeper(cache).sweep()
    finally:
        await cache.stop()


def _parse_args() -> argparse.Namespace:
    defaults = get_config("cache-sweeper", 0)
    parser = argparse.ArgumentParser(description="Purge expired entries from the enrichment cache.")
    parser.add_argument("--backend", choices=SHARED_BACKENDS, default=defaults.cache_backend if defaults.cache_backend in SHARED_BACKENDS else "postgres", help="Cache backend to sweep")
    parser.add_argument("--postgres-dsn", default=None, help="PostgreSQL DSN (defaults to RELIEF_POSTGRES_DSN)")
    parser.add_argument("--redis-url", default=None, help="Redis URL (defaults to RELIEF_REDIS_URL)")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON summary")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    try:
        result = asyncio.run(
            sweep(
                backend=args.backend,
                postgres_dsn=args.postgres_dsn,
                redis_url=args.redis_url,
            )
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[cache-sweep] failed: {exc}", file=sys.stderr)
        return 1

    summary = result.to_dict()
    print(json.dumps(summary, indent=2))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2))

    return 0 if result.succeeded else 1


if __name__ == "__main__":
    raise SystemExit(main())
