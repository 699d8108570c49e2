"""
Periodic purge of expired cache entries.
"""

import asyncio
import time
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, TYPE_CHECKING

from shared.logging import get_logger
from .store import CacheStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


@dataclass
class SweepResult:
    """Outcome of a single sweep."""
    deleted: int
    duration_seconds: float
    succeeded: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CleanupSweeper:
    """Deletes cache entries whose expiry has passed.

    ``sweep`` is triggered by an external scheduler. ``start`` additionally
    runs it in-process every ``interval_seconds`` when the interval is positive.
    """

    def __init__(
        self,
        cache: CacheStore,
        interval_seconds: int = 0,
        metrics: Optional["MetricsCollector"] = None
    ):
        self.cache = cache
        self.interval_seconds = interval_seconds
        self.metrics = metrics
        self.logger = get_logger("enrichment.cache.sweeper")

        self.last_result: Optional[SweepResult] = None
        self.sweep_task: Optional[asyncio.Task] = None
        self.running = False

    async def start(self):
        if self.interval_seconds <= 0:
            self.logger.info("Cache sweeper left to external scheduler")
            return

        self.running = True
        self.sweep_task = asyncio.create_task(self._sweep_loop())
        self.logger.info("Cache sweeper started", interval_seconds=self.interval_seconds)

    async def stop(self):
        self.running = False
        if self.sweep_task:
            self.sweep_task.cancel()
            try:
                await self.sweep_task
            except asyncio.CancelledError:
                pass
            self.sweep_task = None

        self.logger.info("Cache sweeper stopped")

    async def sweep(self) -> SweepResult:
        """Purge expired entries once. Never raises."""
        self.logger.info("Running cache cleanup")
        start_time = time.monotonic()

        try:
            deleted = await self.cache.purge_expired()
        except Exception as e:
            result = SweepResult(
                deleted=0,
                duration_seconds=time.monotonic() - start_time,
                succeeded=False,
                error=str(e)
            )
            self.logger.error("Cache cleanup failed", error=str(e))
            self._record(result)
            return result

        result = SweepResult(
            deleted=deleted,
            duration_seconds=time.monotonic() - start_time,
            succeeded=True
        )
        self.logger.info("Cache cleanup completed", deleted=deleted)
        self._record(result)
        return result

    def _record(self, result: SweepResult):
        self.last_result = result
        if self.metrics:
            self.metrics.increment_counter("cache_sweeps_total", status="ok" if result.succeeded else "error")
            if result.deleted:
                self.metrics.increment_counter("cache_entries_swept_total", amount=result.deleted)

    async def _sweep_loop(self):
        while self.running:
            await asyncio.sleep(self.interval_seconds)
            await self.sweep()
