"""
Cache-aside resolver driver.

A resolver derives a cache key from its inputs, returns a live cached
result when one exists, and otherwise walks an ordered chain of strategies:
the configured external providers first, then an offline strategy that
always produces a clearly labelled answer. The winning result is written
back to the cache wrapped in an envelope recording which provider produced it.
"""

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Tuple, TypeVar, TYPE_CHECKING

from shared.logging import get_logger
from ..cache.store import CacheStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.circuit_breaker import CircuitBreakerRegistry
    from shared.metrics import MetricsCollector


InputsT = TypeVar("InputsT")


def make_key(namespace: str, *parts: str) -> str:
    """Deterministic cache key for normalized input parts."""
    digest = hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


@dataclass
class Strategy(Generic[InputsT]):
    """One external provider in a resolver's fallback chain.

    ``func`` returns the result, or None when the provider had no answer.
    """
    name: str
    func: Callable[[InputsT], Awaitable[Optional[Any]]]


@dataclass
class Resolution:
    """Result of a resolve call."""
    key: str
    value: Any
    provider: str
    offline: bool
    cached: bool
    resolved_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Resolver(ABC, Generic[InputsT]):
    """Base class for every cache-aside resolver."""

    name = "resolver"
    namespace = "resolver"

    def __init__(
        self,
        cache: CacheStore,
        ttl_seconds: int,
        fallback_ttl_seconds: Optional[int] = None,
        breakers: Optional["CircuitBreakerRegistry"] = None,
        metrics: Optional["MetricsCollector"] = None
    ):
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.fallback_ttl_seconds = ttl_seconds if fallback_ttl_seconds is None else fallback_ttl_seconds
        self.breakers = breakers
        self.metrics = metrics
        self.logger = get_logger(f"enrichment.resolvers.{self.name}")

    def validate(self, inputs: InputsT) -> None:
        """Raise InputError for malformed inputs."""

    @abstractmethod
    def cache_key(self, inputs: InputsT) -> str:
        ...

    @abstractmethod
    def strategies(self) -> List[Strategy[InputsT]]:
        """Configured external strategies in priority order."""

    @abstractmethod
    async def offline(self, inputs: InputsT) -> Tuple[str, Any]:
        """Deterministic answer used when no provider produced one.

        Returns (provider label, value).
        """

    @abstractmethod
    def placeholder(self, inputs: InputsT) -> Any:
        """Static answer used if the offline strategy itself breaks."""

    async def finalize(self, inputs: InputsT, value: Any, provider: str) -> Any:
        """Post-process a freshly resolved value before it is cached."""
        return value

    async def resolve(self, inputs: InputsT) -> Resolution:
        self.validate(inputs)
        key = self.cache_key(inputs)

        envelope = await self.cache.get(key)
        if self._is_envelope(envelope):
            self._count("cache_hits_total", namespace=self.namespace)
            self.logger.debug("Resolved from cache", key=key, provider=envelope["provider"])
            return Resolution(
                key=key,
                value=envelope["data"],
                provider=envelope["provider"],
                offline=envelope["offline"],
                cached=True,
                resolved_at=envelope["resolved_at"]
            )

        self._count("cache_misses_total", namespace=self.namespace)

        if self.metrics:
            with self.metrics.time_operation("resolve_duration_seconds", resolver=self.name):
                provider, value, offline = await self._run_chain(inputs)
        else:
            provider, value, offline = await self._run_chain(inputs)

        value = await self.finalize(inputs, value, provider)

        resolved_at = self.cache.now().isoformat()
        envelope = {
            "provider": provider,
            "offline": offline,
            "resolved_at": resolved_at,
            "data": value
        }
        ttl = self.fallback_ttl_seconds if offline else self.ttl_seconds
        await self.cache.set(key, envelope, ttl)

        self.logger.info("Resolved", key=key, provider=provider, offline=offline, ttl=ttl)
        return Resolution(
            key=key,
            value=value,
            provider=provider,
            offline=offline,
            cached=False,
            resolved_at=resolved_at
        )

    async def _run_chain(self, inputs: InputsT) -> Tuple[str, Any, bool]:
        for strategy in self.strategies():
            value = await self._attempt(strategy, inputs)
            if value is not None:
                return strategy.name, value, False

        try:
            provider, value = await self.offline(inputs)
        except Exception as e:
            self.logger.error("Offline strategy failed, using placeholder", error=str(e))
            return "placeholder", self.placeholder(inputs), True

        self._count("strategy_outcomes_total", resolver=self.name, provider=provider, outcome="offline")
        return provider, value, True

    async def _attempt(self, strategy: Strategy[InputsT], inputs: InputsT) -> Optional[Any]:
        breaker = self.breakers.get(strategy.name) if self.breakers else None

        if breaker and not breaker.allow_request():
            self.logger.info("Skipping provider with open circuit", provider=strategy.name)
            self._count("strategy_outcomes_total", resolver=self.name, provider=strategy.name, outcome="circuit_open")
            return None

        try:
            value = await strategy.func(inputs)
        except Exception as e:
            if breaker:
                breaker.record_failure()
            self.logger.warning("Provider failed, trying next strategy", provider=strategy.name, error=str(e))
            self._count("strategy_outcomes_total", resolver=self.name, provider=strategy.name, outcome="failure")
            return None

        if breaker:
            breaker.record_success()

        if value is None:
            self.logger.info("Provider had no answer", provider=strategy.name)
            self._count("strategy_outcomes_total", resolver=self.name, provider=strategy.name, outcome="empty")
            return None

        self._count("strategy_outcomes_total", resolver=self.name, provider=strategy.name, outcome="success")
        return value

    @staticmethod
    def _is_envelope(value: Any) -> bool:
        return (
            isinstance(value, dict)
            and "provider" in value
            and "data" in value
            and "offline" in value
            and "resolved_at" in value
        )

    def _count(self, metric_name: str, **labels):
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)
