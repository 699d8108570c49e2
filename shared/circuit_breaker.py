"""
Circuit breakers guarding external provider calls.

A breaker opens after ``failure_threshold`` consecutive failures and rejects
calls until ``recovery_timeout`` seconds have passed, after which a single
trial call is let through (half-open).
"""

import time
from enum import Enum
from typing import Dict, Any, Callable, Optional

from shared.logging import get_logger


class CircuitBreakerState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Consecutive-failure circuit breaker."""

    def __init__(self,
                 name: str,
                 failure_threshold: int = 5,
                 recovery_timeout: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self.logger = get_logger(f"enrichment.circuit_breaker.{name}")

        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._opened_at = 0.0
        self._trial_started_at: Optional[float] = None

    @property
    def state(self) -> CircuitBreakerState:
        return self._state

    def allow_request(self) -> bool:
        """Whether a call may be attempted right now.

        While half-open only one trial call is admitted at a time. A trial that
        never reports back is replaced after another ``recovery_timeout``.
        """
        now = self._clock()
        if self._state == CircuitBreakerState.CLOSED:
            return True

        if self._state == CircuitBreakerState.OPEN:
            if now - self._opened_at < self.recovery_timeout:
                return False
            self._state = CircuitBreakerState.HALF_OPEN
            self.logger.info("Circuit breaker transitioning to half-open")
        elif self._trial_started_at is not None and now - self._trial_started_at < self.recovery_timeout:
            return False

        self._trial_started_at = now
        return True

    def record_success(self):
        if self._state != CircuitBreakerState.CLOSED:
            self.logger.info("Circuit breaker reset to CLOSED after successful call")
        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._trial_started_at = None

    def record_failure(self):
        self._failure_count += 1
        self._trial_started_at = None

        if self._state == CircuitBreakerState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitBreakerState.OPEN
            self._opened_at = self._clock()
            self.logger.warning(
                "Circuit breaker opened due to failures",
                failure_count=self._failure_count,
                threshold=self.failure_threshold
            )

    def get_state(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout
        }


class CircuitBreakerRegistry:
    """Holds one breaker per provider name."""

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.circuit_breakers: Dict[str, CircuitBreaker] = {}
        self.logger = get_logger("enrichment.circuit_breaker_registry")

    def get(self, name: str) -> CircuitBreaker:
        """Get or create the breaker for ``name``."""
        if name not in self.circuit_breakers:
            self.circuit_breakers[name] = CircuitBreaker(
                name=name,
                failure_threshold=self.failure_threshold,
                recovery_timeout=self.recovery_timeout
            )
            self.logger.info("Created circuit breaker", name=name)

        return self.circuit_breakers[name]

    def get_all_states(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: cb.get_state()
            for name, cb in self.circuit_breakers.items()
        }
