"""Named circuit breakers, created lazily per dependency."""

from __future__ import annotations

import threading
from collections.abc import Awaitable, Callable, Mapping
from typing import TypeVar

import structlog

from shipnorth.config import CircuitBreakerSettings
from shipnorth.domain.models.base import utc_now
from shipnorth.infrastructure.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerStatus,
    CircuitState,
    Clock,
)


T = TypeVar("T")

logger = structlog.get_logger(__name__)

STRIPE = "stripe"
PAYPAL = "paypal"
SHIPSTATION = "shipstation"
DATABASE = "database"

# Payment and carrier APIs are slower to recover and costlier to hammer
# than the local database, hence the lower threshold and longer cooldown.
WELL_KNOWN_BREAKERS: dict[str, CircuitBreakerConfig] = {
    STRIPE: CircuitBreakerConfig(name=STRIPE, failure_threshold=3, reset_timeout_ms=30_000),
    PAYPAL: CircuitBreakerConfig(name=PAYPAL, failure_threshold=3, reset_timeout_ms=30_000),
    SHIPSTATION: CircuitBreakerConfig(name=SHIPSTATION, failure_threshold=3, reset_timeout_ms=30_000),
    DATABASE: CircuitBreakerConfig(name=DATABASE, failure_threshold=10, reset_timeout_ms=5_000),
}


class CircuitBreakerRegistry:
    """Process-wide mapping of breaker name to breaker instance.

    Owned by the service container and injected where needed; tests build
    their own isolated registries.
    """

    def __init__(
        self,
        defaults: Mapping[str, CircuitBreakerConfig] | None = None,
        default_failure_threshold: int = 5,
        default_reset_timeout_ms: int = 60_000,
        clock: Clock = utc_now,
    ) -> None:
        self._defaults = dict(WELL_KNOWN_BREAKERS if defaults is None else defaults)
        self._default_failure_threshold = default_failure_threshold
        self._default_reset_timeout_ms = default_reset_timeout_ms
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls, settings: CircuitBreakerSettings, clock: Clock = utc_now,
    ) -> CircuitBreakerRegistry:
        return cls(
            default_failure_threshold=settings.default_failure_threshold,
            default_reset_timeout_ms=settings.default_reset_timeout_ms,
            clock=clock,
        )

    def get(self, name: str, config: CircuitBreakerConfig | None = None) -> CircuitBreaker:
        """Return the breaker for ``name``, creating it on first use.

        ``config`` only applies when the breaker does not exist yet.
        """
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(config or self._config_for(name), clock=self._clock)
                self._breakers[name] = breaker
                logger.info(
                    "circuit_breaker_created",
                    breaker=name,
                    failure_threshold=breaker.config.failure_threshold,
                    reset_timeout_ms=breaker.config.reset_timeout_ms,
                )
            return breaker

    def find(self, name: str) -> CircuitBreaker | None:
        return self._breakers.get(name)

    async def execute(self, name: str, operation: Callable[[], Awaitable[T]]) -> T:
        return await self.get(name).execute(operation)

    def statuses(self) -> list[CircuitBreakerStatus]:
        return [b.get_status() for b in list(self._breakers.values())]

    def open_breakers(self) -> list[str]:
        return [
            name for name, b in list(self._breakers.items())
            if b.state is CircuitState.OPEN
        ]

    def reset_breaker(self, name: str) -> bool:
        """Manually close a breaker. Returns False for unknown names."""
        breaker = self._breakers.get(name)
        if breaker is None:
            return False
        breaker.reset()
        logger.info("circuit_breaker_manually_reset", breaker=name)
        return True

    @property
    def names(self) -> list[str]:
        return sorted(self._breakers)

    def _config_for(self, name: str) -> CircuitBreakerConfig:
        known = self._defaults.get(name)
        if known is not None:
            return known
        return CircuitBreakerConfig(
            name=name,
            failure_threshold=self._default_failure_threshold,
            reset_timeout_ms=self._default_reset_timeout_ms,
        )
