"""Circuit breaker for calls to flaky external dependencies.

CLOSED passes calls through and counts consecutive failures. Reaching the
failure threshold trips the breaker OPEN, which rejects calls with
:class:`CircuitOpenError` until the reset timeout elapses. The first call
after that moves the breaker to HALF_OPEN and goes through; three successes
in a row close it again, while any failure re-opens it.
"""

from __future__ import annotations

import threading
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from enum import Enum
from typing import TypeVar

import structlog
from pydantic import BaseModel, Field

from shipnorth.domain.models.base import utc_now
from shipnorth.infrastructure.observability.metrics import (
    CIRCUIT_BREAKER_CALLS_TOTAL,
    CIRCUIT_BREAKER_STATE,
    CIRCUIT_BREAKER_TRANSITIONS_TOTAL,
)


T = TypeVar("T")
Clock = Callable[[], datetime]

logger = structlog.get_logger(__name__)

HALF_OPEN_SUCCESS_THRESHOLD = 3


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


_STATE_GAUGE_VALUES = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


class CircuitBreakerConfig(BaseModel):
    """Per-dependency breaker configuration."""

    name: str
    failure_threshold: int = Field(default=5, ge=1)
    reset_timeout_ms: int = Field(default=60_000, ge=0)

    model_config = {"frozen": True}

    @property
    def reset_timeout(self) -> timedelta:
        return timedelta(milliseconds=self.reset_timeout_ms)


class CircuitBreakerStatus(BaseModel):
    """Point-in-time view of a breaker for operators."""

    name: str
    state: CircuitState
    failure_count: int
    success_count: int
    last_failure_time: datetime | None = None
    next_attempt_time: datetime | None = None


class CircuitBreaker:
    """Failure-counting state machine around one external dependency."""

    def __init__(self, config: CircuitBreakerConfig, clock: Clock = utc_now) -> None:
        self._config = config
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: datetime | None = None
        self._next_attempt_time: datetime | None = None
        # Transitions never await, so a plain lock keeps them atomic across threads.
        self._lock = threading.Lock()
        CIRCUIT_BREAKER_STATE.labels(name=config.name).set(_STATE_GAUGE_VALUES[self._state])

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def success_count(self) -> int:
        return self._success_count

    @property
    def last_failure_time(self) -> datetime | None:
        return self._last_failure_time

    @property
    def next_attempt_time(self) -> datetime | None:
        return self._next_attempt_time

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` through the breaker.

        Raises :class:`CircuitOpenError` without invoking ``operation`` while
        the breaker is open. Errors raised by ``operation`` are recorded and
        re-raised unchanged.
        """
        self._before_call()
        try:
            result = await operation()
        except Exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def get_status(self) -> CircuitBreakerStatus:
        with self._lock:
            return CircuitBreakerStatus(
                name=self.name,
                state=self._state,
                failure_count=self._failure_count,
                success_count=self._success_count,
                last_failure_time=self._last_failure_time,
                next_attempt_time=self._next_attempt_time,
            )

    def reset(self) -> None:
        """Force the breaker closed and clear all counters."""
        with self._lock:
            self._close()

    def _before_call(self) -> None:
        with self._lock:
            if self._state is not CircuitState.OPEN:
                return
            now = self._clock()
            if self._next_attempt_time is not None and now >= self._next_attempt_time:
                self._success_count = 0
                self._transition(CircuitState.HALF_OPEN)
                logger.info("circuit_breaker_half_open", breaker=self.name)
                return
            CIRCUIT_BREAKER_CALLS_TOTAL.labels(name=self.name, outcome="rejected").inc()
            raise CircuitOpenError(self.name, self._next_attempt_time, now)

    def _on_success(self) -> None:
        with self._lock:
            CIRCUIT_BREAKER_CALLS_TOTAL.labels(name=self.name, outcome="success").inc()
            if self._state is CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= HALF_OPEN_SUCCESS_THRESHOLD:
                    self._close()
                    logger.info("circuit_breaker_closed", breaker=self.name)
            elif self._state is CircuitState.CLOSED:
                self._failure_count = 0

    def _on_failure(self) -> None:
        with self._lock:
            CIRCUIT_BREAKER_CALLS_TOTAL.labels(name=self.name, outcome="failure").inc()
            self._failure_count += 1
            self._last_failure_time = self._clock()
            self._success_count = 0
            if self._state is CircuitState.HALF_OPEN or (
                self._state is CircuitState.CLOSED
                and self._failure_count >= self._config.failure_threshold
            ):
                self._trip()

    def _trip(self) -> None:
        self._next_attempt_time = self._clock() + self._config.reset_timeout
        self._transition(CircuitState.OPEN)
        logger.warning(
            "circuit_breaker_opened",
            breaker=self.name,
            failure_count=self._failure_count,
            next_attempt_time=self._next_attempt_time.isoformat(),
        )

    def _close(self) -> None:
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time = None
        self._next_attempt_time = None
        self._transition(CircuitState.CLOSED)

    def _transition(self, new_state: CircuitState) -> None:
        if new_state is self._state:
            return
        CIRCUIT_BREAKER_TRANSITIONS_TOTAL.labels(
            name=self.name, from_state=self._state.value, to_state=new_state.value,
        ).inc()
        CIRCUIT_BREAKER_STATE.labels(name=self.name).set(_STATE_GAUGE_VALUES[new_state])
        self._state = new_state


class CircuitOpenError(Exception):
    """Raised instead of calling a dependency whose breaker is open."""

    def __init__(
        self,
        breaker_name: str,
        next_attempt_time: datetime | None,
        now: datetime | None = None,
    ) -> None:
        self.breaker_name = breaker_name
        self.next_attempt_time = next_attempt_time
        remaining = 0.0
        if next_attempt_time is not None:
            remaining = (next_attempt_time - (now or utc_now())).total_seconds()
        self.retry_after_seconds = max(0.0, remaining)
        super().__init__(f"Circuit breaker {breaker_name} is OPEN")
