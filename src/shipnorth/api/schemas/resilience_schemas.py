"""API schemas for circuit breaker administration."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from shipnorth.infrastructure.resilience.circuit_breaker import CircuitBreakerStatus, CircuitState


class CircuitBreakerResponse(BaseModel):
    name: str
    state: CircuitState
    failure_count: int
    success_count: int
    last_failure_time: datetime | None = None
    next_attempt_time: datetime | None = None

    @classmethod
    def from_status(cls, status: CircuitBreakerStatus) -> CircuitBreakerResponse:
        return cls(**status.model_dump())


class CircuitBreakerListResponse(BaseModel):
    breakers: list[CircuitBreakerResponse]
    open: list[str]


class ErrorResponse(BaseModel):
    detail: str
    retry_after_seconds: int | None = None
