"""Prometheus metrics configuration."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Info,
)


# Application info
APP_INFO = Info("shipnorth", "Shipnorth API application info")
APP_INFO.info({
    "version": "1.0.0",
    "service": "shipnorth-api",
})

# Permission metrics
PERMISSION_CHECKS_TOTAL = Counter(
    "shipnorth_permission_checks_total",
    "Total number of route-level ability checks",
    ["action", "subject", "result"],  # result: "allowed", "denied"
)

PORTAL_SWITCHES_TOTAL = Counter(
    "shipnorth_portal_switches_total",
    "Total number of portal switches",
    ["portal", "result"],
)

# Circuit breaker metrics
CIRCUIT_BREAKER_STATE = Gauge(
    "shipnorth_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=half_open, 2=open)",
    ["name"],
)

CIRCUIT_BREAKER_CALLS_TOTAL = Counter(
    "shipnorth_circuit_breaker_calls_total",
    "Calls routed through a circuit breaker",
    ["name", "outcome"],  # outcome: "success", "failure", "rejected"
)

CIRCUIT_BREAKER_TRANSITIONS_TOTAL = Counter(
    "shipnorth_circuit_breaker_transitions_total",
    "Circuit breaker state transitions",
    ["name", "from_state", "to_state"],
)
