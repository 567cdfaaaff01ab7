"""Health check and metrics routes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
import structlog

from shipnorth.api.dependencies.services import get_service_container, ServiceContainer


logger = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0",
    }


@router.get("/health/ready")
async def readiness_check(
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> dict[str, Any]:
    """Readiness check. Open breakers mark the service degraded, not down."""
    checks: dict[str, str] = {}

    database = container.database
    if database is None:
        checks["database"] = "in_memory"
    elif not database.is_initialized:
        checks["database"] = "not_initialized"
    else:
        try:
            await database.ping()
            checks["database"] = "ok"
        except Exception as e:  # noqa: BLE001
            logger.warning("readiness_database_failed", error=str(e))
            checks["database"] = "unavailable"

    open_breakers = container.breaker_registry.open_breakers()
    if checks["database"] in ("not_initialized", "unavailable"):
        status = "not_ready"
    elif open_breakers:
        status = "degraded"
    else:
        status = "ready"
    return {
        "status": status,
        "checks": checks,
        "open_circuit_breakers": open_breakers,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Liveness check - verifies the service is running."""
    return {"status": "alive"}


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus exposition of the process-wide registry."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
