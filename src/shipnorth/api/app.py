"""FastAPI application factory."""

from __future__ import annotations

import math
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shipnorth.api.dependencies.services import ServiceContainer
from shipnorth.api.middleware.correlation import CorrelationIdMiddleware
from shipnorth.api.routes import (
    admin_routes,
    auth_routes,
    health_routes,
    shipping_routes,
)
from shipnorth.config import get_settings, Settings
from shipnorth.infrastructure.clients.http_client import ExternalServiceError
from shipnorth.infrastructure.observability.tracing import setup_tracing
from shipnorth.infrastructure.resilience.circuit_breaker import CircuitOpenError


logger = structlog.get_logger(__name__)

SERVICE_UNAVAILABLE_MESSAGE = (
    "This service is temporarily unavailable, please try again shortly"
)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()
    logger.info(
        "application_starting",
        environment=settings.environment.value,
        debug=settings.debug,
    )
    setup_tracing(settings.observability, settings.environment)

    container = ServiceContainer.get_instance()
    await container.startup()

    yield

    logger.info("application_shutting_down")
    await container.shutdown()
    logger.info("application_shutdown_complete")


async def circuit_open_handler(request: Request, exc: CircuitOpenError) -> JSONResponse:
    retry_after = max(1, math.ceil(exc.retry_after_seconds))
    logger.warning(
        "request_rejected_circuit_open",
        breaker=exc.breaker_name,
        path=request.url.path,
        retry_after_seconds=retry_after,
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": SERVICE_UNAVAILABLE_MESSAGE, "retry_after_seconds": retry_after},
        headers={"Retry-After": str(retry_after)},
    )


async def external_service_handler(request: Request, exc: ExternalServiceError) -> JSONResponse:
    logger.error(
        "external_service_failed",
        service=exc.service,
        status_code=exc.status_code,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": f"Upstream service {exc.service} failed"},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Shipnorth API",
        description="Shipnorth logistics platform: permissions, portals and resilient integrations",
        version="1.0.0",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        lifespan=lifespan,
    )

    # Middleware (order matters - first added = outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.add_exception_handler(CircuitOpenError, circuit_open_handler)
    app.add_exception_handler(ExternalServiceError, external_service_handler)

    # Routes
    app.include_router(health_routes.router)
    app.include_router(auth_routes.router, prefix=settings.api_prefix)
    app.include_router(admin_routes.router, prefix=settings.api_prefix)
    app.include_router(shipping_routes.router, prefix=settings.api_prefix)

    return app
