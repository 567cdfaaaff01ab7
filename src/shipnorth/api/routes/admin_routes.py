"""Operator routes for inspecting and resetting circuit breakers."""

from __future__ import annotations

from typing import Annotated

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    status,
)

from shipnorth.api.dependencies.auth import require_ability
from shipnorth.api.dependencies.services import get_service_container, ServiceContainer
from shipnorth.api.schemas.resilience_schemas import (
    CircuitBreakerListResponse,
    CircuitBreakerResponse,
)
from shipnorth.domain.models.permission import Action, Subject
from shipnorth.domain.models.user import User


router = APIRouter(prefix="/admin/circuit-breakers", tags=["admin"])

ManageSettings = Annotated[User, Depends(require_ability(Action.MANAGE, Subject.SETTINGS))]
Container = Annotated[ServiceContainer, Depends(get_service_container)]


@router.get("", response_model=CircuitBreakerListResponse)
async def list_circuit_breakers(
    _user: ManageSettings, container: Container,
) -> CircuitBreakerListResponse:
    registry = container.breaker_registry
    return CircuitBreakerListResponse(
        breakers=[CircuitBreakerResponse.from_status(s) for s in registry.statuses()],
        open=registry.open_breakers(),
    )


@router.post("/{name}/reset", response_model=CircuitBreakerResponse)
async def reset_circuit_breaker(
    name: str, _user: ManageSettings, container: Container,
) -> CircuitBreakerResponse:
    registry = container.breaker_registry
    if not registry.reset_breaker(name):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Circuit breaker {name} not found",
        )
    return CircuitBreakerResponse.from_status(registry.get(name).get_status())
