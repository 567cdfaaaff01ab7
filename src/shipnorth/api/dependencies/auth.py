"""Authentication and authorization dependencies for FastAPI."""

from __future__ import annotations

from collections.abc import Callable, Coroutine
from typing import Annotated, Any

import structlog
from fastapi import (
    Depends,
    HTTPException,
    Request,
    Security,
    status,
)
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shipnorth.api.dependencies.services import get_service_container, ServiceContainer
from shipnorth.api.middleware.correlation import get_correlation_id
from shipnorth.domain.events.audit_events import AccessDenied, PortalAccessDenied
from shipnorth.domain.models.permission import Ability, Action, Subject
from shipnorth.domain.models.user import Portal, User
from shipnorth.domain.services.ability_session import AbilitySession
from shipnorth.domain.services.guards import evaluate_route, RouteDecision
from shipnorth.infrastructure.auth.jwt_handler import InvalidTokenError, JWTHandler
from shipnorth.infrastructure.observability.metrics import PERMISSION_CHECKS_TOTAL


logger = structlog.get_logger(__name__)

security = HTTPBearer(auto_error=False)

ACCESS_DENIED_MESSAGE = "You do not have permission to perform this action"


def get_jwt_handler(
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> JWTHandler:
    return container.jwt_handler


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(security)],
    jwt_handler: Annotated[JWTHandler, Depends(get_jwt_handler)],
) -> User:
    """Extract and validate the current user from the JWT bearer token."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt_handler.decode_token(credentials.credentials)
        if payload.get("type") != "access":
            raise InvalidTokenError("Invalid token type")
        return jwt_handler.user_from_claims(payload)
    except InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_ability_session(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(security)],
    user: Annotated[User, Depends(get_current_user)],
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> AbilitySession:
    """Resolve the request's ability session for the authenticated user."""
    session = container.ability_session()
    await session.refresh(user, credentials.credentials if credentials else None)
    return session


def get_ability(session: Annotated[AbilitySession, Depends(get_ability_session)]) -> Ability:
    return session.ability


def require_ability(
    action: Action,
    subject: Subject,
    get_subject: Callable[[Request], Any] | None = None,
) -> Callable[..., Coroutine[Any, Any, User]]:
    """Dependency factory that lets the request through only if the user ``can``.

    When ``get_subject`` is given, the resource it resolves from the request
    is checked as well, so conditional rules apply to that instance.
    """

    async def check_ability(
        request: Request,
        user: Annotated[User, Depends(get_current_user)],
        session: Annotated[AbilitySession, Depends(get_ability_session)],
        container: Annotated[ServiceContainer, Depends(get_service_container)],
    ) -> User:
        instance = get_subject(request) if get_subject is not None else None
        decision = evaluate_route(session, user, action=action, subject=subject, instance=instance)
        if decision is RouteDecision.ALLOW:
            PERMISSION_CHECKS_TOTAL.labels(
                action=action.value, subject=subject.value, result="allowed",
            ).inc()
            return user

        PERMISSION_CHECKS_TOTAL.labels(
            action=action.value, subject=subject.value, result="denied",
        ).inc()
        event = AccessDenied(
            user_id=user.id,
            action=action.value,
            subject=subject.value,
            endpoint=request.url.path,
            method=request.method,
            correlation_id=get_correlation_id(),
        )
        await container.event_publisher.publish(event.event_type, event.to_payload())
        logger.warning(
            "access_denied",
            user_id=user.id,
            action=action.value,
            subject=subject.value,
            endpoint=request.url.path,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ACCESS_DENIED_MESSAGE)

    return check_ability


def require_portal(portal: Portal) -> Callable[..., Coroutine[Any, Any, User]]:
    """Dependency factory that requires a role opening ``portal``."""

    async def check_portal(
        user: Annotated[User, Depends(get_current_user)],
        session: Annotated[AbilitySession, Depends(get_ability_session)],
        container: Annotated[ServiceContainer, Depends(get_service_container)],
    ) -> User:
        if evaluate_route(session, user, portal=portal) is RouteDecision.ALLOW:
            return user

        event = PortalAccessDenied(
            user_id=user.id,
            portal=portal.value,
            roles=sorted(r.value for r in user.roles),
            correlation_id=get_correlation_id(),
        )
        await container.event_publisher.publish(event.event_type, event.to_payload())
        logger.warning("portal_access_denied", user_id=user.id, portal=portal.value)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You do not have access to the {portal.value} portal",
        )

    return check_portal
