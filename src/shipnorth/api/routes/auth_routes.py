"""Authentication, permission and portal routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    status,
)
import structlog

from shipnorth.api.dependencies.auth import get_current_user, get_jwt_handler
from shipnorth.api.dependencies.services import get_service_container, ServiceContainer
from shipnorth.api.schemas.auth_schemas import (
    LoginRequest,
    PermissionsResponse,
    PortalRequest,
    PortalResponse,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from shipnorth.domain.models.base import generate_id
from shipnorth.domain.models.user import Role, User
from shipnorth.domain.services.permission_service import (
    PortalAccessDeniedError,
    UserNotFoundError,
)
from shipnorth.infrastructure.auth.jwt_handler import JWTHandler
from shipnorth.infrastructure.observability.metrics import PORTAL_SWITCHES_TOTAL


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

Container = Annotated[ServiceContainer, Depends(get_service_container)]
CurrentUser = Annotated[User, Depends(get_current_user)]


async def _load_user(container: ServiceContainer, user_id: str) -> User:
    user = await container.user_repository.get_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, container: Container) -> UserResponse:
    """Register a new customer account."""
    existing = await container.user_repository.get_by_email(request.email)
    if existing:
        raise HTTPException(status_code=409, detail="Email already registered")

    user_id = generate_id()
    user = User(
        id=user_id,
        email=request.email.lower(),
        first_name=request.first_name,
        last_name=request.last_name,
        hashed_password=JWTHandler.hash_password(request.password),
        roles={Role.CUSTOMER},
        # Self-registered customers own the records stamped with their user id.
        customer_id=user_id,
    )
    await container.user_repository.save(user)
    logger.info("user_registered", user_id=user.id)
    return UserResponse.from_user(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    container: Container,
    jwt_handler: Annotated[JWTHandler, Depends(get_jwt_handler)],
) -> TokenResponse:
    """Authenticate and return JWT tokens with the user's portal context."""
    user = await container.user_repository.get_by_email(request.email)
    if not user or not JWTHandler.verify_password(request.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")

    return TokenResponse(
        access_token=jwt_handler.create_access_token(user),
        refresh_token=jwt_handler.create_refresh_token(subject=user.id),
        expires_in=container.settings.auth.access_token_expire_minutes * 60,
        user=UserResponse.from_user(user),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(user: CurrentUser, container: Container) -> UserResponse:
    """Get current user info."""
    return UserResponse.from_user(await _load_user(container, user.id))


@router.get("/permissions", response_model=PermissionsResponse)
async def get_permissions(user: CurrentUser, container: Container) -> PermissionsResponse:
    """Return the rules and portal context the client builds its ability from."""
    stored = await _load_user(container, user.id)
    snapshot = await container.permission_service.get_snapshot(stored)
    return PermissionsResponse(
        rules=snapshot.rules,
        available_portals=snapshot.available_portals,
        current_portal=snapshot.current_portal,
        has_admin_access=snapshot.has_admin_access,
    )


@router.post("/switch-portal", response_model=PortalResponse)
async def switch_portal(
    request: PortalRequest,
    user: CurrentUser,
    container: Container,
    jwt_handler: Annotated[JWTHandler, Depends(get_jwt_handler)],
) -> PortalResponse:
    """Make another portal the active one and reissue the access token."""
    try:
        updated = await container.permission_service.switch_portal(user.id, request.portal)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except PortalAccessDeniedError as e:
        PORTAL_SWITCHES_TOTAL.labels(portal=request.portal.value, result="denied").inc()
        raise HTTPException(status_code=403, detail=str(e)) from e

    PORTAL_SWITCHES_TOTAL.labels(portal=request.portal.value, result="switched").inc()
    return PortalResponse(
        portal=request.portal,
        access_token=jwt_handler.create_access_token(updated),
        user=UserResponse.from_user(updated),
    )


@router.post("/default-portal", response_model=PortalResponse)
async def set_default_portal(
    request: PortalRequest,
    user: CurrentUser,
    container: Container,
    jwt_handler: Annotated[JWTHandler, Depends(get_jwt_handler)],
) -> PortalResponse:
    """Store the portal the user lands in after login."""
    try:
        updated = await container.permission_service.set_default_portal(user.id, request.portal)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except PortalAccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e

    return PortalResponse(
        portal=request.portal,
        access_token=jwt_handler.create_access_token(updated),
        user=UserResponse.from_user(updated),
    )
