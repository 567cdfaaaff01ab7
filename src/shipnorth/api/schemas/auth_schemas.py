"""API schemas for authentication and portal endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from shipnorth.domain.models.user import Portal, Role, User


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8)


class RegisterRequest(BaseModel):
    email: str = Field(..., pattern=r"^[\w\.\+-]+@[\w\.-]+\.\w+$")
    password: str = Field(..., min_length=8)
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)


class PortalRequest(BaseModel):
    portal: Portal


class UserResponse(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    roles: list[Role]
    customer_id: str | None
    available_portals: list[Portal]
    current_portal: Portal
    default_portal: Portal
    has_admin_access: bool
    is_active: bool

    @classmethod
    def from_user(cls, user: User) -> UserResponse:
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            roles=[r for r in Role if r in user.roles],
            customer_id=user.customer_id,
            available_portals=user.available_portals(),
            current_portal=user.current_portal,
            default_portal=user.default_portal or user.resolve_default_portal(),
            has_admin_access=user.has_admin_access,
            is_active=user.is_active,
        )


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"  # noqa: S105
    expires_in: int
    user: UserResponse


class PermissionsResponse(BaseModel):
    rules: list[dict[str, Any]]
    available_portals: list[Portal]
    current_portal: Portal
    has_admin_access: bool


class PortalResponse(BaseModel):
    portal: Portal
    access_token: str
    user: UserResponse
