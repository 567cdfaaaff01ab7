"""User, role and portal domain models."""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from shipnorth.domain.models.base import DomainEntity


class Role(str, Enum):
    """User roles. A user may hold several at once."""

    CUSTOMER = "customer"
    DRIVER = "driver"
    STAFF = "staff"
    ADMIN = "admin"


class Portal(str, Enum):
    """Role-specific application surfaces."""

    CUSTOMER = "customer"
    DRIVER = "driver"
    STAFF = "staff"


# Admin is an overlay on the staff portal.
PORTAL_ROLES: dict[Portal, frozenset[Role]] = {
    Portal.CUSTOMER: frozenset({Role.CUSTOMER}),
    Portal.DRIVER: frozenset({Role.DRIVER}),
    Portal.STAFF: frozenset({Role.STAFF, Role.ADMIN}),
}


class User(DomainEntity):
    """Shipnorth user entity."""

    email: str
    first_name: str = ""
    last_name: str = ""
    hashed_password: str = ""
    roles: set[Role] = Field(default_factory=lambda: {Role.CUSTOMER})
    customer_id: str | None = None
    last_used_portal: Portal | None = None
    default_portal: Portal | None = None
    is_active: bool = True

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles

    @property
    def has_admin_access(self) -> bool:
        return self.is_active and self.is_admin

    def can_access_portal(self, portal: Portal) -> bool:
        if not self.is_active:
            return False
        return bool(self.roles & PORTAL_ROLES.get(portal, frozenset()))

    def available_portals(self) -> list[Portal]:
        """Portals the user may enter, in customer, driver, staff order."""
        return [p for p in Portal if self.can_access_portal(p)]

    def resolve_default_portal(self) -> Portal:
        if Role.ADMIN in self.roles or Role.STAFF in self.roles:
            return Portal.STAFF
        if Role.DRIVER in self.roles:
            return Portal.DRIVER
        return Portal.CUSTOMER

    @property
    def current_portal(self) -> Portal:
        """Last used portal, falling back to the stored then resolved default."""
        if self.last_used_portal and self.can_access_portal(self.last_used_portal):
            return self.last_used_portal
        if self.default_portal and self.can_access_portal(self.default_portal):
            return self.default_portal
        return self.resolve_default_portal()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
