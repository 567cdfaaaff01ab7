"""Domain models package."""

from shipnorth.domain.models.base import (
    DomainEntity,
    DomainEvent,
    generate_id,
    utc_now,
    ValueObject,
)
from shipnorth.domain.models.permission import (
    Ability,
    Action,
    AllOf,
    Condition,
    condition_matches,
    FieldEquals,
    PermissionRule,
    PermissionSnapshot,
    Subject,
)
from shipnorth.domain.models.user import (
    Portal,
    PORTAL_ROLES,
    Role,
    User,
)


__all__ = [
    "Ability",
    "Action",
    "AllOf",
    "Condition",
    "DomainEntity",
    "DomainEvent",
    "FieldEquals",
    "PORTAL_ROLES",
    "PermissionRule",
    "PermissionSnapshot",
    "Portal",
    "Role",
    "Subject",
    "User",
    "ValueObject",
    "condition_matches",
    "generate_id",
    "utc_now",
]
