"""Audit domain events."""

from __future__ import annotations

from shipnorth.domain.models.base import DomainEvent


class AccessDenied(DomainEvent):
    """Emitted when an ability check rejects a request."""

    user_id: str
    action: str
    subject: str
    endpoint: str = ""
    method: str = ""
    event_type: str = "audit.access_denied"


class PortalAccessDenied(DomainEvent):
    """Emitted when a user asks for a portal their roles do not open."""

    user_id: str
    portal: str
    roles: list[str]
    event_type: str = "audit.portal_denied"


class PortalSwitched(DomainEvent):
    """Emitted when a user changes their active portal."""

    user_id: str
    portal: str
    event_type: str = "portal.switched"


class DefaultPortalChanged(DomainEvent):
    """Emitted when a user changes their default portal."""

    user_id: str
    portal: str
    event_type: str = "portal.default_changed"
