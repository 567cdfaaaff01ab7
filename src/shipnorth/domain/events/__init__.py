"""Domain events package."""

from shipnorth.domain.events.audit_events import (
    AccessDenied,
    DefaultPortalChanged,
    PortalAccessDenied,
    PortalSwitched,
)


__all__ = [
    "AccessDenied",
    "DefaultPortalChanged",
    "PortalAccessDenied",
    "PortalSwitched",
]
