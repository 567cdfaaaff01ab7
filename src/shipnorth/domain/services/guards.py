"""Declarative gating and route guard decisions."""

from __future__ import annotations

from enum import Enum
from typing import Any, TypeVar

from shipnorth.domain.models.permission import Action, Subject
from shipnorth.domain.models.user import Portal, User
from shipnorth.domain.services.ability_session import AbilitySession


T = TypeVar("T")
F = TypeVar("F")


def gate(allowed: bool, children: T, fallback: F | None = None) -> T | F | None:
    """Return ``children`` when ``allowed``, otherwise ``fallback``.

    The permission lookup stays at the call site, typically
    ``session.can(...)``, which is already false while loading.
    """
    return children if allowed else fallback


class RouteDecision(str, Enum):
    """Outcome of guarding a route."""

    ALLOW = "allow"
    LOADING = "loading"
    LOGIN_REQUIRED = "login_required"
    FORBIDDEN = "forbidden"


def evaluate_route(
    session: AbilitySession,
    user: User | None,
    portal: Portal | None = None,
    action: Action | str | None = None,
    subject: Subject | str | None = None,
    instance: Any = None,
) -> RouteDecision:
    """Decide whether a protected route may render for ``user``.

    ``instance`` checks the ability against one resource, which lets
    conditional rules such as ownership grant access.
    """
    if session.is_loading:
        return RouteDecision.LOADING
    if user is None:
        return RouteDecision.LOGIN_REQUIRED
    if portal is not None and not user.can_access_portal(portal):
        return RouteDecision.FORBIDDEN
    if action is not None and subject is not None and not session.can(action, subject, instance):
        return RouteDecision.FORBIDDEN
    return RouteDecision.ALLOW
