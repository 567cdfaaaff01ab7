"""Domain service for permission snapshots and portal switching."""

from __future__ import annotations

import structlog

from shipnorth.domain.events.audit_events import (
    DefaultPortalChanged,
    PortalAccessDenied,
    PortalSwitched,
)
from shipnorth.domain.models.permission import PermissionSnapshot
from shipnorth.domain.models.user import Portal, User
from shipnorth.domain.ports.repositories import UserRepository
from shipnorth.domain.ports.services import CacheService, EventPublisher
from shipnorth.domain.services.ability_factory import build_ability


logger = structlog.get_logger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 300


def permission_cache_key(user_id: str) -> str:
    return f"permissions:{user_id}"


class PermissionService:
    """Builds, caches and invalidates per-user permission snapshots."""

    def __init__(
        self,
        user_repo: UserRepository,
        cache: CacheService,
        event_publisher: EventPublisher,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
    ) -> None:
        self._user_repo = user_repo
        self._cache = cache
        self._event_publisher = event_publisher
        self._cache_ttl_seconds = cache_ttl_seconds

    async def get_snapshot(self, user: User) -> PermissionSnapshot:
        """Return the user's snapshot, from cache when still fresh."""
        key = permission_cache_key(user.id)
        cached = await self._cache.get(key)
        if cached is not None:
            logger.debug("permission_cache_hit", user_id=user.id)
            return PermissionSnapshot.model_validate(cached)

        snapshot = self.build_snapshot(user)
        await self._cache.set(key, snapshot.model_dump(mode="json"), self._cache_ttl_seconds)
        logger.debug("permission_cache_miss", user_id=user.id, rule_count=len(snapshot.rules))
        return snapshot

    @staticmethod
    def build_snapshot(user: User) -> PermissionSnapshot:
        return PermissionSnapshot(
            user_id=user.id,
            rules=build_ability(user).to_wire(),
            available_portals=user.available_portals(),
            current_portal=user.current_portal,
            has_admin_access=user.has_admin_access,
        )

    async def invalidate(self, user_id: str) -> None:
        await self._cache.delete(permission_cache_key(user_id))

    async def switch_portal(self, user_id: str, portal: Portal) -> User:
        """Make ``portal`` the user's active portal."""
        user = await self._get_accessible_user(user_id, portal)
        await self._user_repo.update_last_used_portal(user_id, portal)
        user.last_used_portal = portal
        await self.invalidate(user_id)

        event = PortalSwitched(user_id=user_id, portal=portal.value)
        await self._event_publisher.publish(event.event_type, event.to_payload())
        logger.info("portal_switched", user_id=user_id, portal=portal.value)
        return user

    async def set_default_portal(self, user_id: str, portal: Portal) -> User:
        """Store ``portal`` as the user's default landing portal."""
        user = await self._get_accessible_user(user_id, portal)
        user.default_portal = portal
        user.touch()
        await self._user_repo.update(user)
        await self.invalidate(user_id)

        event = DefaultPortalChanged(user_id=user_id, portal=portal.value)
        await self._event_publisher.publish(event.event_type, event.to_payload())
        return user

    async def _get_accessible_user(self, user_id: str, portal: Portal) -> User:
        user = await self._user_repo.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")

        if not user.can_access_portal(portal):
            event = PortalAccessDenied(
                user_id=user_id,
                portal=portal.value,
                roles=sorted(r.value for r in user.roles),
            )
            await self._event_publisher.publish(event.event_type, event.to_payload())
            logger.warning("portal_access_denied", user_id=user_id, portal=portal.value)
            raise PortalAccessDeniedError(f"You do not have access to the {portal.value} portal")
        return user


class UserNotFoundError(Exception):
    """Raised when a user does not exist."""


class PortalAccessDeniedError(Exception):
    """Raised when a user's roles do not open the requested portal."""
