"""Service port interfaces (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from shipnorth.domain.models.permission import PermissionRule


class EventPublisher(ABC):
    """Port for publishing audit and domain events."""

    @abstractmethod
    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        """Publish an event."""

    @abstractmethod
    async def publish_batch(self, events: list[tuple[str, dict[str, Any]]]) -> None:
        """Publish a batch of events."""


class CacheService(ABC):
    """Port for caching."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Get a value from cache."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int = 300) -> None:
        """Set a value in cache."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a value from cache."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a key exists in cache."""


class PermissionSource(ABC):
    """Port for the upstream session/permission lookup.

    Implementations raise :class:`PermissionSourceError` on transport
    failures, timeouts and rejected sessions.
    """

    @abstractmethod
    async def fetch_rules(self, token: str) -> list[PermissionRule] | None:
        """Fetch the server-side rules for a session. ``None`` means none were sent."""


class PermissionSourceError(Exception):
    """Raised when the permission source cannot answer."""
