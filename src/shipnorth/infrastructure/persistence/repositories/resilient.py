"""User repository decorator that routes every call through a breaker."""

from __future__ import annotations

from shipnorth.domain.models.user import Portal, User
from shipnorth.domain.ports.repositories import UserRepository
from shipnorth.infrastructure.resilience.registry import CircuitBreakerRegistry, DATABASE


class ResilientUserRepository(UserRepository):
    """Wraps another UserRepository with the ``database`` circuit breaker.

    When the breaker is open calls fail fast with ``CircuitOpenError``
    instead of waiting on a pool that cannot connect.
    """

    def __init__(
        self,
        inner: UserRepository,
        registry: CircuitBreakerRegistry,
        breaker_name: str = DATABASE,
    ) -> None:
        self._inner = inner
        self._registry = registry
        self._breaker_name = breaker_name

    async def save(self, user: User) -> User:
        return await self._registry.execute(self._breaker_name, lambda: self._inner.save(user))

    async def get_by_id(self, user_id: str) -> User | None:
        return await self._registry.execute(
            self._breaker_name, lambda: self._inner.get_by_id(user_id),
        )

    async def get_by_email(self, email: str) -> User | None:
        return await self._registry.execute(
            self._breaker_name, lambda: self._inner.get_by_email(email),
        )

    async def update(self, user: User) -> User:
        return await self._registry.execute(self._breaker_name, lambda: self._inner.update(user))

    async def update_last_used_portal(self, user_id: str, portal: Portal) -> bool:
        return await self._registry.execute(
            self._breaker_name, lambda: self._inner.update_last_used_portal(user_id, portal),
        )
