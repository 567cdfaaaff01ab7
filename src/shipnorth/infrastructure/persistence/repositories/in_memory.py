"""In-memory repository implementations for development and testing."""

from __future__ import annotations

from shipnorth.domain.models.user import Portal, User
from shipnorth.domain.ports.repositories import UserRepository


# Module-level shared store enables cross-instance access in the dev API
# while keeping a single clear point for test isolation.
_user_store: dict[str, User] = {}


class InMemoryUserRepository(UserRepository):
    """In-memory user repository for testing and local use."""

    def __init__(self) -> None:
        self._store = _user_store

    async def save(self, user: User) -> User:
        self._store[user.id] = user
        return user

    async def get_by_id(self, user_id: str) -> User | None:
        return self._store.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        email = email.lower()
        for user in self._store.values():
            if user.email.lower() == email:
                return user
        return None

    async def update(self, user: User) -> User:
        self._store[user.id] = user
        return user

    async def update_last_used_portal(self, user_id: str, portal: Portal) -> bool:
        user = self._store.get(user_id)
        if user is None:
            return False
        user.last_used_portal = portal
        return True

    @classmethod
    def clear(cls) -> None:
        """Clear the shared store. Used by test fixtures for isolation."""
        _user_store.clear()
