"""Repository port interfaces (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from shipnorth.domain.models.user import Portal, User


class UserRepository(ABC):
    """Port for user persistence."""

    @abstractmethod
    async def save(self, user: User) -> User:
        """Persist a user."""

    @abstractmethod
    async def get_by_id(self, user_id: str) -> User | None:
        """Retrieve a user by ID."""

    @abstractmethod
    async def get_by_email(self, email: str) -> User | None:
        """Retrieve a user by email address."""

    @abstractmethod
    async def update(self, user: User) -> User:
        """Update a user."""

    @abstractmethod
    async def update_last_used_portal(self, user_id: str, portal: Portal) -> bool:
        """Record the portal a user last worked in. Returns False if no such user."""
