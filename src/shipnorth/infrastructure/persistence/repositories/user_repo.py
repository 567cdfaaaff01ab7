"""User repository implementation."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shipnorth.domain.models.base import utc_now
from shipnorth.domain.models.user import Portal, Role, User
from shipnorth.domain.ports.repositories import UserRepository
from shipnorth.infrastructure.persistence.models import UserORM


SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class PostgresUserRepository(UserRepository):
    """PostgreSQL implementation of UserRepository.

    Each call runs in its own unit of work opened from ``session_factory``,
    usually :meth:`DatabaseManager.session`.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def save(self, user: User) -> User:
        async with self._session_factory() as session:
            session.add(self._to_orm(user))
            await session.flush()
        return user

    async def get_by_id(self, user_id: str) -> User | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserORM).where(UserORM.id == user_id)
            )
            orm = result.scalar_one_or_none()
            return self._to_domain(orm) if orm else None

    async def get_by_email(self, email: str) -> User | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserORM).where(func.lower(UserORM.email) == email.lower())
            )
            orm = result.scalar_one_or_none()
            return self._to_domain(orm) if orm else None

    async def update(self, user: User) -> User:
        orm_data = {
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "hashed_password": user.hashed_password,
            "roles": sorted(r.value for r in user.roles),
            "customer_id": user.customer_id,
            "last_used_portal": user.last_used_portal.value if user.last_used_portal else None,
            "default_portal": user.default_portal.value if user.default_portal else None,
            "is_active": user.is_active,
            "version": user.version,
        }
        async with self._session_factory() as session:
            await session.execute(
                update(UserORM).where(UserORM.id == user.id).values(**orm_data)
            )
        return user

    async def update_last_used_portal(self, user_id: str, portal: Portal) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                update(UserORM)
                .where(UserORM.id == user_id)
                .values(last_used_portal=portal.value)
            )
            return bool(result.rowcount)

    def _to_orm(self, user: User) -> UserORM:
        return UserORM(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            hashed_password=user.hashed_password,
            roles=sorted(r.value for r in user.roles),
            customer_id=user.customer_id,
            last_used_portal=user.last_used_portal.value if user.last_used_portal else None,
            default_portal=user.default_portal.value if user.default_portal else None,
            is_active=user.is_active,
            version=user.version,
        )

    def _to_domain(self, orm: UserORM) -> User:
        return User(
            id=orm.id,
            email=orm.email,
            first_name=orm.first_name or "",
            last_name=orm.last_name or "",
            hashed_password=orm.hashed_password or "",
            roles={Role(r) for r in (orm.roles or [])},
            customer_id=orm.customer_id,
            last_used_portal=Portal(orm.last_used_portal) if orm.last_used_portal else None,
            default_portal=Portal(orm.default_portal) if orm.default_portal else None,
            is_active=orm.is_active,
            version=orm.version or 1,
            created_at=orm.created_at or utc_now(),
            updated_at=orm.updated_at or utc_now(),
        )
