"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from shipnorth.config import AuthSettings, Environment, Settings
from shipnorth.domain.models.user import Portal, Role, User
from shipnorth.infrastructure.auth.jwt_handler import JWTHandler
from shipnorth.infrastructure.cache.redis_cache import InMemoryCacheService
from shipnorth.infrastructure.messaging.event_publisher import InMemoryEventPublisher
from shipnorth.infrastructure.persistence.repositories.in_memory import InMemoryUserRepository
from shipnorth.infrastructure.resilience.registry import CircuitBreakerRegistry


class FakeClock:
    """Manually advanced clock for breaker timing."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, milliseconds: int) -> None:
        self.now += timedelta(milliseconds=milliseconds)


@pytest.fixture(autouse=True)
def clear_stores() -> None:
    """Clear in-memory stores before each test."""
    InMemoryUserRepository.clear()


@pytest.fixture
def auth_settings() -> AuthSettings:
    return AuthSettings(
        secret_key="test-secret-key",
        algorithm="HS256",
        access_token_expire_minutes=30,
    )


@pytest.fixture
def settings(auth_settings: AuthSettings) -> Settings:
    return Settings(environment=Environment.TESTING, debug=True, auth=auth_settings)


@pytest.fixture
def jwt_handler(auth_settings: AuthSettings) -> JWTHandler:
    return JWTHandler(auth_settings)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry(clock=clock)


@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def event_publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def cache() -> InMemoryCacheService:
    return InMemoryCacheService()


@pytest.fixture
def customer_user() -> User:
    return User(
        id="cust-user-1",
        email="customer@example.com",
        first_name="Casey",
        last_name="Client",
        hashed_password=JWTHandler.hash_password("customerpass123"),
        roles={Role.CUSTOMER},
        customer_id="customer-42",
    )


@pytest.fixture
def driver_user() -> User:
    return User(
        id="driver-user-1",
        email="driver@example.com",
        hashed_password=JWTHandler.hash_password("driverpass123"),
        roles={Role.DRIVER},
    )


@pytest.fixture
def staff_driver_user() -> User:
    return User(
        id="staff-driver-1",
        email="staffdriver@example.com",
        hashed_password=JWTHandler.hash_password("staffdriver123"),
        roles={Role.STAFF, Role.DRIVER},
        last_used_portal=Portal.DRIVER,
    )


@pytest.fixture
def admin_user() -> User:
    return User(
        id="admin-user-1",
        email="admin@example.com",
        hashed_password=JWTHandler.hash_password("adminpassword123"),
        roles={Role.ADMIN},
    )
