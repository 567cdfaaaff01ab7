"""Service dependencies for FastAPI dependency injection."""

from __future__ import annotations

from aiokafka import AIOKafkaProducer
import structlog

from shipnorth.config import Environment, get_settings, Settings
from shipnorth.domain.ports.repositories import UserRepository
from shipnorth.domain.ports.services import CacheService, EventPublisher
from shipnorth.domain.services.ability_session import AbilitySession
from shipnorth.domain.services.permission_service import PermissionService
from shipnorth.infrastructure.auth.jwt_handler import JWTHandler
from shipnorth.infrastructure.auth.permission_client import HttpPermissionSource
from shipnorth.infrastructure.cache.redis_cache import (
    create_redis_client,
    InMemoryCacheService,
    RedisCacheService,
)
from shipnorth.infrastructure.clients.carrier_client import ShipStationClient
from shipnorth.infrastructure.clients.payment_client import StripeClient
from shipnorth.infrastructure.messaging.event_publisher import (
    InMemoryEventPublisher,
    KafkaEventPublisher,
)
from shipnorth.infrastructure.persistence.database import DatabaseManager
from shipnorth.infrastructure.persistence.repositories import (
    InMemoryUserRepository,
    PostgresUserRepository,
    ResilientUserRepository,
)
from shipnorth.infrastructure.resilience.registry import CircuitBreakerRegistry


logger = structlog.get_logger(__name__)


class ServiceContainer:
    """Simple dependency injection container.

    Implements the Composition Root pattern for assembling
    dependencies and managing their lifecycle.
    """

    _instance: ServiceContainer | None = None

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._event_publisher: EventPublisher = InMemoryEventPublisher()
        self._kafka_producer: AIOKafkaProducer | None = None
        self._breaker_registry = CircuitBreakerRegistry.from_settings(
            self._settings.circuit_breakers
        )
        self._jwt_handler = JWTHandler(self._settings.auth)

        self._database: DatabaseManager | None = None
        inner: UserRepository
        if self._settings.database.enabled:
            self._database = DatabaseManager(self._settings.database)
            inner = PostgresUserRepository(self._database.session)
        else:
            inner = InMemoryUserRepository()
        self._user_repository = ResilientUserRepository(inner, self._breaker_registry)

        # Lazily built
        self._cache_service: CacheService | None = None
        self._permission_service: PermissionService | None = None
        self._permission_source: HttpPermissionSource | None = None
        self._shipstation_client: ShipStationClient | None = None
        self._stripe_client: StripeClient | None = None

    @classmethod
    def get_instance(cls) -> ServiceContainer:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    async def startup(self) -> None:
        if self._database is not None:
            await self._database.initialize(
                create_schema=self._settings.environment is not Environment.PRODUCTION,
            )
        if self._settings.kafka.enabled:
            self._kafka_producer = AIOKafkaProducer(
                bootstrap_servers=self._settings.kafka.bootstrap_servers,
            )
            await self._kafka_producer.start()
            self._event_publisher = KafkaEventPublisher(
                self._kafka_producer, topic_prefix=self._settings.kafka.topic_prefix,
            )
            self._permission_service = None
            logger.info("kafka_publisher_started", servers=self._settings.kafka.bootstrap_servers)

    async def shutdown(self) -> None:
        for client in (self._shipstation_client, self._stripe_client):
            if client is not None:
                await client.aclose()
        if self._kafka_producer is not None:
            await self._kafka_producer.stop()
            self._kafka_producer = None
        if self._database is not None:
            await self._database.close()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def event_publisher(self) -> EventPublisher:
        return self._event_publisher

    @property
    def breaker_registry(self) -> CircuitBreakerRegistry:
        return self._breaker_registry

    @property
    def user_repository(self) -> UserRepository:
        return self._user_repository

    @property
    def database(self) -> DatabaseManager | None:
        return self._database

    @property
    def jwt_handler(self) -> JWTHandler:
        return self._jwt_handler

    @property
    def cache_service(self) -> CacheService:
        if self._cache_service is None:
            if self._settings.permissions.cache_backend == "redis":
                client = create_redis_client(self._settings.redis)
                self._cache_service = RedisCacheService(client)
            else:
                self._cache_service = InMemoryCacheService()
        return self._cache_service

    @property
    def permission_service(self) -> PermissionService:
        if self._permission_service is None:
            self._permission_service = PermissionService(
                user_repo=self._user_repository,
                cache=self.cache_service,
                event_publisher=self._event_publisher,
                cache_ttl_seconds=self._settings.permissions.cache_ttl_seconds,
            )
        return self._permission_service

    @property
    def permission_source(self) -> HttpPermissionSource:
        if self._permission_source is None:
            self._permission_source = HttpPermissionSource(self._settings.permissions)
        return self._permission_source

    def ability_session(self) -> AbilitySession:
        """Build a fresh per-request ability session.

        Rules come from the permissions endpoint only when remote lookup is
        enabled, otherwise from the user's role claims.
        """
        if self._settings.permissions.remote_lookup:
            return AbilitySession(self.permission_source)
        return AbilitySession()

    @property
    def shipstation_client(self) -> ShipStationClient:
        if self._shipstation_client is None:
            self._shipstation_client = ShipStationClient(
                self._settings.integrations, self._breaker_registry,
            )
        return self._shipstation_client

    @property
    def stripe_client(self) -> StripeClient:
        if self._stripe_client is None:
            self._stripe_client = StripeClient(
                self._settings.integrations, self._breaker_registry,
            )
        return self._stripe_client


def get_service_container() -> ServiceContainer:
    return ServiceContainer.get_instance()
