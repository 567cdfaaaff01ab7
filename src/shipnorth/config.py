"""Application configuration using pydantic-settings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class DatabaseSettings(BaseSettings):
    """Database configuration."""

    enabled: bool = Field(default=False, alias="DB_ENABLED")
    host: str = Field(default="localhost", alias="DB_HOST")
    port: int = Field(default=5432, alias="DB_PORT")
    name: str = Field(default="shipnorth", alias="DB_NAME")
    user: str = Field(default="shipnorth", alias="DB_USER")
    password: str = Field(default="", alias="DB_PASSWORD")
    pool_size: int = Field(default=20, alias="DB_POOL_SIZE")
    max_overflow: int = Field(default=10, alias="DB_MAX_OVERFLOW")
    pool_timeout: int = Field(default=30, alias="DB_POOL_TIMEOUT")

    @property
    def async_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.name}"
        )

    model_config = {"env_prefix": "DB_", "extra": "ignore", "populate_by_name": True}


class RedisSettings(BaseSettings):
    """Redis configuration."""

    host: str = Field(default="localhost", alias="REDIS_HOST")
    port: int = Field(default=6379, alias="REDIS_PORT")
    password: str = Field(default="", alias="REDIS_PASSWORD")
    db: int = Field(default=0, alias="REDIS_DB")

    @property
    def url(self) -> str:
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"

    model_config = {"env_prefix": "REDIS_", "extra": "ignore", "populate_by_name": True}


class KafkaSettings(BaseSettings):
    """Kafka configuration for the audit event stream."""

    bootstrap_servers: str = Field(default="localhost:9092", alias="KAFKA_BOOTSTRAP_SERVERS")
    topic_prefix: str = Field(default="shipnorth", alias="KAFKA_TOPIC_PREFIX")
    enabled: bool = Field(default=False, alias="KAFKA_ENABLED")

    model_config = {"env_prefix": "KAFKA_", "extra": "ignore", "populate_by_name": True}


class AuthSettings(BaseSettings):
    """Authentication configuration."""

    secret_key: str = Field(default="change-me-in-production", alias="AUTH_SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="AUTH_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60 * 24, alias="AUTH_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_days: int = Field(default=30, alias="AUTH_REFRESH_TOKEN_EXPIRE_DAYS")

    model_config = {"env_prefix": "AUTH_", "extra": "ignore", "populate_by_name": True}


class PermissionSettings(BaseSettings):
    """Permission cache and permission source configuration."""

    cache_ttl_seconds: int = Field(default=300, alias="PERMISSIONS_CACHE_TTL_SECONDS")
    cache_backend: str = Field(default="memory", alias="PERMISSIONS_CACHE_BACKEND")
    permissions_url: str = Field(
        default="http://localhost:8000/api/v1/auth/permissions", alias="PERMISSIONS_URL",
    )
    request_timeout_seconds: float = Field(default=5.0, alias="PERMISSIONS_REQUEST_TIMEOUT")
    remote_lookup: bool = Field(default=False, alias="PERMISSIONS_REMOTE_LOOKUP")

    model_config = {"env_prefix": "PERMISSIONS_", "extra": "ignore", "populate_by_name": True}


class CircuitBreakerSettings(BaseSettings):
    """Defaults for breakers without a well-known configuration."""

    default_failure_threshold: int = Field(default=5, alias="CIRCUIT_BREAKER_FAILURE_THRESHOLD")
    default_reset_timeout_ms: int = Field(default=60_000, alias="CIRCUIT_BREAKER_RESET_TIMEOUT_MS")

    model_config = {"env_prefix": "CIRCUIT_BREAKER_", "extra": "ignore", "populate_by_name": True}


class IntegrationSettings(BaseSettings):
    """External carrier and payment gateway endpoints."""

    shipstation_base_url: str = Field(
        default="https://ssapi.shipstation.com", alias="INTEGRATIONS_SHIPSTATION_BASE_URL",
    )
    shipstation_api_key: str = Field(default="", alias="INTEGRATIONS_SHIPSTATION_API_KEY")
    stripe_base_url: str = Field(
        default="https://api.stripe.com", alias="INTEGRATIONS_STRIPE_BASE_URL",
    )
    stripe_api_key: str = Field(default="", alias="INTEGRATIONS_STRIPE_API_KEY")
    request_timeout_seconds: float = Field(default=10.0, alias="INTEGRATIONS_REQUEST_TIMEOUT")

    model_config = {"env_prefix": "INTEGRATIONS_", "extra": "ignore", "populate_by_name": True}


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    otlp_endpoint: str = Field(default="http://localhost:4317", alias="OTLP_ENDPOINT")
    service_name: str = Field(default="shipnorth-api", alias="SERVICE_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED")
    tracing_enabled: bool = Field(default=False, alias="TRACING_ENABLED")

    model_config = {"env_prefix": "OBS_", "extra": "ignore", "populate_by_name": True}


class Settings(BaseSettings):
    """Main application settings."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_prefix: str = Field(default="/api/v1", alias="API_PREFIX")
    host: str = Field(default="0.0.0.0", alias="HOST")  # noqa: S104
    port: int = Field(default=8000, alias="PORT")
    workers: int = Field(default=1, alias="WORKERS")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    kafka: KafkaSettings = Field(default_factory=KafkaSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    permissions: PermissionSettings = Field(default_factory=PermissionSettings)
    circuit_breakers: CircuitBreakerSettings = Field(default_factory=CircuitBreakerSettings)
    integrations: IntegrationSettings = Field(default_factory=IntegrationSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
