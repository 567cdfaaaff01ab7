"""Cache implementations for permission snapshots."""

from __future__ import annotations

import json
import time
from typing import Any

import redis.asyncio
import structlog

from shipnorth.config import RedisSettings
from shipnorth.domain.ports.services import CacheService


logger = structlog.get_logger(__name__)


class RedisCacheService(CacheService):
    """Redis implementation of CacheService."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    async def get(self, key: str) -> Any | None:
        value = await self._client.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return value.decode("utf-8") if isinstance(value, bytes) else value

    async def set(self, key: str, value: Any, ttl_seconds: int = 300) -> None:
        serialized = json.dumps(value) if not isinstance(value, str) else value
        await self._client.setex(key, ttl_seconds, serialized)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)
        logger.debug("cache_key_deleted", key=key)

    async def exists(self, key: str) -> bool:
        return bool(await self._client.exists(key))


class InMemoryCacheService(CacheService):
    """Process-local cache with per-key expiry, for development and tests."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[float, Any]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int = 300) -> None:
        self._entries[key] = (time.monotonic() + ttl_seconds, value)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    def clear(self) -> None:
        self._entries.clear()


def create_redis_client(settings: RedisSettings) -> redis.Redis:
    """Factory function to create a Redis client."""
    return redis.Redis.from_url(
        settings.url,
        decode_responses=False,
        socket_timeout=5.0,
        socket_connect_timeout=5.0,
        retry_on_timeout=True,
    )
