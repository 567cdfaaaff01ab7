"""Audit event publisher implementations."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from shipnorth.domain.ports.services import EventPublisher


logger = structlog.get_logger(__name__)

EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


class InMemoryEventPublisher(EventPublisher):
    """Keeps published events in memory and fans them out to local handlers."""

    def __init__(self) -> None:
        self._events: list[tuple[str, dict[str, Any]]] = []
        self._handlers: dict[str, list[EventHandler]] = {}

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        self._events.append((event_type, payload))
        logger.info("event_published", event_type=event_type, user_id=payload.get("user_id"))

        for handler in self._handlers.get(event_type, []):
            await handler(payload)

    async def publish_batch(self, events: list[tuple[str, dict[str, Any]]]) -> None:
        for event_type, payload in events:
            await self.publish(event_type, payload)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def events_of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [payload for kind, payload in self._events if kind == event_type]

    @property
    def published_events(self) -> list[tuple[str, dict[str, Any]]]:
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()


class KafkaEventPublisher(EventPublisher):
    """Publishes each event to ``{topic_prefix}.{event_type}``.

    ``producer`` is any object with the aiokafka producer surface
    (``send``, ``send_and_wait``, ``flush``).
    """

    def __init__(self, producer: Any, topic_prefix: str = "shipnorth") -> None:
        self._producer = producer
        self._topic_prefix = topic_prefix

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        topic = self._topic(event_type)
        await self._producer.send_and_wait(topic, value=self._encode(payload))
        logger.info("kafka_event_published", topic=topic)

    async def publish_batch(self, events: list[tuple[str, dict[str, Any]]]) -> None:
        for event_type, payload in events:
            await self._producer.send(self._topic(event_type), value=self._encode(payload))

        await self._producer.flush()
        logger.info("kafka_batch_published", event_count=len(events))

    def _topic(self, event_type: str) -> str:
        return f"{self._topic_prefix}.{event_type}"

    @staticmethod
    def _encode(payload: dict[str, Any]) -> bytes:
        return json.dumps(payload, default=str).encode("utf-8")
