"""NotificationPort and its implementations.

Services collect events while a transition runs and hand them to the port
only after the transaction commits; a rolled-back transition publishes
nothing.
"""

import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Protocol

import redis.asyncio as aioredis

from src.em_common.redis_client import get_redis
from src.em_notification.events import OrderEvent

logger = logging.getLogger(__name__)


class NotificationPort(Protocol):
    async def publish(self, event: OrderEvent) -> None: ...


class RedisNotificationPublisher:
    """Publishes ``{"event": name, "data": payload}`` JSON on the order channel."""

    def __init__(
        self, redis_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis
    ) -> None:
        self._redis_factory = redis_factory

    async def publish(self, event: OrderEvent) -> None:
        client = await self._redis_factory()
        message = json.dumps({"event": event.name, "data": event.payload()})
        await client.publish(event.channel, message)


class NullNotificationPublisher:
    async def publish(self, event: OrderEvent) -> None:
        logger.debug("dropping %s on %s", event.name, event.channel)


async def publish_all(port: NotificationPort, events: Iterable[OrderEvent]) -> None:
    """Fan out committed events; a transport failure never undoes the transition."""
    for event in events:
        try:
            await port.publish(event)
        except Exception:
            logger.exception("Failed to publish %s on %s", event.name, event.channel)
