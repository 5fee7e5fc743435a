"""Redis Pub/Sub: publisher and a self-healing subscriber task."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError

from market_chat.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)


class RedisPubSubPublisher:
    """Implements application.ports.bus.EventPublisher."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def publish(self, channel: str, payload: dict[str, Any]) -> None:
        raw = serialize_event(payload.get("event_type", "unknown"), payload)
        receivers = await self._redis.publish(channel, raw)
        if not receivers:
            logger.warning("No subscribers on %s; delivery dropped", channel)


OnEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisPubSubSubscriber:
    """Feeds events from one channel to a callback until stopped.

    A lost Redis connection is logged and the subscription re-established
    after ``retry_delay`` seconds; events published meanwhile are lost.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEventCallback,
        *,
        retry_delay: float = 1.0,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._retry_delay = retry_delay
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Redis Pub/Sub subscriber stopped")

    async def dispatch(self, raw: str | bytes) -> None:
        try:
            event_type, data = deserialize_event(raw)
        except (ValueError, KeyError, TypeError):
            logger.warning("Dropping undecodable pubsub message")
            return
        try:
            await self._callback(event_type, data)
        except Exception:
            logger.exception("Error processing pubsub event %s", event_type)

    async def _run(self) -> None:
        while True:
            try:
                await self._consume()
            except RedisConnectionError:
                logger.warning(
                    "Pub/Sub connection to %s lost, resubscribing in %.1fs",
                    self._channel, self._retry_delay,
                )
                await asyncio.sleep(self._retry_delay)

    async def _consume(self) -> None:
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(self._channel)
            async for message in pubsub.listen():
                if message["type"] == "message":
                    await self.dispatch(message["data"])
        finally:
            await pubsub.aclose()
