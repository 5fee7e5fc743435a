"""Delivery of encoded frames to a receiver's live connections."""
from __future__ import annotations

import logging
from typing import Any

from market_chat.application.ports.bus import EventPublisher
from market_chat.infrastructure.ws.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

DELIVERY_EVENT = "message.deliver"


class LocalFanout:
    """Pushes to connections held by this process's registry."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    async def deliver(self, receiver_id: int, frame: str) -> int:
        pushed = 0
        for conn in self._registry.connections_for(receiver_id):
            try:
                await conn.send_text(frame)
                pushed += 1
            except Exception:
                # The heartbeat sweep evicts the dead socket.
                logger.debug("Push to user %d failed", receiver_id, exc_info=True)
        return pushed


class RedisFanout:
    """Publishes deliveries so every instance pushes to its own connections.

    The originating instance does not push locally; it receives its own
    publication like any other subscriber, so each connection gets one push.
    """

    def __init__(self, publisher: EventPublisher, channel: str) -> None:
        self._publisher = publisher
        self._channel = channel

    async def deliver(self, receiver_id: int, frame: str) -> int:
        await self._publisher.publish(
            self._channel,
            {"event_type": DELIVERY_EVENT, "receiver_id": receiver_id, "frame": frame},
        )
        return 0


def make_delivery_handler(local: LocalFanout):
    """Callback for RedisPubSubSubscriber that pushes deliveries locally."""

    async def _on_event(event_type: str, data: dict[str, Any]) -> None:
        if event_type != DELIVERY_EVENT:
            logger.debug("Ignoring pubsub event %s", event_type)
            return
        try:
            receiver_id = int(data["receiver_id"])
            frame = str(data["frame"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Malformed delivery event: %r", data)
            return
        await local.deliver(receiver_id, frame)

    return _on_event
