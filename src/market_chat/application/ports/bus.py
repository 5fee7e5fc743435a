from __future__ import annotations

from typing import Any, Protocol


class EventPublisher(Protocol):
    async def publish(self, channel: str, payload: dict[str, Any]) -> None: ...


class MessageFanout(Protocol):
    """Delivers an encoded frame to every live connection of a user."""

    async def deliver(self, receiver_id: int, frame: str) -> int:
        """Returns the number of local connections the frame was pushed to."""
        ...
