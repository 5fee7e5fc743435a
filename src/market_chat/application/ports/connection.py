from __future__ import annotations

from typing import Protocol


class Connection(Protocol):
    """A live bidirectional transport to one client device."""

    async def send_text(self, data: str) -> None: ...

    async def ping(self) -> None:
        """Emit a liveness probe; the peer answers with a pong."""
        ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...
