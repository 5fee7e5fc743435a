from __future__ import annotations

import logging

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from market_chat.infrastructure.ws.protocol import PingFrame

logger = logging.getLogger(__name__)


class WebSocketConnection:
    """Adapts a Starlette WebSocket to the Connection port.

    Transport-level ping/pong is run by the ASGI server. Starlette does not
    expose control frames, so ``ping`` here sends the JSON ``ping`` frame used
    for clients that opted into the JSON heartbeat.
    """

    __slots__ = ("_ws",)

    def __init__(self, ws: WebSocket) -> None:
        self._ws = ws

    @property
    def websocket(self) -> WebSocket:
        return self._ws

    async def send_text(self, data: str) -> None:
        await self._ws.send_text(data)

    async def ping(self) -> None:
        await self._ws.send_text(PingFrame().encode())

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self._ws.application_state == WebSocketState.DISCONNECTED:
            return
        await self._ws.close(code=code, reason=reason)
