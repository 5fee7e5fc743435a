from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketState

from market_chat.infrastructure.ws.connection import WebSocketConnection
from market_chat.infrastructure.ws.registry import ConnectionRegistry
from market_chat.services.message_router import MessageRouter

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


@router.websocket("/ws")
async def ws_chat(websocket: WebSocket) -> None:
    """One connection per client device; the first frame should be ``auth``."""
    registry = websocket.app.state.registry
    message_router = websocket.app.state.message_router

    await websocket.accept()
    conn = WebSocketConnection(websocket)
    registry.register(conn)
    try:
        await _read_loop(websocket, conn, registry, message_router)
    except Exception:
        logger.exception("WS error for user=%s", registry.user_of(conn))
    finally:
        registry.deregister(conn)


async def _read_loop(
    websocket: WebSocket,
    conn: WebSocketConnection,
    registry: ConnectionRegistry,
    message_router: MessageRouter,
) -> None:
    while websocket.application_state == WebSocketState.CONNECTED:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
        # Any inbound traffic, even a frame that gets dropped, proves the peer is alive.
        registry.mark_alive(conn)
        raw = message.get("text")
        if raw is None:
            raw = message.get("bytes") or b""
        await message_router.handle_frame(conn, raw)
