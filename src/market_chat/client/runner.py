"""Drives a ChatClient over a real WebSocket using the ``websockets`` library."""
from __future__ import annotations

import logging

import websockets
from websockets.exceptions import WebSocketException

from market_chat.client.state import ChatClient

logger = logging.getLogger(__name__)


class WebsocketsTransport:
    def __init__(self, ws) -> None:
        self._ws = ws

    async def send(self, data: str) -> None:
        await self._ws.send(data)


async def run_chat_client(client: ChatClient, url: str) -> None:
    """Connect, authenticate and feed frames to ``client`` until the socket closes.

    Connection problems are reported through the client's status rather than
    raised; reconnecting means calling this again.
    """
    client.connecting()
    try:
        async with websockets.connect(url) as ws:
            await client.opened(WebsocketsTransport(ws))
            logger.info("Chat connected to %s as user %d", url, client.user_id)
            async for raw in ws:
                await client.receive(raw)
    except (OSError, WebSocketException) as exc:
        client.errored(exc)
    finally:
        client.closed()
        logger.info("Chat disconnected from %s", url)
