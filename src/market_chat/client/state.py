"""Client-side chat state: connection lifecycle and per-counterpart logs.

The client never reconnects on its own; a fresh ``connecting()`` /
``opened()`` cycle is driven by whoever owns the client (see
``market_chat.client.runner``).
"""
from __future__ import annotations

import bisect
import logging
from collections.abc import Iterable
from datetime import tzinfo
from typing import Protocol

from pydantic import ValidationError as FrameValidationError

from market_chat.application.exceptions import AppError, ProtocolError, ValidationError
from market_chat.client.grouping import group_by_date
from market_chat.domain.value_objects.enums import ConnectionStatus
from market_chat.infrastructure.ws.protocol import (
    AuthFrame,
    MessageFrame,
    PingFrame,
    PongFrame,
    SendMessageFrame,
    parse_outbound,
)

logger = logging.getLogger(__name__)


class NotConnectedError(AppError):
    pass


class ClientTransport(Protocol):
    async def send(self, data: str) -> None: ...


def _order_key(frame: MessageFrame):
    return (frame.created_at, frame.id)


class ChatClient:
    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        self.active_user_id: int | None = None
        self._status = ConnectionStatus.DISCONNECTED
        self._transport: ClientTransport | None = None
        self._logs: dict[int, list[MessageFrame]] = {}

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def can_send(self) -> bool:
        return self._status is ConnectionStatus.CONNECTED

    @property
    def counterparts(self) -> list[int]:
        return list(self._logs)

    # lifecycle

    def connecting(self) -> None:
        if self._status is not ConnectionStatus.DISCONNECTED:
            raise ProtocolError(f"Cannot start connecting while {self._status}")
        self._status = ConnectionStatus.CONNECTING

    async def opened(self, transport: ClientTransport) -> None:
        """Transport is open: become connected and authenticate right away."""
        if self._status is not ConnectionStatus.CONNECTING:
            raise ProtocolError(f"Unexpected open while {self._status}")
        self._transport = transport
        self._status = ConnectionStatus.CONNECTED
        await transport.send(AuthFrame(user_id=self.user_id).encode())

    def closed(self) -> None:
        self._status = ConnectionStatus.DISCONNECTED
        self._transport = None

    def errored(self, exc: BaseException | None = None) -> None:
        logger.warning("Chat connection error: %s", exc)
        self.closed()

    # outbound

    async def send_message(self, receiver_id: int, content: str) -> None:
        """Fire-and-forget send; the echoed frame lands in the log later."""
        if not self.can_send or self._transport is None:
            raise NotConnectedError("You are not connected to the chat server")
        if receiver_id <= 0:
            raise ValidationError("Receiver id must be a positive integer")
        if not content or not content.strip():
            raise ValidationError("Message content must not be empty")
        frame = SendMessageFrame(sender_id=self.user_id, receiver_id=receiver_id, content=content)
        await self._transport.send(frame.encode())

    # inbound

    async def receive(self, raw: str | bytes) -> MessageFrame | None:
        """Apply one server frame. Returns the message frame if one was stored."""
        try:
            frame = parse_outbound(raw)
        except FrameValidationError:
            logger.error("Failed to parse chat frame", exc_info=True)
            return None

        if isinstance(frame, MessageFrame):
            self._append(frame)
            return frame
        if isinstance(frame, PingFrame) and self._transport is not None:
            await self._transport.send(PongFrame().encode())
        return None

    def counterpart_of(self, frame: MessageFrame) -> int:
        return frame.receiver_id if frame.sender_id == self.user_id else frame.sender_id

    def _append(self, frame: MessageFrame) -> None:
        log = self._logs.setdefault(self.counterpart_of(frame), [])
        for i, existing in enumerate(log):
            if existing.id == frame.id:
                status = frame.status or existing.status
                log[i] = frame.model_copy(update={"status": status})
                return
        bisect.insort(log, frame, key=_order_key)

    # history

    def load_conversation(self, counterpart_id: int, messages: Iterable[MessageFrame]) -> None:
        """Replace a counterpart's log with fetched history, keeping live extras."""
        fetched = {m.id: m for m in messages}
        extras = [m for m in self._logs.get(counterpart_id, []) if m.id not in fetched]
        self._logs[counterpart_id] = sorted([*fetched.values(), *extras], key=_order_key)

    def conversation(self, counterpart_id: int) -> list[MessageFrame]:
        return list(self._logs.get(counterpart_id, []))

    def set_active_user(self, user_id: int | None) -> None:
        self.active_user_id = user_id

    @property
    def active_conversation(self) -> list[MessageFrame]:
        if self.active_user_id is None:
            return []
        return self.conversation(self.active_user_id)

    def grouped_conversation(self, counterpart_id: int, tz: tzinfo):
        return group_by_date(self.conversation(counterpart_id), tz)
