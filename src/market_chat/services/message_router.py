"""Applies the realtime protocol to frames read from a connection.

Each frame is handled as an independent unit of work. The router queries
the registry and asks it to bind identities, but never edits its maps
directly; persisted messages change only through the message service.
"""
from __future__ import annotations

import logging

from pydantic import ValidationError as FrameValidationError

from market_chat.application.exceptions import (
    AppError,
    AuthenticationError,
    ForbiddenError,
    ProtocolError,
)
from market_chat.application.ports.auth import TokenVerifier
from market_chat.application.ports.bus import MessageFanout
from market_chat.application.ports.connection import Connection
from market_chat.application.uow import UoWFactory
from market_chat.domain.entities.message import Message
from market_chat.domain.value_objects.enums import DeliveryStatus
from market_chat.infrastructure.ws.protocol import (
    AuthAckFrame,
    AuthFrame,
    MessageFrame,
    PingFrame,
    PongFrame,
    SendMessageFrame,
    parse_inbound,
)
from market_chat.infrastructure.ws.registry import ConnectionRegistry
from market_chat.services import message_service

logger = logging.getLogger(__name__)

CLOSE_AUTH_FAILED = 4001


class MessageRouter:
    def __init__(
        self,
        registry: ConnectionRegistry,
        uow_factory: UoWFactory,
        fanout: MessageFanout,
        *,
        verifier: TokenVerifier | None = None,
        enforce_sender_identity: bool = True,
    ) -> None:
        self._registry = registry
        self._uow_factory = uow_factory
        self._fanout = fanout
        self._verifier = verifier
        self._enforce_sender_identity = enforce_sender_identity

    async def handle_frame(self, connection: Connection, raw: str | bytes) -> None:
        """Parse and apply one frame. Bad frames are logged and dropped."""
        try:
            frame = parse_inbound(raw)
        except FrameValidationError as exc:
            logger.warning("Dropping malformed frame: %s", _summarize(exc))
            return

        try:
            if isinstance(frame, AuthFrame):
                await self._handle_auth(connection, frame)
            elif isinstance(frame, SendMessageFrame):
                await self._handle_message(connection, frame)
            elif isinstance(frame, PongFrame):
                self._registry.enable_json_heartbeat(connection)
            elif isinstance(frame, PingFrame):
                self._registry.enable_json_heartbeat(connection)
                await connection.send_text(PongFrame().encode())
        except AuthenticationError as exc:
            logger.warning("WS auth rejected: %s", exc.detail)
            self._registry.deregister(connection)
            await connection.close(code=CLOSE_AUTH_FAILED, reason="Authentication failed")
        except AppError as exc:
            logger.warning("Dropping %s frame: %s", frame.type, exc.detail)

    async def _handle_auth(self, connection: Connection, frame: AuthFrame) -> None:
        user_id = frame.user_id
        if self._verifier is not None:
            if not frame.token:
                raise AuthenticationError("Auth frame carries no token")
            principal = await self._verifier.verify(frame.token)
            if principal.user_id != user_id:
                raise AuthenticationError(
                    f"Token subject {principal.user_id} does not match userId {user_id}"
                )
        self._registry.authenticate(connection, user_id)
        await connection.send_text(AuthAckFrame(user_id=user_id).encode())

    def _resolve_sender(self, connection: Connection, frame: SendMessageFrame) -> int:
        bound = self._registry.user_of(connection)
        if bound is None:
            raise ProtocolError("message frame on an unauthenticated connection")
        if frame.sender_id is None:
            return bound
        if frame.sender_id != bound:
            if self._enforce_sender_identity:
                raise ForbiddenError(
                    f"senderId {frame.sender_id} differs from authenticated user {bound}"
                )
            logger.info("Trusting asserted senderId %d on connection of user %d", frame.sender_id, bound)
        return frame.sender_id

    async def _handle_message(self, connection: Connection, frame: SendMessageFrame) -> Message | None:
        sender_id = self._resolve_sender(connection, frame)
        try:
            async with self._uow_factory() as uow:
                msg = await message_service.create_message(
                    sender_id, frame.receiver_id, frame.content, uow,
                )
        except AppError:
            raise
        except Exception:
            # No push and no acknowledgement: "sent" implies a durable write.
            logger.exception("Persisting message %d -> %d failed", sender_id, frame.receiver_id)
            return None

        pushed = await self._fanout.deliver(
            msg.receiver_id, MessageFrame.from_message(msg).encode(),
        )
        await connection.send_text(
            MessageFrame.from_message(msg, status=DeliveryStatus.SENT).encode()
        )
        logger.debug("Routed message %d to %d live connection(s)", msg.id, pushed)
        return msg


def _summarize(exc: FrameValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    return f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
