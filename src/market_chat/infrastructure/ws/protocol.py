"""WebSocket frame models.

Frames are flat JSON objects tagged by ``type`` with camelCase keys, e.g.
``{"type": "message", "senderId": 1, "receiverId": 2, "content": "hi"}``.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

from market_chat.domain.entities.message import Message
from market_chat.domain.value_objects.enums import DeliveryStatus


class Frame(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def encode(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


# Client → Server


class AuthFrame(Frame):
    type: Literal["auth"] = "auth"
    user_id: PositiveInt
    token: str | None = None


class SendMessageFrame(Frame):
    type: Literal["message"] = "message"
    sender_id: PositiveInt | None = None
    receiver_id: PositiveInt
    content: str = Field(min_length=1)

    @field_validator("content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be blank")
        return value


class PingFrame(Frame):
    type: Literal["ping"] = "ping"


class PongFrame(Frame):
    type: Literal["pong"] = "pong"


InboundFrame = Annotated[
    Union[AuthFrame, SendMessageFrame, PingFrame, PongFrame],
    Field(discriminator="type"),
]

# Server → Client


class AuthAckFrame(Frame):
    type: Literal["auth"] = "auth"
    user_id: int
    status: Literal["authenticated"] = "authenticated"


class MessageFrame(Frame):
    type: Literal["message"] = "message"
    id: int
    sender_id: int
    receiver_id: int
    content: str
    read: bool = False
    created_at: datetime
    status: DeliveryStatus | None = None

    @classmethod
    def from_message(cls, msg: Message, status: DeliveryStatus | None = None) -> MessageFrame:
        return cls(
            id=msg.id,
            sender_id=msg.sender_id,
            receiver_id=msg.receiver_id,
            content=msg.content,
            read=msg.read,
            created_at=msg.created_at,
            status=status,
        )

    def to_message(self) -> Message:
        return Message(
            id=self.id,
            sender_id=self.sender_id,
            receiver_id=self.receiver_id,
            content=self.content,
            read=self.read,
            created_at=self.created_at,
        )


OutboundFrame = Annotated[
    Union[AuthAckFrame, MessageFrame, PingFrame, PongFrame],
    Field(discriminator="type"),
]

_inbound = TypeAdapter(InboundFrame)
_outbound = TypeAdapter(OutboundFrame)


def parse_inbound(raw: str | bytes) -> AuthFrame | SendMessageFrame | PingFrame | PongFrame:
    """Decode a client frame. Raises pydantic.ValidationError on bad input."""
    return _inbound.validate_json(raw)


def parse_outbound(raw: str | bytes) -> AuthAckFrame | MessageFrame | PingFrame | PongFrame:
    """Decode a server frame (client side). Raises pydantic.ValidationError."""
    return _outbound.validate_json(raw)
