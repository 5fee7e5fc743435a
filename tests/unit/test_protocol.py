from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from market_chat.domain.entities.message import Message
from market_chat.domain.value_objects.enums import DeliveryStatus
from market_chat.infrastructure.ws.protocol import (
    AuthAckFrame,
    AuthFrame,
    MessageFrame,
    PingFrame,
    SendMessageFrame,
    parse_inbound,
    parse_outbound,
)

MSG = Message(
    id=3,
    sender_id=42,
    receiver_id=7,
    content="Is it still available?",
    read=False,
    created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
)


def test_parse_auth_frame():
    frame = parse_inbound('{"type": "auth", "userId": 42}')

    assert isinstance(frame, AuthFrame)
    assert frame.user_id == 42
    assert frame.token is None


def test_parse_message_frame_with_camel_case_keys():
    frame = parse_inbound('{"type": "message", "senderId": 42, "receiverId": 7, "content": "hi"}')

    assert isinstance(frame, SendMessageFrame)
    assert (frame.sender_id, frame.receiver_id, frame.content) == (42, 7, "hi")


def test_message_frame_sender_is_optional():
    frame = parse_inbound('{"type": "message", "receiverId": 7, "content": "hi"}')

    assert frame.sender_id is None


@pytest.mark.parametrize(
    "raw",
    [
        '{"type": "message", "receiverId": 7}',
        '{"type": "message", "receiverId": -1, "content": "hi"}',
        '{"type": "message", "receiverId": 7, "content": " "}',
        '{"type": "presence"}',
        "{",
    ],
)
def test_parse_inbound_rejects_bad_frames(raw):
    with pytest.raises(ValidationError):
        parse_inbound(raw)


def test_echo_frame_carries_status_and_stored_fields():
    payload = json.loads(MessageFrame.from_message(MSG, status=DeliveryStatus.SENT).encode())

    assert payload == {
        "type": "message",
        "id": 3,
        "senderId": 42,
        "receiverId": 7,
        "content": "Is it still available?",
        "read": False,
        "createdAt": "2024-05-01T12:00:00Z",
        "status": "sent",
    }


def test_push_frame_omits_status():
    payload = json.loads(MessageFrame.from_message(MSG).encode())

    assert "status" not in payload


def test_auth_ack_encoding():
    assert json.loads(AuthAckFrame(user_id=42).encode()) == {
        "type": "auth",
        "userId": 42,
        "status": "authenticated",
    }


def test_parse_outbound_message_back_to_entity():
    frame = parse_outbound(MessageFrame.from_message(MSG).encode())

    assert isinstance(frame, MessageFrame)
    assert frame.to_message() == MSG


def test_parse_outbound_ping():
    assert isinstance(parse_outbound(PingFrame().encode()), PingFrame)
