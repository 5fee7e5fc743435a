from __future__ import annotations

import json

import pytest

from market_chat.infrastructure.ws.fanout import LocalFanout
from market_chat.services import message_service
from market_chat.services.message_router import MessageRouter
from tests.conftest import BUYER_ID, OTHER_ID, SELLER_ID, auth_frame, message_frame


async def _history(store, a, b):
    async with store.uow() as uow:
        return await message_service.get_conversation(a, b, uow)


@pytest.mark.asyncio
async def test_auth_frame_binds_identity_and_acknowledges(router, registry, connect):
    conn = connect()

    await router.handle_frame(conn, auth_frame(BUYER_ID))

    assert registry.user_of(conn) == BUYER_ID
    assert conn.frames() == [{"type": "auth", "userId": BUYER_ID, "status": "authenticated"}]


@pytest.mark.asyncio
async def test_message_to_offline_receiver_is_persisted_and_acknowledged(router, store, connect):
    sender = connect(BUYER_ID)

    await router.handle_frame(sender, message_frame(BUYER_ID, SELLER_ID, "hi"))

    history = await _history(store, BUYER_ID, SELLER_ID)
    assert [m.content for m in history] == ["hi"]
    echoes = sender.frames("message")
    assert len(echoes) == 1
    assert echoes[0]["status"] == "sent"
    assert echoes[0]["id"] == history[0].id


@pytest.mark.asyncio
async def test_one_push_per_receiver_connection_and_one_echo(router, connect):
    sender = connect(BUYER_ID)
    phone = connect(SELLER_ID)
    laptop = connect(SELLER_ID)
    bystander = connect(OTHER_ID)

    await router.handle_frame(sender, message_frame(BUYER_ID, SELLER_ID, "hello"))

    for device in (phone, laptop):
        pushes = device.frames("message")
        assert len(pushes) == 1
        assert pushes[0]["content"] == "hello"
        assert "status" not in pushes[0]
        assert pushes[0]["id"] and pushes[0]["createdAt"]
    assert [f["status"] for f in sender.frames("message")] == ["sent"]
    assert bystander.sent == []


@pytest.mark.asyncio
async def test_echo_only_reaches_originating_device(router, connect):
    sender = connect(BUYER_ID)
    sender_tablet = connect(BUYER_ID)

    await router.handle_frame(sender, message_frame(BUYER_ID, SELLER_ID, "hi"))

    assert len(sender.frames("message")) == 1
    assert sender_tablet.sent == []


@pytest.mark.asyncio
async def test_sender_id_defaults_to_authenticated_user(router, store, connect):
    sender = connect(BUYER_ID)

    await router.handle_frame(sender, message_frame(None, SELLER_ID, "no sender field"))

    history = await _history(store, BUYER_ID, SELLER_ID)
    assert history[0].sender_id == BUYER_ID


@pytest.mark.asyncio
async def test_spoofed_sender_rejected_when_enforced(router, store, connect):
    attacker = connect(OTHER_ID)
    receiver = connect(SELLER_ID)

    await router.handle_frame(attacker, message_frame(BUYER_ID, SELLER_ID, "spoof"))

    assert await _history(store, BUYER_ID, SELLER_ID) == []
    assert attacker.sent == []
    assert receiver.sent == []
    assert attacker.closed_with is None


@pytest.mark.asyncio
async def test_asserted_sender_trusted_when_not_enforced(registry, store, connect):
    router = MessageRouter(
        registry, store.uow, LocalFanout(registry), enforce_sender_identity=False,
    )
    conn = connect(OTHER_ID)

    await router.handle_frame(conn, message_frame(BUYER_ID, SELLER_ID, "legacy"))

    history = await _history(store, BUYER_ID, SELLER_ID)
    assert [m.sender_id for m in history] == [BUYER_ID]


@pytest.mark.asyncio
async def test_unauthenticated_connection_cannot_send(router, store, connect):
    conn = connect()

    await router.handle_frame(conn, message_frame(BUYER_ID, SELLER_ID, "hi"))

    assert await _history(store, BUYER_ID, SELLER_ID) == []
    assert conn.sent == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        b"\xff\xfe",
        json.dumps({"type": "typing", "userId": 1}),
        json.dumps({"userId": 1}),
        json.dumps({"type": "message", "receiverId": SELLER_ID, "content": ""}),
        json.dumps({"type": "message", "receiverId": SELLER_ID, "content": "   "}),
        json.dumps({"type": "message", "receiverId": "seller", "content": "hi"}),
        json.dumps({"type": "auth", "userId": 0}),
        json.dumps(["auth", 1]),
    ],
)
async def test_garbage_is_dropped_without_reply_or_disconnect(router, registry, store, connect, raw):
    conn = connect(BUYER_ID)

    await router.handle_frame(conn, raw)

    assert conn.sent == []
    assert conn.closed_with is None
    assert conn in registry
    assert len(store.log) == 0


@pytest.mark.asyncio
async def test_store_failure_means_no_push_and_no_ack(registry, failing_uow_factory, connect):
    router = MessageRouter(registry, failing_uow_factory, LocalFanout(registry))
    sender = connect(BUYER_ID)
    receiver = connect(SELLER_ID)

    await router.handle_frame(sender, message_frame(BUYER_ID, SELLER_ID, "lost"))

    assert sender.sent == []
    assert receiver.sent == []
    assert sender in registry


@pytest.mark.asyncio
async def test_dead_receiver_socket_does_not_block_others(router, connect):
    sender = connect(BUYER_ID)
    dead = connect(SELLER_ID)
    dead.broken = True
    alive = connect(SELLER_ID)

    await router.handle_frame(sender, message_frame(BUYER_ID, SELLER_ID, "hi"))

    assert len(alive.frames("message")) == 1
    assert sender.frames("message")[0]["status"] == "sent"


@pytest.mark.asyncio
async def test_pong_opts_into_json_heartbeat_and_keeps_connection(router, registry, connect):
    conn = connect(BUYER_ID)

    await router.handle_frame(conn, json.dumps({"type": "pong"}))
    await registry.sweep()
    assert registry.entry_for(conn).is_alive is False

    await router.handle_frame(conn, json.dumps({"type": "pong"}))
    await registry.sweep()

    assert conn in registry
    assert conn.pings == 2


@pytest.mark.asyncio
async def test_client_ping_gets_pong(router, registry, connect):
    conn = connect(BUYER_ID)

    await router.handle_frame(conn, json.dumps({"type": "ping"}))

    assert conn.frames() == [{"type": "pong"}]
    assert registry.entry_for(conn).json_heartbeat is True


@pytest.mark.asyncio
async def test_frames_after_eviction_are_dropped(router, registry, store, connect):
    conn = connect(BUYER_ID)
    registry.deregister(conn)

    await router.handle_frame(conn, auth_frame(BUYER_ID))
    await router.handle_frame(conn, message_frame(BUYER_ID, SELLER_ID, "late"))

    assert conn.sent == []
    assert conn not in registry
    assert registry.connections_for(BUYER_ID) == ()
    assert len(store.log) == 0


@pytest.mark.asyncio
async def test_scenario_offline_receiver_reads_later(router, registry, store, connect):
    buyer = connect(BUYER_ID)
    await router.handle_frame(buyer, message_frame(BUYER_ID, SELLER_ID, "hi"))
    assert [f["status"] for f in buyer.frames("message")] == ["sent"]

    seller = connect()
    await router.handle_frame(seller, auth_frame(SELLER_ID))
    async with store.uow() as uow:
        fetched = await message_service.open_conversation(SELLER_ID, BUYER_ID, uow)
    after = await _history(store, BUYER_ID, SELLER_ID)

    assert [m.content for m in fetched] == ["hi"]
    assert seller.frames("message") == []
    assert after[0].read is True
