from __future__ import annotations

import pytest

from market_chat.application.exceptions import ProtocolError
from market_chat.domain.value_objects.enums import Liveness
from tests.conftest import BUYER_ID, SELLER_ID, FakeConnection


def test_register_starts_unauthenticated_and_alive(registry):
    conn = FakeConnection(registry=registry)
    entry = registry.register(conn)

    assert conn in registry
    assert entry.user_id is None
    assert entry.is_alive is True
    assert registry.connections_for(BUYER_ID) == ()


def test_authenticate_supports_multiple_devices(registry, connect):
    phone = connect(BUYER_ID)
    laptop = connect(BUYER_ID)

    assert set(registry.connections_for(BUYER_ID)) == {phone, laptop}
    assert registry.user_of(phone) == BUYER_ID


def test_reauthenticate_rebinds_same_socket(registry, connect):
    conn = connect(BUYER_ID)

    registry.authenticate(conn, SELLER_ID)

    assert registry.connections_for(BUYER_ID) == ()
    assert registry.connections_for(SELLER_ID) == (conn,)


def test_deregister_is_idempotent(registry, connect):
    conn = connect(BUYER_ID)

    registry.deregister(conn)
    registry.deregister(conn)

    assert conn not in registry
    assert registry.connections_for(BUYER_ID) == ()
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_sweep_pings_opted_in_connections(registry, connect):
    conn = connect(BUYER_ID)
    registry.enable_json_heartbeat(conn)

    evicted = await registry.sweep()

    assert evicted == 0
    assert conn.pings == 1
    assert registry.entry_for(conn).liveness is Liveness.AWAITING_PONG


@pytest.mark.asyncio
async def test_connection_answering_pings_survives(registry, connect):
    conn = connect(BUYER_ID)
    registry.enable_json_heartbeat(conn)

    for _ in range(3):
        await registry.sweep()
        registry.mark_alive(conn)

    assert conn in registry
    assert conn.pings == 3
    assert conn.closed_with is None


@pytest.mark.asyncio
async def test_silent_connection_evicted_on_second_sweep(registry, connect):
    conn = connect(BUYER_ID)
    registry.enable_json_heartbeat(conn)

    await registry.sweep()
    assert conn in registry

    evicted = await registry.sweep()

    assert evicted == 1
    assert conn not in registry
    assert conn.closed_with == 1001
    assert registry.connections_for(BUYER_ID) == ()


@pytest.mark.asyncio
async def test_sweep_tolerates_reentrant_deregister(registry, connect):
    # Every close() calls registry.deregister while sweep is iterating.
    conns = [connect(uid) for uid in (BUYER_ID, SELLER_ID, BUYER_ID, 5)]
    for conn in conns:
        registry.enable_json_heartbeat(conn)
    await registry.sweep()

    evicted = await registry.sweep()

    assert evicted == len(conns)
    assert len(registry) == 0
    assert all(c.closed_with == 1001 for c in conns)


@pytest.mark.asyncio
async def test_failed_ping_evicts_immediately(registry, connect):
    healthy = connect(BUYER_ID)
    dead = connect(SELLER_ID)
    dead.broken = True
    registry.enable_json_heartbeat(healthy)
    registry.enable_json_heartbeat(dead)

    evicted = await registry.sweep()

    assert evicted == 1
    assert dead not in registry
    assert healthy in registry


@pytest.mark.asyncio
async def test_close_all_empties_registry(registry, connect):
    connect(BUYER_ID)
    connect(SELLER_ID)
    connect()

    await registry.close_all()

    assert len(registry) == 0


@pytest.mark.asyncio
async def test_sweep_leaves_transport_only_clients_alone(registry, connect):
    browser = connect(BUYER_ID)

    for _ in range(3):
        assert await registry.sweep() == 0

    assert browser in registry
    assert browser.pings == 0
    assert browser.sent == []
    assert browser.closed_with is None


@pytest.mark.asyncio
async def test_opting_in_resets_pending_ping(registry, connect):
    conn = connect(BUYER_ID)
    registry.enable_json_heartbeat(conn)
    await registry.sweep()

    registry.enable_json_heartbeat(conn)
    await registry.sweep()

    assert conn in registry
    assert conn.pings == 2


def test_authenticate_unknown_connection_is_protocol_error(registry, connect):
    conn = connect()
    registry.deregister(conn)

    with pytest.raises(ProtocolError):
        registry.authenticate(conn, BUYER_ID)

    assert registry.connections_for(BUYER_ID) == ()


def test_mark_alive_ignores_unknown_connection(registry):
    registry.mark_alive(FakeConnection(registry=registry))
    registry.enable_json_heartbeat(FakeConnection(registry=registry))

    assert len(registry) == 0
