"""Shared test fixtures."""
from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import pytest

from market_chat.infrastructure.memory.store import InMemoryStore
from market_chat.infrastructure.ws.fanout import LocalFanout
from market_chat.infrastructure.ws.registry import ConnectionRegistry
from market_chat.services.message_router import MessageRouter

BUYER_ID = 42
SELLER_ID = 7
OTHER_ID = 99

USER_NAMES = {BUYER_ID: "buyer_anna", SELLER_ID: "ceramics_studio"}


@dataclass(eq=False)
class FakeConnection:
    """In-memory Connection. Closing it behaves like the transport's close
    event: it calls back into the registry, as the WS endpoint does."""

    registry: ConnectionRegistry | None = None
    sent: list[str] = field(default_factory=list)
    pings: int = 0
    closed_with: int | None = None
    broken: bool = False

    async def send_text(self, data: str) -> None:
        if self.broken:
            raise ConnectionResetError("socket gone")
        self.sent.append(data)

    async def ping(self) -> None:
        if self.broken:
            raise ConnectionResetError("socket gone")
        self.pings += 1

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = code
        if self.registry is not None:
            self.registry.deregister(self)

    def frames(self, frame_type: str | None = None) -> list[dict[str, Any]]:
        decoded = [json.loads(s) for s in self.sent]
        if frame_type is None:
            return decoded
        return [f for f in decoded if f.get("type") == frame_type]


@dataclass
class FixedClock:
    value: datetime = field(default_factory=lambda: datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self.value


class FailingWriter:
    async def create(self, message):
        raise RuntimeError("database unavailable")

    async def mark_read(self, sender_id, receiver_id):
        raise RuntimeError("database unavailable")


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(users=USER_NAMES)


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def router(registry: ConnectionRegistry, store: InMemoryStore) -> MessageRouter:
    return MessageRouter(registry, store.uow, LocalFanout(registry))


@pytest.fixture
def connect(registry: ConnectionRegistry) -> Callable[..., FakeConnection]:
    """Register a fake connection, optionally already authenticated."""

    def _connect(user_id: int | None = None) -> FakeConnection:
        conn = FakeConnection(registry=registry)
        registry.register(conn)
        if user_id is not None:
            registry.authenticate(conn, user_id)
        return conn

    return _connect


@pytest.fixture
def failing_uow_factory(store: InMemoryStore):
    @asynccontextmanager
    async def _factory() -> AsyncIterator[Any]:
        async with store.uow() as uow:
            uow.messages_w = FailingWriter()
            yield uow

    return _factory


def auth_frame(user_id: int, **extra: Any) -> str:
    return json.dumps({"type": "auth", "userId": user_id, **extra})


def message_frame(sender_id: int | None, receiver_id: int, content: str) -> str:
    payload: dict[str, Any] = {"type": "message", "receiverId": receiver_id, "content": content}
    if sender_id is not None:
        payload["senderId"] = sender_id
    return json.dumps(payload)
