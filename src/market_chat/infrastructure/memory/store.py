"""Process-local message log for development and tests.

All state lives in ``InMemoryMessageLog``; every unit of work opened by
``InMemoryStore.uow()`` reads and writes the same log, so the behaviour
matches a database-backed store shared by many requests.
"""
from __future__ import annotations

import itertools
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from market_chat.application.dto.message import NewMessageDTO
from market_chat.application.ports.clock import Clock, MonotonicClock
from market_chat.domain.conversations import order_conversation
from market_chat.domain.entities.message import Message


class InMemoryMessageLog:
    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = MonotonicClock(clock)
        self._ids = itertools.count(1)
        self._messages: dict[int, Message] = {}

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: NewMessageDTO) -> Message:
        stored = Message(
            id=next(self._ids),
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            content=message.content,
            read=message.read,
            created_at=self._clock.now(),
        )
        self._messages[stored.id] = stored
        return stored

    def all(self) -> list[Message]:
        return list(self._messages.values())

    def replace(self, message: Message) -> None:
        self._messages[message.id] = message


class InMemoryMessageRepo:
    """Implements both MessageReader and MessageWriter over a shared log."""

    def __init__(self, log: InMemoryMessageLog) -> None:
        self._log = log

    async def list_between(self, user_a: int, user_b: int) -> list[Message]:
        return order_conversation(m for m in self._log.all() if m.involves(user_a, user_b))

    async def list_for_user(self, user_id: int) -> list[Message]:
        return [m for m in self._log.all() if user_id in (m.sender_id, m.receiver_id)]

    async def create(self, message: NewMessageDTO) -> Message:
        return self._log.append(message)

    async def mark_read(self, sender_id: int, receiver_id: int) -> int:
        changed = 0
        for msg in self._log.all():
            if msg.sender_id == sender_id and msg.receiver_id == receiver_id and not msg.read:
                self._log.replace(msg.as_read())
                changed += 1
        return changed


@dataclass
class InMemoryUserDirectory:
    names: dict[int, str] = field(default_factory=dict)

    async def resolve_display_names(self, user_ids: Iterable[int]) -> dict[int, str]:
        return {uid: self.names[uid] for uid in user_ids if uid in self.names}


class InMemoryUoW:
    def __init__(self, log: InMemoryMessageLog, users: InMemoryUserDirectory) -> None:
        repo = InMemoryMessageRepo(log)
        self.messages = repo
        self.messages_w = repo
        self.users = users
        self.commits = 0

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        pass


class InMemoryStore:
    """Owns the log and the user directory; hands out units of work."""

    def __init__(
        self,
        users: Mapping[int, str] | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.log = InMemoryMessageLog(clock)
        self.users = InMemoryUserDirectory(dict(users or {}))

    @asynccontextmanager
    async def uow(self) -> AsyncIterator[InMemoryUoW]:
        yield InMemoryUoW(self.log, self.users)
