from __future__ import annotations

from typing import Protocol

from market_chat.application.dto.message import NewMessageDTO
from market_chat.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_between(self, user_a: int, user_b: int) -> list[Message]:
        """Full conversation between two users, ordered by (created_at, id)."""
        ...

    async def list_for_user(self, user_id: int) -> list[Message]:
        """Every message the user sent or received, in any order."""
        ...


class MessageWriter(Protocol):
    async def create(self, message: NewMessageDTO) -> Message:
        """Persist a message. The store assigns ``id`` and ``created_at``."""
        ...

    async def mark_read(self, sender_id: int, receiver_id: int) -> int:
        """Flip ``read`` on unread sender→receiver messages. Returns rows changed."""
        ...
