from __future__ import annotations

from dataclasses import dataclass

from market_chat.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    """One row of a user's inbox: the counterpart and the latest message."""

    user_id: int
    username: str
    last_message: Message
