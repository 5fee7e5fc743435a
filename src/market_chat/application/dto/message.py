from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class NewMessageDTO:
    """A message before the store has assigned its id and timestamp."""

    sender_id: int
    receiver_id: int
    content: str
    read: bool = False
