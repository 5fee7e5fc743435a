from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Message:
    id: int
    sender_id: int
    receiver_id: int
    content: str
    read: bool
    created_at: datetime

    @property
    def sort_key(self) -> tuple[datetime, int]:
        """Authoritative ordering key inside a conversation."""
        return (self.created_at, self.id)

    def counterpart_of(self, user_id: int) -> int:
        return self.receiver_id if self.sender_id == user_id else self.sender_id

    def involves(self, user_a: int, user_b: int) -> bool:
        return {self.sender_id, self.receiver_id} == {user_a, user_b}

    def as_read(self) -> Message:
        return self if self.read else replace(self, read=True)
