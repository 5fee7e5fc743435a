from __future__ import annotations

from market_chat.domain.entities.message import Message
from market_chat.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        sender_id=model.sender_id,
        receiver_id=model.receiver_id,
        content=model.content,
        read=model.read,
        created_at=model.created_at,
    )
