from __future__ import annotations

import logging

from market_chat.application.dto.message import NewMessageDTO
from market_chat.application.exceptions import ValidationError
from market_chat.application.uow import UnitOfWork
from market_chat.domain.entities.message import Message

logger = logging.getLogger(__name__)


def _validate_pair(sender_id: int, receiver_id: int) -> None:
    if sender_id <= 0 or receiver_id <= 0:
        raise ValidationError("User ids must be positive integers")


async def create_message(
    sender_id: int,
    receiver_id: int,
    content: str,
    uow: UnitOfWork,
) -> Message:
    """Persist a direct message and return the stored record.

    Persistence errors propagate to the caller; nothing is committed in
    that case.
    """
    _validate_pair(sender_id, receiver_id)
    if not content or not content.strip():
        raise ValidationError("Message content must not be empty")

    msg = await uow.messages_w.create(
        NewMessageDTO(sender_id=sender_id, receiver_id=receiver_id, content=content)
    )
    await uow.commit()
    logger.debug("Stored message %d (%d -> %d)", msg.id, sender_id, receiver_id)
    return msg


async def get_conversation(user_a: int, user_b: int, uow: UnitOfWork) -> list[Message]:
    _validate_pair(user_a, user_b)
    return await uow.messages.list_between(user_a, user_b)


async def mark_read(sender_id: int, receiver_id: int, uow: UnitOfWork) -> int:
    """Mark everything sender has sent to receiver as read. Idempotent."""
    _validate_pair(sender_id, receiver_id)
    changed = await uow.messages_w.mark_read(sender_id, receiver_id)
    await uow.commit()
    if changed:
        logger.debug("Marked %d messages read (%d -> %d)", changed, sender_id, receiver_id)
    return changed


async def open_conversation(viewer_id: int, counterpart_id: int, uow: UnitOfWork) -> list[Message]:
    """Fetch the thread for the viewer, then mark the counterpart's messages read.

    The returned history reflects the state before the read flag was flipped,
    the same way the thread was served before the read action.
    """
    history = await get_conversation(viewer_id, counterpart_id, uow)
    await mark_read(counterpart_id, viewer_id, uow)
    return history
