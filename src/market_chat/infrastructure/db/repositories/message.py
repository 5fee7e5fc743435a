from __future__ import annotations

from sqlalchemy import and_, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from market_chat.application.dto.message import NewMessageDTO
from market_chat.domain.entities.message import Message
from market_chat.infrastructure.db.mappers import message as mapper
from market_chat.infrastructure.db.models.message import MessageModel


def _pair_clause(user_a: int, user_b: int):
    return or_(
        and_(MessageModel.sender_id == user_a, MessageModel.receiver_id == user_b),
        and_(MessageModel.sender_id == user_b, MessageModel.receiver_id == user_a),
    )


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_between(self, user_a: int, user_b: int) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(_pair_clause(user_a, user_b))
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def list_for_user(self, user_id: int) -> list[Message]:
        stmt = select(MessageModel).where(
            or_(MessageModel.sender_id == user_id, MessageModel.receiver_id == user_id)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, message: NewMessageDTO) -> Message:
        """Insert and return the row with its server-assigned id and created_at."""
        stmt = (
            insert(MessageModel)
            .values(
                sender_id=message.sender_id,
                receiver_id=message.receiver_id,
                content=message.content,
                read=message.read,
            )
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        return mapper.model_to_entity(result.scalar_one())

    async def mark_read(self, sender_id: int, receiver_id: int) -> int:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.sender_id == sender_id,
                MessageModel.receiver_id == receiver_id,
                MessageModel.read.is_(False),
            )
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0
