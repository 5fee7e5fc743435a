from __future__ import annotations

from types import TracebackType
from typing import Self

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from market_chat.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)
from market_chat.infrastructure.db.repositories.user import UserDirectoryRepo


class SqlAlchemyUoW:
    """Unit of work that owns one AsyncSession for the length of an ``async with``.

    Repositories are bound on enter. Leaving the block with an exception rolls
    back; the session is always closed. Services call ``commit`` themselves.
    """

    messages: MessageReaderRepo
    messages_w: MessageWriterRepo
    users: UserDirectoryRepo

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: AsyncSession | None = None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("SqlAlchemyUoW used outside 'async with'")
        return self._session

    async def flush(self) -> None:
        await self.session.flush()

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def __aenter__(self) -> Self:
        self._session = self._session_factory()
        self.messages = MessageReaderRepo(self._session)
        self.messages_w = MessageWriterRepo(self._session)
        self.users = UserDirectoryRepo(self._session)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        session, self._session = self.session, None
        try:
            if exc_type is not None:
                await session.rollback()
        finally:
            await session.close()
