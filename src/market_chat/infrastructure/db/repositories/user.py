from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from market_chat.infrastructure.db.models.user import UserModel


class UserDirectoryRepo:
    """Implements application.ports.identity.IdentityResolver."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def resolve_display_names(self, user_ids: Iterable[int]) -> dict[int, str]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        stmt = select(UserModel.id, UserModel.username).where(UserModel.id.in_(ids))
        result = await self._session.execute(stmt)
        return {row.id: row.username for row in result.all()}
