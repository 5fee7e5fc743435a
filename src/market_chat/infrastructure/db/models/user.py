from __future__ import annotations

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from market_chat.infrastructure.db.base import Base


class UserModel(Base):
    """Read-only view of the marketplace ``users`` table.

    Chat only resolves display names; the table is owned and migrated by the
    marketplace application.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
