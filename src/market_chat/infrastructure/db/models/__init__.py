"""Import all models so Alembic can discover them via Base.metadata."""
from market_chat.infrastructure.db.models.message import MessageModel
from market_chat.infrastructure.db.models.user import UserModel

__all__ = [
    "MessageModel",
    "UserModel",
]
