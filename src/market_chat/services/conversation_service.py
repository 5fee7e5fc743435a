from __future__ import annotations

from market_chat.application.uow import UnitOfWork
from market_chat.domain.conversations import latest_by_counterpart, summarize_conversations
from market_chat.domain.entities.conversation import ConversationSummary


async def list_user_conversations(
    user_id: int,
    uow: UnitOfWork,
    *,
    fallback_name: str = "Unknown User",
) -> list[ConversationSummary]:
    """One summary per distinct counterpart, derived from the message log."""
    messages = await uow.messages.list_for_user(user_id)
    partners = latest_by_counterpart(user_id, messages).keys()
    names = await uow.users.resolve_display_names(partners) if partners else {}
    return summarize_conversations(
        user_id, messages, names, fallback_name=fallback_name,
    )
