"""Pure derivations over the message log.

Conversation summaries are never stored; they are recomputed from the
messages every time, so they cannot drift from the log.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping

from market_chat.domain.entities.conversation import ConversationSummary
from market_chat.domain.entities.message import Message


def order_conversation(messages: Iterable[Message]) -> list[Message]:
    return sorted(messages, key=lambda m: m.sort_key)


def latest_by_counterpart(user_id: int, messages: Iterable[Message]) -> dict[int, Message]:
    latest: dict[int, Message] = {}
    for msg in messages:
        if user_id not in (msg.sender_id, msg.receiver_id):
            continue
        partner = msg.counterpart_of(user_id)
        current = latest.get(partner)
        if current is None or msg.sort_key > current.sort_key:
            latest[partner] = msg
    return latest


def summarize_conversations(
    user_id: int,
    messages: Iterable[Message],
    display_names: Mapping[int, str],
    *,
    fallback_name: str = "Unknown User",
) -> list[ConversationSummary]:
    """Build one summary per counterpart, most recent conversation first."""
    latest = latest_by_counterpart(user_id, messages)
    summaries = [
        ConversationSummary(
            user_id=partner,
            username=display_names.get(partner) or fallback_name,
            last_message=msg,
        )
        for partner, msg in latest.items()
    ]
    summaries.sort(key=lambda s: s.last_message.sort_key, reverse=True)
    return summaries
