"""Display helpers: bucket a conversation by calendar day."""
from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timezone, tzinfo
from typing import Protocol, TypeVar


class _Timestamped(Protocol):
    @property
    def created_at(self) -> datetime: ...


T = TypeVar("T", bound=_Timestamped)


def local_date(ts: datetime, tz: tzinfo) -> date:
    """Calendar date of ``ts`` as seen in ``tz``. Naive timestamps are UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(tz).date()


def group_by_date(messages: Iterable[T], tz: tzinfo) -> dict[date, list[T]]:
    """Bucket messages by the viewer's local date, keeping their order.

    Buckets appear in the order their first message appears.
    """
    groups: dict[date, list[T]] = {}
    for msg in messages:
        groups.setdefault(local_date(msg.created_at, tz), []).append(msg)
    return groups
