from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Default wall-clock implementation."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class MonotonicClock:
    """Wraps another clock so successive readings never go backwards."""

    def __init__(self, inner: Clock | None = None) -> None:
        self._inner = inner or SystemClock()
        self._last: datetime | None = None

    def now(self) -> datetime:
        current = self._inner.now()
        if self._last is not None and current < self._last:
            current = self._last
        self._last = current
        return current
