from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol


class IdentityResolver(Protocol):
    """User directory owned by the marketplace; read-only from chat."""

    async def resolve_display_names(self, user_ids: Iterable[int]) -> dict[int, str]:
        """Names for the ids that exist; unknown ids are simply absent."""
        ...
