from __future__ import annotations

from typing import Any

from market_chat.application.dto.principal import Principal
from market_chat.application.exceptions import AuthenticationError


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    """Map decoded JWT claims to a Principal. ``sub`` is the marketplace user id."""
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Token subject is not a user id") from exc
    if user_id <= 0:
        raise AuthenticationError("Token subject is not a user id")
    roles = payload.get("roles") or []
    if payload.get("role"):
        roles = [*roles, payload["role"]]
    return Principal(user_id=user_id, roles=list(roles))
