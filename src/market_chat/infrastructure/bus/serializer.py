"""Envelope for events crossing the Redis Pub/Sub channel.

``{"v": 1, "event": "<type>", "data": {...}}``; datetimes travel as ISO-8601.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

ENVELOPE_VERSION = 1


def _default(o: object) -> Any:
    if isinstance(o, datetime):
        return o.isoformat()
    raise TypeError(f"{type(o).__name__} is not JSON serializable")


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    data = {k: v for k, v in payload.items() if k != "event_type"}
    envelope = {"v": ENVELOPE_VERSION, "event": event_type, "data": data}
    return json.dumps(envelope, default=_default, separators=(",", ":"))


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    """Raises ValueError, KeyError or TypeError for anything but a v1 envelope."""
    envelope = json.loads(raw)
    if not isinstance(envelope, dict) or envelope.get("v") != ENVELOPE_VERSION:
        raise ValueError("unsupported pubsub envelope")
    data = envelope["data"]
    if not isinstance(data, dict):
        raise TypeError("event data must be an object")
    return str(envelope["event"]), data
