from __future__ import annotations

from enum import StrEnum


class Liveness(StrEnum):
    CONFIRMED = "confirmed"
    AWAITING_PONG = "awaiting_pong"


class DeliveryStatus(StrEnum):
    SENT = "sent"


class ConnectionStatus(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
