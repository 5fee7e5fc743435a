"""In-process registry of live WebSocket connections."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from market_chat.application.exceptions import ProtocolError
from market_chat.application.ports.connection import Connection
from market_chat.domain.value_objects.enums import Liveness

logger = logging.getLogger(__name__)

CLOSE_GOING_AWAY = 1001


@dataclass(slots=True)
class ConnectionEntry:
    connection: Connection
    user_id: int | None = None
    liveness: Liveness = Liveness.CONFIRMED
    json_heartbeat: bool = False

    @property
    def is_alive(self) -> bool:
        return self.liveness is Liveness.CONFIRMED

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


class ConnectionRegistry:
    """Maps live connections to the user they authenticated as.

    Only the registry mutates its maps. Connections are keyed by identity,
    so several devices of the same user are tracked independently.

    Every socket gets transport-level ping/pong from the server (uvicorn's
    ``ws_ping_interval``). The JSON heartbeat run by ``sweep`` only covers
    connections that have sent a ``ping`` or ``pong`` frame themselves.
    """

    def __init__(self) -> None:
        self._entries: dict[Connection, ConnectionEntry] = {}
        self._by_user: dict[int, set[Connection]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, connection: object) -> bool:
        return connection in self._entries

    def register(self, connection: Connection) -> ConnectionEntry:
        entry = ConnectionEntry(connection=connection)
        self._entries[connection] = entry
        logger.debug("WS registered (total=%d)", len(self._entries))
        return entry

    def authenticate(self, connection: Connection, user_id: int) -> None:
        """Bind (or rebind) a registered connection to ``user_id``."""
        entry = self._entries.get(connection)
        if entry is None:
            raise ProtocolError("auth on a connection that is no longer registered")
        if entry.user_id is not None and entry.user_id != user_id:
            self._unindex(connection, entry.user_id)
        entry.user_id = user_id
        self._by_user.setdefault(user_id, set()).add(connection)
        logger.debug("WS authenticated as user %d (devices=%d)", user_id, len(self._by_user[user_id]))

    def mark_alive(self, connection: Connection) -> None:
        entry = self._entries.get(connection)
        if entry is not None:
            entry.liveness = Liveness.CONFIRMED

    def enable_json_heartbeat(self, connection: Connection) -> None:
        """Opt a connection into JSON probes; it has shown it answers them."""
        entry = self._entries.get(connection)
        if entry is not None:
            entry.json_heartbeat = True
            entry.liveness = Liveness.CONFIRMED

    def deregister(self, connection: Connection) -> None:
        entry = self._entries.pop(connection, None)
        if entry is None:
            return
        if entry.user_id is not None:
            self._unindex(connection, entry.user_id)
        logger.debug("WS deregistered user=%s (total=%d)", entry.user_id, len(self._entries))

    def user_of(self, connection: Connection) -> int | None:
        entry = self._entries.get(connection)
        return entry.user_id if entry else None

    def entry_for(self, connection: Connection) -> ConnectionEntry | None:
        return self._entries.get(connection)

    def connections_for(self, user_id: int) -> tuple[Connection, ...]:
        return tuple(self._by_user.get(user_id, ()))

    async def sweep(self) -> int:
        """Run one JSON heartbeat cycle. Returns the number of evicted connections.

        Only opted-in entries take part. Those still awaiting a pong from the
        previous cycle are evicted and closed; the rest are flipped to awaiting
        and probed. Iterates over a snapshot because closing a socket
        re-enters ``deregister``.
        """
        evicted = 0
        for entry in list(self._entries.values()):
            if entry.connection not in self._entries or not entry.json_heartbeat:
                continue
            if not entry.is_alive:
                await self._evict(entry, "missed heartbeat")
                evicted += 1
                continue
            entry.liveness = Liveness.AWAITING_PONG
            try:
                await entry.connection.ping()
            except Exception:
                logger.debug("Ping failed for user=%s", entry.user_id, exc_info=True)
                await self._evict(entry, "ping failed")
                evicted += 1
        if evicted:
            logger.info("Heartbeat evicted %d connection(s), %d remain", evicted, len(self._entries))
        return evicted

    async def close_all(self) -> None:
        for entry in list(self._entries.values()):
            await self._evict(entry, "server shutdown")

    async def _evict(self, entry: ConnectionEntry, reason: str) -> None:
        self.deregister(entry.connection)
        try:
            await entry.connection.close(code=CLOSE_GOING_AWAY, reason=reason)
        except Exception:
            logger.debug("Close failed for user=%s", entry.user_id, exc_info=True)

    def _unindex(self, connection: Connection, user_id: int) -> None:
        conns = self._by_user.get(user_id)
        if conns:
            conns.discard(connection)
            if not conns:
                del self._by_user[user_id]
