"""Background task that drives the registry's liveness sweep."""
from __future__ import annotations

import asyncio
import logging

from market_chat.infrastructure.ws.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class HeartbeatSweeper:
    def __init__(self, registry: ConnectionRegistry, interval: float) -> None:
        self._registry = registry
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="ws-heartbeat-sweeper")
        logger.info("Heartbeat sweeper started (interval=%ss)", self._interval)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Heartbeat sweeper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self._registry.sweep()
            except Exception:
                logger.exception("Heartbeat sweep failed")
