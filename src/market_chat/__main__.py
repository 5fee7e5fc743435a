"""Entrypoint: python -m market_chat"""
from __future__ import annotations

import logging

import uvicorn

from market_chat.api.middleware.correlation_id import CorrelationIdFilter
from market_chat.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s]: %(message)s"


def configure_logging(level: str) -> None:
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        "market_chat.app:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        ws_ping_interval=float(settings.WS_HEARTBEAT_SECONDS),
        ws_ping_timeout=float(settings.WS_HEARTBEAT_SECONDS),
    )


if __name__ == "__main__":
    main()
