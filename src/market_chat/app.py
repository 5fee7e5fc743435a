from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from market_chat.api.deps import get_verifier
from market_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from market_chat.api.v1.routers import health, messages, ws
from market_chat.application.exceptions import (
    AuthenticationError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from market_chat.application.ports.bus import MessageFanout
from market_chat.config import settings
from market_chat.infrastructure.bus.redis_pubsub import (
    RedisPubSubPublisher,
    RedisPubSubSubscriber,
)
from market_chat.infrastructure.memory.store import InMemoryStore
from market_chat.infrastructure.ws.fanout import LocalFanout, RedisFanout, make_delivery_handler
from market_chat.infrastructure.ws.heartbeat import HeartbeatSweeper
from market_chat.infrastructure.ws.registry import ConnectionRegistry
from market_chat.services.message_router import MessageRouter

logger = logging.getLogger(__name__)


def _configure_store(app: FastAPI) -> None:
    if settings.STORE_BACKEND == "memory":
        store = InMemoryStore()
        app.state.memory_store = store
        app.state.uow_factory = store.uow
        app.state.store_probe = None
        logger.info("Using in-memory message store")
        return

    from sqlalchemy import text

    from market_chat.infrastructure.db.session import AsyncSessionLocal, engine, sql_uow

    async def _probe() -> None:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))

    app.state.db_engine = engine
    app.state.uow_factory = sql_uow
    app.state.store_probe = _probe


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    _configure_store(app)

    registry = ConnectionRegistry()
    local = LocalFanout(registry)
    fanout: MessageFanout = local
    subscriber: RedisPubSubSubscriber | None = None
    app.state.redis = None

    if settings.FANOUT_BACKEND == "redis":
        app.state.redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        logger.info("Redis connection pool created")
        fanout = RedisFanout(RedisPubSubPublisher(app.state.redis), settings.REDIS_PUBSUB_CHANNEL)
        subscriber = RedisPubSubSubscriber(
            app.state.redis,
            settings.REDIS_PUBSUB_CHANNEL,
            make_delivery_handler(local),
        )
        await subscriber.start()

    app.state.registry = registry
    app.state.message_router = MessageRouter(
        registry,
        app.state.uow_factory,
        fanout,
        verifier=get_verifier() if settings.WS_AUTH_MODE == "token" else None,
        enforce_sender_identity=settings.WS_ENFORCE_SENDER_IDENTITY,
    )
    sweeper = HeartbeatSweeper(registry, settings.WS_HEARTBEAT_SECONDS)
    await sweeper.start()
    app.state.sweeper = sweeper

    yield

    await sweeper.stop()
    await registry.close_all()
    if subscriber is not None:
        await subscriber.stop()
    if app.state.redis is not None:
        await app.state.redis.aclose()
        logger.info("Redis connection pool closed")
    engine = getattr(app.state, "db_engine", None)
    if engine is not None:
        await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Marketplace Chat Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(messages.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ForbiddenError)
    async def _forbidden(_req: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(AuthenticationError)
    async def _unauthorized(_req: Request, exc: AuthenticationError) -> JSONResponse:
        return JSONResponse(status_code=401, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})
