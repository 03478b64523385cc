"""FastAPI application for doctor/patient video consultations."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from .core.config import settings
from .db.session import SessionLocal, engine
from .routers import chat as chat_router
from .routers import realtime as realtime_router
from .routers import video_calls as video_calls_router
from .services.broker import (
    BrokerNotInitializedError,
    SignalingBroker,
    clear_broker,
    install_broker,
)
from .services.cache import RedisSnapshotCache
from .services.call_store import SqlCallStateStore
from .services.chat_store import ChatStore
from .services.timers import TimerManager

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Build and install the signaling broker for the lifetime of the process."""

    cache = RedisSnapshotCache.from_url(settings.redis_url) if settings.redis_url else None
    broker = SignalingBroker(
        call_store=SqlCallStateStore(SessionLocal),
        chat_store=ChatStore(cache=cache, ttl_seconds=settings.chat_cache_ttl_seconds),
        timers=TimerManager(),
    )
    install_broker(broker)
    logger.info("Signaling broker ready (env=%s, chat cache=%s)", settings.app_env, "redis" if cache else "off")
    try:
        yield
    finally:
        await broker.shutdown()
        clear_broker()
        if cache is not None:
            await cache.close()
        await engine.dispose()


app = FastAPI(title="Telecare Consultation API", version="0.1.0", lifespan=lifespan)

if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

app.include_router(video_calls_router.router, prefix="/api/v1/videocall", tags=["videocall"])
app.include_router(chat_router.router, prefix="/api/v1/chat", tags=["chat"])
app.include_router(realtime_router.router, tags=["realtime"])


@app.exception_handler(BrokerNotInitializedError)
async def broker_not_ready(_: Request, exc: BrokerNotInitializedError) -> JSONResponse:
    logger.error("Realtime request rejected: %s", exc)
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})


@app.get("/api/health", tags=["meta"])
async def health() -> dict[str, str]:
    """Simple liveness probe."""

    return {"status": "ok"}


@app.head("/api/health", tags=["meta"])
async def health_head() -> Response:
    """Allow HEAD for uptime monitors that only need the status code."""

    return Response(status_code=200)


@app.get("/robots.txt", response_class=PlainTextResponse, include_in_schema=False)
async def robots() -> PlainTextResponse:
    """Serve a minimal robots.txt to avoid 404 noise."""

    return PlainTextResponse("User-agent: *\nDisallow:")
