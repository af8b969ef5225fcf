"""FastAPI application factory.

Creates the app with logging middleware, CORS, lifespan events that wire the
preference services onto ``app.state``, and the v1 API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.sheetsync.api.middleware.logging import LoggingMiddleware
from src.sheetsync.api.v1.router import router as v1_router
from src.sheetsync.columns.picker import ColumnPickerService
from src.sheetsync.config import PreferenceBackend, Settings, get_settings
from src.sheetsync.core.database import close_db, get_session, init_db
from src.sheetsync.core.logging import configure_structlog
from src.sheetsync.core.redis import close_redis, get_redis_pool
from src.sheetsync.preferences.kv import (
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
    SqlKeyValueStore,
)
from src.sheetsync.preferences.store import PreferenceStore
from src.sheetsync.preferences.teams import TeamDirectory


def build_key_value_store(settings: Settings) -> KeyValueStore:
    """Create the KeyValueStore selected by PREFERENCE_BACKEND."""
    if settings.PREFERENCE_BACKEND == PreferenceBackend.redis:
        return RedisKeyValueStore(get_redis_pool())
    if settings.PREFERENCE_BACKEND == PreferenceBackend.database:
        return SqlKeyValueStore(session_factory=get_session)
    return InMemoryKeyValueStore()


def init_services(app: FastAPI, kv: KeyValueStore, settings: Settings) -> None:
    """Attach the preference services to ``app.state``."""
    teams = TeamDirectory(kv)
    store = PreferenceStore(kv, teams)
    app.state.kv_store = kv
    app.state.team_directory = teams
    app.state.preference_store = store
    app.state.picker_service = ColumnPickerService(
        store,
        hash_min_length=settings.CUSTOM_FIELD_HASH_MIN_LENGTH,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: configure logging and storage, close on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    if settings.PREFERENCE_BACKEND == PreferenceBackend.database:
        await init_db()

    init_services(app, build_key_value_store(settings), settings)
    log.info("app.started", backend=settings.PREFERENCE_BACKEND.value)

    yield

    if settings.PREFERENCE_BACKEND == PreferenceBackend.database:
        await close_db()
    elif settings.PREFERENCE_BACKEND == PreferenceBackend.redis:
        await close_redis()
    log.info("app.stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="SheetSync Column API",
        version="0.1.0",
        description="Column discovery and column preferences for CRM-synced sheets",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    app.include_router(v1_router)

    return app


app = create_app()
