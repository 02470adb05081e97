"""Startup wiring: picks the storage backends once per process.

Uses FastAPI's lifespan context.  Selection rules:

    DATABASE_URL set   → SqlAgreementStore   (otherwise LocalFallbackStore)
    REDIS_URL set      → RedisSessionFlagStore (otherwise in-memory flags)

Everything lands on `app.state` so routes never branch on the backend.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from rulesgate import database
from rulesgate.config import Settings, settings
from rulesgate.services.progress_gate import build_sections
from rulesgate.services.submission import SubmissionCoordinator
from rulesgate.stores.base import AgreementStore, SessionFlagStore
from rulesgate.stores.local import LocalFallbackStore
from rulesgate.stores.session import MemorySessionFlagStore, RedisSessionFlagStore
from rulesgate.stores.sql import SqlAgreementStore

logger = logging.getLogger("rulesgate.lifecycle")


def build_agreement_store(cfg: Settings) -> AgreementStore:
    if cfg.database_url and database.async_session is not None:
        return SqlAgreementStore(database.async_session)

    logger.warning(
        "Demo mode: no database configured, agreements will be stored in %s",
        cfg.local_store_path,
    )
    return LocalFallbackStore(cfg.local_store_path)


def build_session_store(cfg: Settings) -> SessionFlagStore:
    if cfg.redis_url:
        return RedisSessionFlagStore.from_url(cfg.redis_url, cfg.session_ttl_seconds)
    logger.warning("No Redis configured, session flags are kept in process memory")
    return MemorySessionFlagStore(cfg.session_ttl_seconds)


def configure_app(
    app: FastAPI,
    agreement_store: AgreementStore,
    session_store: SessionFlagStore,
    cfg: Settings = settings,
) -> None:
    app.state.sections = build_sections(cfg.sections)
    app.state.read_threshold = cfg.read_threshold
    app.state.session_store = session_store
    app.state.coordinator = SubmissionCoordinator(
        agreement_store,
        max_attempts=cfg.max_submit_attempts,
        code_prefix=cfg.confirmation_prefix,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan: select stores on startup, release them on shutdown."""
    # Tests may pre-configure the app with fakes
    if not hasattr(app.state, "coordinator"):
        configure_app(app, build_agreement_store(settings), build_session_store(settings))
    logger.info(
        "rulesgate started (agreements=%s, sessions=%s)",
        app.state.coordinator.store.name,
        app.state.session_store.name,
    )
    try:
        yield
    finally:
        close = getattr(app.state.session_store, "close", None)
        if close is not None:
            await close()
        if database.engine is not None:
            await database.engine.dispose()
        logger.info("rulesgate stopped")
