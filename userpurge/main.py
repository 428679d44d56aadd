"""FastAPI application entry point — wires everything together.

Usage:
    python -m userpurge.main

Starts the admin/hook API and the periodic purge scheduler.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from userpurge.admin.events import emit, start_event_system, stop_event_system, subscribe
from userpurge.admin.web import router as admin_router
from userpurge.config import settings
from userpurge.db.engine import async_session_factory, check_database, check_redis, db_lifespan
from userpurge.directory.hooks import router as hooks_router
from userpurge.purge.options import options
from userpurge.scheduling.scheduler import purge_scheduler
from userpurge.schemas.events import EventType, SystemEvent
from userpurge.security.audit import audit_on_event

VERSION = "1.0.0"

# ── Logging setup ────────────────────────────────────────────────────



def configure_logging(level: str, json_logs: bool) -> None:
    """Route stdlib and structlog output to stdout at `level`."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    # APScheduler logs every job run at INFO
    if level != "DEBUG":
        logging.getLogger("apscheduler").setLevel(logging.WARNING)

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


configure_logging(settings.log_level, json_logs=settings.is_production)
logger = logging.getLogger(__name__)


async def _stamp_version() -> None:
    """Record the running version in the options table."""
    async with async_session_factory() as db:
        previous = await options.version(db)
        if previous != VERSION:
            await options.set_version(db, VERSION)
            await db.commit()
            logger.info("Options version %s -> %s", previous, VERSION)


# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info("Starting userpurge %s (env=%s)", VERSION, settings.environment)

    # 1. Database
    async with db_lifespan():
        logger.info("Database initialized")
        await _stamp_version()

        # 2. Event system + audit logging (global subscriber)
        subscribe(audit_on_event)
        await start_event_system()
        logger.info("Event system started")

        # 3. Purge scheduler
        if settings.purge.sweep_enabled:
            purge_scheduler.start()
        else:
            logger.warning("SWEEP_ENABLED is false — users will not be purged")

        await emit(SystemEvent(
            event_type=EventType.SYSTEM_STARTUP,
            data={"version": VERSION, "environment": settings.environment},
            source_module="main",
        ))

        try:
            yield
        finally:
            # Shutdown in reverse order
            logger.info("Shutting down userpurge...")

            purge_scheduler.stop()

            await emit(SystemEvent(event_type=EventType.SYSTEM_SHUTDOWN, source_module="main"))
            await stop_event_system()
            logger.info("Event system stopped")

    logger.info("userpurge shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="userpurge API",
    description="Tracks users in inactive roles and purges them after a retention period",
    version=VERSION,
    lifespan=lifespan,
)
app.include_router(admin_router)
app.include_router(hooks_router)


@app.get("/health")
async def health_check() -> dict[str, Any]:
    """Liveness plus PostgreSQL, Redis and scheduler status."""
    postgresql = await check_database()
    redis = await check_redis()
    return {
        "status": "ok" if postgresql["status"] == "ok" else "degraded",
        "environment": settings.environment,
        "postgresql": postgresql,
        "redis": redis,
        "scheduler": "running" if purge_scheduler.running else "stopped",
    }


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "userpurge.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
