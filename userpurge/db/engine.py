"""Database and Redis connections shared by the whole service.

PostgreSQL (SQLAlchemy async + asyncpg) holds users, roles, options, the
purge list and the audit log. Redis only carries the sweep lock.
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import AsyncGenerator
from typing import Any

import redis.asyncio as aioredis
from sqlalchemy import func, insert, select, text
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from userpurge.config import settings

logger = logging.getLogger(__name__)

engine: AsyncEngine = create_async_engine(
    settings.db.database_url,
    echo=settings.db.echo_sql,
    pool_size=settings.db.pool_size,
    max_overflow=settings.db.max_overflow,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

redis_client: aioredis.Redis = aioredis.from_url(settings.db.redis_url, decode_responses=True)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request.

    Routes that return normally are committed; an exception rolls back.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Health probes ────────────────────────────────────────────────────


def _elapsed_ms(start: float) -> int:
    return round((time.monotonic() - start) * 1000)


async def check_database() -> dict[str, Any]:
    start = time.monotonic()
    try:
        async with async_session_factory() as db:
            await db.execute(text("SELECT 1"))
    except Exception as exc:
        return {"status": "error", "error": str(exc)}
    return {"status": "ok", "latency_ms": _elapsed_ms(start)}


async def check_redis() -> dict[str, Any]:
    start = time.monotonic()
    try:
        await redis_client.ping()
    except Exception as exc:
        return {"status": "error", "error": str(exc)}
    return {"status": "ok", "latency_ms": _elapsed_ms(start)}


# ── Lifespan ─────────────────────────────────────────────────────────


async def seed_default_roles(conn: AsyncConnection) -> int:
    """Insert the default roles into an empty `roles` table. Returns rows added."""
    from userpurge.models.role import DEFAULT_ROLES, Role

    existing = (await conn.execute(select(func.count()).select_from(Role))).scalar()
    if existing:
        return 0
    await conn.execute(insert(Role), DEFAULT_ROLES)
    logger.info("Seeded %d default roles", len(DEFAULT_ROLES))
    return len(DEFAULT_ROLES)


async def init_db() -> None:
    """Create missing tables and default roles outside production.

    Alembic owns the schema and the seed data in production.
    """
    if settings.is_production:
        return

    from userpurge.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await seed_default_roles(conn)


@contextlib.asynccontextmanager
async def db_lifespan() -> AsyncGenerator[None, None]:
    """Open on entry, dispose the pool and Redis connections on exit."""
    await init_db()
    try:
        yield
    finally:
        await engine.dispose()
        await redis_client.aclose()
