"""
Invoice Store Connection

One async engine per process, opened in the application lifespan. The
service only reads: on Postgres every connection is put in read-only
transaction mode and sessions are closed without committing.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from spend_analytics.config import get_settings

logger = structlog.get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_sessions: Optional[async_sessionmaker[AsyncSession]] = None


def engine_options(url: URL, echo: bool = False) -> Dict[str, Any]:
    """create_async_engine keyword arguments for the given store URL."""
    options: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    if url.get_backend_name() == "postgresql":
        # hosted Postgres sits behind a pooler, so no client-side pool
        options["poolclass"] = NullPool
        options["connect_args"] = {
            "server_settings": {"default_transaction_read_only": "on"},
        }
    return options


async def init_database(url: Optional[str] = None) -> AsyncEngine:
    """
    Open the engine and check the store answers.

    Args:
        url: SQLAlchemy async URL; defaults to the configured Postgres URL

    Raises:
        Exception: whatever the driver raises when the store is unreachable
    """
    global _engine, _sessions

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    settings = get_settings()
    store_url = make_url(url or settings.database.async_url)

    _engine = create_async_engine(store_url, **engine_options(store_url, settings.database.echo))
    _sessions = async_sessionmaker(bind=_engine, expire_on_commit=False, autoflush=False)

    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Invoice store unreachable", url=store_url.render_as_string(hide_password=True), error=str(e))
        await close_database()
        raise

    logger.info("Invoice store connected", backend=store_url.get_backend_name(), database=store_url.database)
    return _engine


async def close_database() -> None:
    global _engine, _sessions

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _sessions = None
        logger.info("Invoice store connection closed")


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Read-only session, closed (never committed) on exit.

    Example:
        async with get_db() as db:
            rows = (await db.execute(select(Invoice.id))).all()
    """
    if _sessions is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    session = _sessions()
    try:
        yield session
    finally:
        await session.close()


async def get_db_dependency() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""
    async with get_db() as session:
        yield session


async def check_database_health() -> Dict[str, Any]:
    """Round-trip latency to the store, or the error that prevented it."""
    start = time.perf_counter()
    try:
        async with get_db() as db:
            await db.execute(text("SELECT 1"))
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}

    return {"status": "healthy", "latency_ms": round((time.perf_counter() - start) * 1000, 2)}
