"""
Database Engine & Sessions

One async engine per process, opened by the application lifespan. The
dashboard never writes: sessions are rolled back when released and, on
PostgreSQL, run as read-only transactions under a statement timeout.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from marketplace_dashboard.config import get_settings
from marketplace_dashboard.config.settings import DatabaseSettings

logger = structlog.get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def engine_options(settings: DatabaseSettings) -> Dict[str, Any]:
    """
    Pool and connection options for the configured driver.

    Only asyncpg gets a sized pool and server settings; SQLite URLs used
    in development keep SQLAlchemy's defaults.
    """
    if make_url(settings.async_url).get_driver_name() != "asyncpg":
        return {}

    return {
        "pool_size": settings.pool_size,
        "max_overflow": settings.max_overflow,
        "pool_pre_ping": True,
        "connect_args": {
            "server_settings": {
                "application_name": "marketplace-dashboard",
                "default_transaction_read_only": "on",
                "statement_timeout": str(settings.statement_timeout_ms),
            },
        },
    }


async def init_database() -> AsyncEngine:
    """Create the engine and session factory, then verify connectivity."""
    global _engine, _session_factory

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    settings = get_settings().database
    url = make_url(settings.async_url)
    engine = create_async_engine(url, echo=settings.echo, **engine_options(settings))

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Failed to connect to database", dialect=engine.dialect.name, error=str(e))
        await engine.dispose()
        raise

    _engine = engine
    _session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    logger.info(
        "Database connection established",
        dialect=engine.dialect.name,
        host=url.host,
        database=url.database,
    )
    return engine


async def close_database() -> None:
    global _engine, _session_factory

    if _engine is None:
        return

    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Database engine disposed")


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Read-only session scope.

    Nothing is committed: the transaction is rolled back on exit. Errors
    are logged with their type and re-raised.

    Example:
        async with get_db() as db:
            totals = await get_sales_totals(db, start, end)
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    async with _session_factory() as session:
        try:
            yield session
        except Exception as e:
            logger.error("Database session error", error=str(e), error_type=type(e).__name__)
            raise
        finally:
            await session.rollback()


async def get_db_dependency() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session"""
    async with get_db() as session:
        yield session


async def check_database_health() -> Dict[str, Any]:
    """Round-trip a trivial query and report its latency."""
    if _engine is None:
        return {"status": "unhealthy", "error": "database not initialized"}

    start = time.perf_counter()
    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}

    return {
        "status": "healthy",
        "dialect": _engine.dialect.name,
        "latency_ms": round((time.perf_counter() - start) * 1000, 2),
    }
