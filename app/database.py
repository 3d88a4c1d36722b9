"""Database configuration and connection management."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import Column, Table, select, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.config import settings

# SQLSTATE codes for undefined_table / undefined_column
MISSING_SCHEMA_SQLSTATES = {"42P01", "42703"}
MISSING_SCHEMA_MESSAGES = (
    "no such table",
    "no such column",
    "undefinedtableerror",
    "undefinedcolumnerror",
)


def _async_url(url: str) -> str:
    """Convert a sync database URL to its async driver form."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def _engine_options() -> dict[str, Any]:
    """Pool options for the configured backend."""
    if settings.is_sqlite:
        return {"poolclass": NullPool}
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 3600,
        "connect_args": {
            "server_settings": {
                "application_name": settings.app_name,
            },
        },
    }


DATABASE_URL = _async_url(settings.database_url)

# Create async engine with connection pooling
engine: AsyncEngine = create_async_engine(
    DATABASE_URL,
    echo=settings.debug,
    **_engine_options(),
)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def check_database_connection() -> bool:
    """Check if database connection is healthy."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


def is_missing_schema_error(exc: BaseException) -> bool:
    """
    Tell whether a database error means a table or column does not exist.

    Args:
        exc: Exception raised by SQLAlchemy or the driver

    Returns:
        True for undefined table/column errors
    """
    orig = getattr(exc, "orig", exc)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in MISSING_SCHEMA_SQLSTATES:
        return True
    message = str(orig).lower()
    return any(fragment in message for fragment in MISSING_SCHEMA_MESSAGES)


async def column_available(db: AsyncSession, column: Column) -> bool:
    """
    Probe a column with a cheap query.

    A missing table or column is reported as False; any other error
    propagates. The session is rolled back after a failed probe so it
    stays usable.

    Args:
        db: Database session
        column: Column to probe

    Returns:
        True if the column can be queried
    """
    try:
        await db.execute(select(column).limit(1))
        return True
    except DBAPIError as e:
        await db.rollback()
        if is_missing_schema_error(e):
            return False
        raise


async def table_available(db: AsyncSession, table: Table) -> bool:
    """Probe a table through its id column."""
    return await column_available(db, table.c.id)
