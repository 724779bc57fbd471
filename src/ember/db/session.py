"""Database engine and session factory construction.

The API builds its engine from settings at startup; tests build their own
pair against a temporary file.
"""

import logging

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

logger = logging.getLogger(__name__)


def create_session_factory(
    database_url: str, echo: bool = False
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an async engine and its session factory.

    Args:
        database_url: SQLAlchemy async URL (e.g. sqlite+aiosqlite:///./ember.db)
        echo: Emit SQL through SQLAlchemy's own logger

    Returns:
        (engine, session factory) with expire_on_commit disabled
    """
    engine = create_async_engine(database_url, echo=echo)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    return engine, factory


# ============================================================================
# Engine Event Hooks
# ============================================================================


@event.listens_for(Engine, "connect")
def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """Turn on foreign key enforcement for SQLite connections.

    ON DELETE SET NULL / CASCADE clauses are ignored by SQLite otherwise.
    """
    module = type(dbapi_connection).__module__
    if "sqlite" not in module:
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(Engine, "before_cursor_execute")
def log_query_before_execute(conn, cursor, statement, parameters, context, executemany):
    """Log SQL statements at DEBUG level."""
    logger.debug("SQL Query: %s", statement)


# ============================================================================
# Database Initialization
# ============================================================================


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables defined in Base.metadata if they don't exist."""
    from ember.db.models import Base

    logger.info("Initializing database schema...")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database schema initialized successfully")


async def close_db(engine: AsyncEngine) -> None:
    """Dispose the engine and release pooled connections."""
    logger.info("Closing database connections...")
    await engine.dispose()
    logger.info("Database connections closed")
