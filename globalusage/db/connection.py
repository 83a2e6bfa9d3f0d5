"""Database connection factory.

Opens an async connection to SQLite (default) with WAL mode, or an asyncpg
pool when GLOBALUSAGE_DB_BACKEND=postgres. Callers own the returned handle
and close it with close_connection().
"""
from __future__ import annotations

import logging
from typing import Union, Any

import aiosqlite
try:
    import asyncpg
except ImportError:
    asyncpg = None  # type: ignore

from globalusage import config

logger = logging.getLogger("globalusage.db")

# Type alias for DB connection/pool
DbConnection = Union[aiosqlite.Connection, Any]  # Any to support asyncpg.Pool


async def open_connection() -> DbConnection:
    """Open a database connection/pool for the configured backend."""
    if config.DB_BACKEND == "postgres":
        if not asyncpg:
            raise ImportError("asyncpg is required for Postgres backend.")

        logger.info("Connecting to PostgreSQL")
        return await asyncpg.create_pool(config.DATABASE_URL)

    db_path = config.DB_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = await aiosqlite.connect(str(db_path))
    conn.row_factory = aiosqlite.Row
    # Enable WAL mode for better concurrent read performance
    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA busy_timeout=5000")
    logger.info(f"Database connection established: {db_path}")
    return conn


async def close_connection(db: DbConnection | None) -> None:
    """Close a connection/pool returned by open_connection()."""
    if db is None:
        return
    await db.close()
    logger.info("Database connection closed")
