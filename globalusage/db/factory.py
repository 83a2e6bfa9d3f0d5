"""Repository factory to abstract DB backend (SQLite vs Postgres)."""
from __future__ import annotations

from typing import Any

import aiosqlite

from globalusage.db.repositories.usage import SqliteUsageRepository


def get_usage_repository(db: Any, site: str):
    if isinstance(db, aiosqlite.Connection):
        return SqliteUsageRepository(db, site)
    from globalusage.db.repositories.postgres.usage import PostgresUsageRepository
    return PostgresUsageRepository(db, site)
