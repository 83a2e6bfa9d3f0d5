"""PostgreSQL schema creation for the usage index."""
from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger("globalusage.db")

SCHEMA_VERSION = 1

_TABLES = """
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS global_file_links (
    site              TEXT NOT NULL,
    page_id           BIGINT NOT NULL,
    page_namespace_id INTEGER NOT NULL,
    page_namespace    TEXT NOT NULL DEFAULT '',
    page_title        TEXT NOT NULL,
    file_key          TEXT NOT NULL,
    created_at        TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_gfl_page_file ON global_file_links(site, page_id, file_key);
CREATE INDEX IF NOT EXISTS idx_gfl_site_ns_file ON global_file_links(site, page_namespace_id, file_key);
CREATE INDEX IF NOT EXISTS idx_gfl_file ON global_file_links(file_key, site);
"""


async def run_migrations(db: Any) -> None:
    """Create all tables and indexes on a pool or connection. Idempotent."""
    current_version = 0
    exists = await db.fetchval("SELECT to_regclass('schema_version') IS NOT NULL")
    if exists:
        current_version = await db.fetchval("SELECT MAX(version) FROM schema_version") or 0

    if current_version >= SCHEMA_VERSION:
        logger.info(f"Schema is up to date (version {current_version})")
        return

    logger.info(f"Running migrations: {current_version} → {SCHEMA_VERSION}")
    await db.execute(_TABLES)
    await db.execute("INSERT INTO schema_version (version) VALUES ($1)", SCHEMA_VERSION)
    logger.info(f"Migrations complete — schema version {SCHEMA_VERSION}")
