"""SQLite schema creation and versioning for the usage index.

Uses IF NOT EXISTS for idempotent runs.
"""
from __future__ import annotations

import logging

import aiosqlite

logger = logging.getLogger("globalusage.db")

SCHEMA_VERSION = 1

_TABLES = """
-- ── Schema version tracking ────────────────────────────────────────
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- ── Global file usage (page → shared file) ─────────────────────────
CREATE TABLE IF NOT EXISTS global_file_links (
    site              TEXT NOT NULL,
    page_id           INTEGER NOT NULL,
    page_namespace_id INTEGER NOT NULL,
    page_namespace    TEXT NOT NULL DEFAULT '',
    page_title        TEXT NOT NULL,
    file_key          TEXT NOT NULL,
    created_at        TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_gfl_page_file ON global_file_links(site, page_id, file_key);

-- "Which pages on site X use file F" lookups
CREATE INDEX IF NOT EXISTS idx_gfl_site_ns_file ON global_file_links(site, page_namespace_id, file_key);
CREATE INDEX IF NOT EXISTS idx_gfl_file ON global_file_links(file_key, site);
"""


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Create all tables and indexes. Idempotent."""
    try:
        async with db.execute("SELECT MAX(version) FROM schema_version") as cur:
            row = await cur.fetchone()
            current_version = row[0] if row and row[0] else 0
    except aiosqlite.OperationalError:
        current_version = 0

    if current_version >= SCHEMA_VERSION:
        logger.info(f"Schema is up to date (version {current_version})")
        return

    logger.info(f"Running migrations: {current_version} → {SCHEMA_VERSION}")

    await db.executescript(_TABLES)

    await db.execute(
        "INSERT INTO schema_version (version) VALUES (?)",
        (SCHEMA_VERSION,),
    )
    await db.commit()
    logger.info(f"Migrations complete — schema version {SCHEMA_VERSION}")
