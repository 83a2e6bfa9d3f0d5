"""PostgreSQL implementation of UsageRepository."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable

import asyncpg

from globalusage.collaborators import LocalLinkSource
from globalusage.models import PageRef, PageTitle


class PostgresUsageRepository:
    """Global file usage rows owned by one site, on a pool or a connection."""

    def __init__(self, db: asyncpg.Pool | asyncpg.Connection, site: str):
        self.db = db
        self.site = site
        self._conn: asyncpg.Connection | None = None

    @property
    def _executor(self) -> Any:
        return self._conn if self._conn is not None else self.db

    @asynccontextmanager
    async def transaction(self, page_id: int | None = None) -> AsyncIterator["PostgresUsageRepository"]:
        """Open a transaction; with page_id, hold that page's advisory lock until it ends."""
        if self._conn is not None:
            # Nested: the outer block owns the transaction
            yield self
            return

        if isinstance(self.db, asyncpg.Pool):
            async with self.db.acquire() as conn:
                async with conn.transaction():
                    self._conn = conn
                    await self._lock_page(page_id)
                    try:
                        yield self
                    finally:
                        self._conn = None
        else:
            async with self.db.transaction():
                self._conn = self.db
                await self._lock_page(page_id)
                try:
                    yield self
                finally:
                    self._conn = None

    async def _lock_page(self, page_id: int | None) -> None:
        if page_id is None:
            return
        await self._conn.execute(
            "SELECT pg_advisory_xact_lock(hashtextextended($1 || ':' || $2::text, 0))",
            self.site, page_id,
        )

    async def _insert_rows(self, rows: list[tuple]) -> int:
        if not rows:
            return 0
        async with self.transaction():
            inserted = await self._conn.fetch(
                """INSERT INTO global_file_links (
                    site, page_id, page_namespace_id, page_namespace, page_title, file_key
                )
                SELECT * FROM unnest($1::text[], $2::bigint[], $3::int[], $4::text[], $5::text[], $6::text[])
                ON CONFLICT (site, page_id, file_key) DO NOTHING
                RETURNING file_key""",
                [r[0] for r in rows], [r[1] for r in rows], [r[2] for r in rows],
                [r[3] for r in rows], [r[4] for r in rows], [r[5] for r in rows],
            )
        return len(inserted)

    async def get_links_from_page(self, page_id: int) -> set[str]:
        rows = await self._executor.fetch(
            "SELECT file_key FROM global_file_links WHERE site = $1 AND page_id = $2",
            self.site, page_id,
        )
        return {r["file_key"] for r in rows}

    async def get_links_to_file(self, file_key: str) -> list[dict]:
        rows = await self._executor.fetch(
            """SELECT * FROM global_file_links
               WHERE site = $1 AND file_key = $2
               ORDER BY page_namespace_id, page_title""",
            self.site, file_key,
        )
        return [dict(r) for r in rows]

    async def insert_links(self, page: PageRef, file_keys: Iterable[str]) -> int:
        rows = [
            (self.site, page.id, page.namespace, page.namespaceName, page.title, key)
            for key in sorted(set(file_keys))
        ]
        return await self._insert_rows(rows)

    async def delete_links_from_page(self, page_id: int, file_keys: Iterable[str] | None = None) -> None:
        if file_keys is None:
            await self._executor.execute(
                "DELETE FROM global_file_links WHERE site = $1 AND page_id = $2",
                self.site, page_id,
            )
            return

        keys = sorted(set(file_keys))
        if not keys:
            return
        await self._executor.execute(
            "DELETE FROM global_file_links WHERE site = $1 AND page_id = $2 AND file_key = ANY($3::text[])",
            self.site, page_id, keys,
        )

    async def move_to(self, page_id: int, title: PageTitle) -> None:
        await self._executor.execute(
            """UPDATE global_file_links
               SET page_namespace_id = $1, page_namespace = $2, page_title = $3
               WHERE site = $4 AND page_id = $5""",
            title.namespace, title.namespaceName, title.title, self.site, page_id,
        )

    async def copy_local_links_to_global(self, file_key: str, local_links: LocalLinkSource) -> int:
        pages = await local_links.pages_linking(file_key)
        rows = [
            (self.site, page.id, page.namespace, page.namespaceName, page.title, file_key)
            for page in pages
        ]
        return await self._insert_rows(rows)

    async def delete_links_to_file(self, file_key: str) -> None:
        await self._executor.execute(
            "DELETE FROM global_file_links WHERE site = $1 AND file_key = $2",
            self.site, file_key,
        )
