"""SQLite implementation of UsageRepository."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable

import aiosqlite

from globalusage.collaborators import LocalLinkSource
from globalusage.models import PageRef, PageTitle


class SqliteUsageRepository:
    """Global file usage rows owned by one site.

    Every mutating call is its own transaction unless it runs inside
    ``transaction()``, in which case the outermost block commits or rolls back.
    The outermost block opens with BEGIN IMMEDIATE, so reads made inside it see
    no concurrent writer until it ends.
    """

    def __init__(self, db: aiosqlite.Connection, site: str):
        self.db = db
        self.site = site
        self._tx_depth = 0

    @asynccontextmanager
    async def transaction(self, page_id: int | None = None) -> AsyncIterator["SqliteUsageRepository"]:
        # SQLite locks the whole database; page_id only narrows the Postgres lock
        if self._tx_depth == 0 and not self.db.in_transaction:
            await self.db.execute("BEGIN IMMEDIATE")
        self._tx_depth += 1
        try:
            yield self
        except BaseException:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                await self.db.rollback()
            raise
        self._tx_depth -= 1
        if self._tx_depth == 0:
            await self.db.commit()

    async def _insert_rows(self, rows: list[tuple]) -> int:
        if not rows:
            return 0
        async with self.transaction():
            before = self.db.total_changes
            await self.db.executemany(
                """INSERT OR IGNORE INTO global_file_links (
                    site, page_id, page_namespace_id, page_namespace, page_title, file_key
                ) VALUES (?, ?, ?, ?, ?, ?)""",
                rows,
            )
            return self.db.total_changes - before

    async def get_links_from_page(self, page_id: int) -> set[str]:
        async with self.db.execute(
            "SELECT file_key FROM global_file_links WHERE site = ? AND page_id = ?",
            (self.site, page_id),
        ) as cur:
            return {row[0] for row in await cur.fetchall()}

    async def get_links_to_file(self, file_key: str) -> list[dict]:
        async with self.db.execute(
            """SELECT * FROM global_file_links
               WHERE site = ? AND file_key = ?
               ORDER BY page_namespace_id, page_title""",
            (self.site, file_key),
        ) as cur:
            columns = [c[0] for c in cur.description]
            return [dict(zip(columns, r)) for r in await cur.fetchall()]

    async def insert_links(self, page: PageRef, file_keys: Iterable[str]) -> int:
        rows = [
            (self.site, page.id, page.namespace, page.namespaceName, page.title, key)
            for key in sorted(set(file_keys))
        ]
        return await self._insert_rows(rows)

    async def delete_links_from_page(self, page_id: int, file_keys: Iterable[str] | None = None) -> None:
        if file_keys is None:
            async with self.transaction():
                await self.db.execute(
                    "DELETE FROM global_file_links WHERE site = ? AND page_id = ?",
                    (self.site, page_id),
                )
            return

        keys = sorted(set(file_keys))
        if not keys:
            return
        async with self.transaction():
            await self.db.executemany(
                "DELETE FROM global_file_links WHERE site = ? AND page_id = ? AND file_key = ?",
                [(self.site, page_id, key) for key in keys],
            )

    async def move_to(self, page_id: int, title: PageTitle) -> None:
        async with self.transaction():
            await self.db.execute(
                """UPDATE global_file_links
                   SET page_namespace_id = ?, page_namespace = ?, page_title = ?
                   WHERE site = ? AND page_id = ?""",
                (title.namespace, title.namespaceName, title.title, self.site, page_id),
            )

    async def copy_local_links_to_global(self, file_key: str, local_links: LocalLinkSource) -> int:
        pages = await local_links.pages_linking(file_key)
        rows = [
            (self.site, page.id, page.namespace, page.namespaceName, page.title, file_key)
            for page in pages
        ]
        return await self._insert_rows(rows)

    async def delete_links_to_file(self, file_key: str) -> None:
        async with self.transaction():
            await self.db.execute(
                "DELETE FROM global_file_links WHERE site = ? AND file_key = ?",
                (self.site, file_key),
            )
