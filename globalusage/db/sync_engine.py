"""Incremental page → usage index sync engine.

After a page edit, works out which of the page's file references are not
served by the local repository and reconciles the page's rows in the usage
index to exactly that set, writing only the difference.
"""
from __future__ import annotations

import logging
from typing import Iterable, Iterator

from globalusage import config
from globalusage.collaborators import FileResolver
from globalusage.db.repositories.base import UsageRepository
from globalusage.models import PageRef, SyncResult

logger = logging.getLogger("globalusage.sync")


def _batches(keys: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(keys), size):
        yield keys[start:start + size]


class SyncEngine:
    """Reconciles one page's global usage rows against its current content."""

    def __init__(self, index: UsageRepository, resolver: FileResolver, batch_size: int | None = None):
        self.index = index
        self.resolver = resolver
        self.batch_size = max(1, batch_size or config.RESOLVE_BATCH_SIZE)

    async def find_local_files(self, keys: Iterable[str]) -> set[str]:
        """Return the keys that resolve to a local file, plus their canonical keys.

        A key reached through a redirect contributes both the alias and the
        target, so neither is later mistaken for a shared file.
        """
        ordered = sorted(set(keys))
        local: set[str] = set()
        for batch in _batches(ordered, self.batch_size):
            resolved = await self.resolver.resolve(batch)
            for key in batch:
                info = resolved.get(key)
                if info is None or not info.existsLocally:
                    continue
                local.add(key)
                if info.canonicalKey and info.canonicalKey != key:
                    local.add(info.canonicalKey)
        return local

    async def reconcile(self, page: PageRef, referenced_keys: Iterable[str]) -> SyncResult:
        referenced = set(referenced_keys)
        local_files = await self.find_local_files(referenced)
        missing = referenced - local_files

        async with self.index.transaction(page_id=page.id):
            existing = await self.index.get_links_from_page(page.id)

            added = missing - existing
            removed = existing - missing

            if added:
                await self.index.insert_links(page, added)
            if removed:
                await self.index.delete_links_from_page(page.id, removed)

        result = SyncResult(pageId=page.id, added=sorted(added), removed=sorted(removed))
        if result.changed:
            logger.debug(
                f"Page {page.id} ({page.title}): +{len(result.added)} -{len(result.removed)} global file links"
            )
        return result
