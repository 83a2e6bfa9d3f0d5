"""Page move and page delete handlers."""
from __future__ import annotations

import logging

from globalusage.db.repositories.base import UsageRepository
from globalusage.models import PageTitle
from globalusage.services.purge import PurgeDispatcher

logger = logging.getLogger("globalusage.events")


class MoveHandler:
    def __init__(self, index: UsageRepository, purger: PurgeDispatcher):
        self.index = index
        self.purger = purger

    async def on_move(self, old_title: PageTitle, new_title: PageTitle, page_id: int) -> int:
        """Re-key the page's rows under its new title.

        Moving a page into or out of the file namespace renames a file as far
        as other sites are concerned, so each file-namespace title is purged.
        Returns the number of purge requests queued.
        """
        await self.index.move_to(page_id, new_title)
        logger.debug(f"Page {page_id} moved: {old_title.title} -> {new_title.title}")

        file_titles = [t for t in (old_title, new_title) if t.is_file()]
        if not file_titles:
            return 0
        return await self.purger.maybe_dispatch_many(file_titles)


class DeleteHandler:
    def __init__(self, index: UsageRepository):
        self.index = index

    async def on_page_delete(self, page_id: int) -> None:
        await self.index.delete_links_from_page(page_id)
        logger.debug(f"Page {page_id} deleted, global file links removed")
