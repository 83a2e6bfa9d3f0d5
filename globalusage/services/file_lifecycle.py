"""Reclassifies a file's usage when it stops or starts existing locally."""
from __future__ import annotations

import logging

from globalusage.collaborators import LocalLinkSource
from globalusage.db.repositories.base import UsageRepository
from globalusage.models import PageTitle
from globalusage.services.purge import PurgeDispatcher

logger = logging.getLogger("globalusage.events")


class FileLifecycleHandler:
    def __init__(self, index: UsageRepository, local_links: LocalLinkSource, purger: PurgeDispatcher):
        self.index = index
        self.local_links = local_links
        self.purger = purger

    async def on_file_delete(self, file_title: PageTitle, is_old_revision_delete: bool = False) -> bool:
        """Local file gone: pages linking it now use the shared copy.

        Deleting an archived revision leaves the current file in place, so
        nothing changes. Returns whether the event was acted upon.
        """
        if is_old_revision_delete:
            return False

        copied = await self.index.copy_local_links_to_global(file_title.title, self.local_links)
        logger.info(f"File {file_title.title} deleted locally, {copied} page link(s) now global")
        await self.purger.maybe_dispatch(file_title)
        return True

    async def on_file_undelete(self, file_title: PageTitle) -> None:
        await self._file_became_local(file_title)

    async def on_file_upload(self, file_title: PageTitle) -> None:
        await self._file_became_local(file_title)

    async def _file_became_local(self, file_title: PageTitle) -> None:
        await self.index.delete_links_to_file(file_title.title)
        logger.info(f"File {file_title.title} is local again, global links dropped")
        await self.purger.maybe_dispatch(file_title)
