"""Backlink purge dispatch for shared repository file changes."""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from globalusage import config
from globalusage.collaborators import PurgeQueue
from globalusage.models import PageTitle, PurgeRequest

logger = logging.getLogger("globalusage.purge")


class PurgeDispatcher:
    """Decides whether a file title change fans out to other sites, and enqueues it.

    Only the site hosting the shared repository fans out. A failing queue is
    logged and never fails the lifecycle event that triggered the purge.
    """

    def __init__(
        self,
        queue: PurgeQueue,
        site_id: str | None = None,
        shared_repo_site_id: str | None = None,
        enabled: bool | None = None,
        timeout: float | None = None,
    ):
        self.queue = queue
        self.site_id = config.SITE_ID if site_id is None else site_id
        self.shared_repo_site_id = (
            config.SHARED_REPO_HOST_SITE_ID if shared_repo_site_id is None else shared_repo_site_id
        )
        self.enabled = config.ENABLE_BACKLINK_PURGE if enabled is None else enabled
        self.timeout = config.PURGE_ENQUEUE_TIMEOUT_SECONDS if timeout is None else timeout

    def should_dispatch(self) -> bool:
        return bool(self.enabled and self.shared_repo_site_id and self.site_id == self.shared_repo_site_id)

    async def _enqueue(self, title: PageTitle) -> bool:
        request = PurgeRequest(title=title, site=self.site_id)
        try:
            await asyncio.wait_for(self.queue.enqueue(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Timed out after {self.timeout}s enqueueing backlink purge for {title.title}")
            return False
        except Exception as e:
            logger.error(f"Failed to enqueue backlink purge for {title.title}: {e}")
            return False
        logger.info(f"Queued backlink purge for {title.title}")
        return True

    async def maybe_dispatch(self, title: PageTitle) -> bool:
        if not self.should_dispatch():
            return False
        return await self._enqueue(title)

    async def maybe_dispatch_many(self, titles: Iterable[PageTitle]) -> int:
        if not self.should_dispatch():
            return 0
        accepted = 0
        for title in titles:
            if await self._enqueue(title):
                accepted += 1
        return accepted
