"""Routes typed lifecycle events to their handlers."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from globalusage.collaborators import FileResolver, LocalLinkSource, PurgeQueue
from globalusage.db.factory import get_usage_repository
from globalusage.db.repositories.base import UsageRepository
from globalusage.db.sync_engine import SyncEngine
from globalusage.models import (
    FileDeleted,
    FileUndeleted,
    FileUploaded,
    PageContentChanged,
    PageDeleted,
    PageMoved,
)
from globalusage.services.file_lifecycle import FileLifecycleHandler
from globalusage.services.page_handlers import DeleteHandler, MoveHandler
from globalusage.services.purge import PurgeDispatcher

logger = logging.getLogger("globalusage.events")


class EventDispatcher:
    """Request-scoped: one usage index, one set of handlers."""

    def __init__(
        self,
        index: UsageRepository,
        resolver: FileResolver,
        local_links: LocalLinkSource,
        purger: PurgeDispatcher,
    ):
        self.index = index
        self.sync_engine = SyncEngine(index, resolver)
        self.move_handler = MoveHandler(index, purger)
        self.delete_handler = DeleteHandler(index)
        self.file_handler = FileLifecycleHandler(index, local_links, purger)
        self._handlers: dict[type, Callable[[Any], Awaitable[Any]]] = {
            PageContentChanged: lambda e: self.sync_engine.reconcile(e.page, e.referencedKeys),
            PageMoved: lambda e: self.move_handler.on_move(e.oldTitle, e.newTitle, e.pageId),
            PageDeleted: lambda e: self.delete_handler.on_page_delete(e.pageId),
            FileDeleted: lambda e: self.file_handler.on_file_delete(e.fileTitle, e.isOldRevisionDelete),
            FileUndeleted: lambda e: self.file_handler.on_file_undelete(e.fileTitle),
            FileUploaded: lambda e: self.file_handler.on_file_upload(e.fileTitle),
        }

    @classmethod
    def for_site(
        cls,
        db: Any,
        site: str,
        resolver: FileResolver,
        local_links: LocalLinkSource,
        queue: PurgeQueue,
    ) -> "EventDispatcher":
        return cls(
            get_usage_repository(db, site),
            resolver,
            local_links,
            PurgeDispatcher(queue, site_id=site),
        )

    async def dispatch(self, event: Any) -> Any:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"No handler for lifecycle event {type(event).__name__}")
        logger.debug(f"Dispatching {event.kind} on site {self.index.site}")
        return await handler(event)
