"""Lifecycle event ingress and usage index read API."""
from __future__ import annotations

import logging
from contextlib import nullcontext

from fastapi import APIRouter, HTTPException, Request

from globalusage.db.factory import get_usage_repository
from globalusage.models import (
    FileDeleted,
    FileUndeleted,
    FileUploaded,
    PageContentChanged,
    PageDeleted,
    PageMoved,
    UsageRecord,
)
from globalusage.services.dispatcher import EventDispatcher

logger = logging.getLogger("globalusage.events")

events_router = APIRouter(prefix="/api/events", tags=["events"])
usage_router = APIRouter(prefix="/api/usage", tags=["usage"])

_REQUIRED_STATE = ("db", "site_id", "resolver", "local_links", "purge_queue")


def _get_state(request: Request):
    state = request.app.state
    missing = [name for name in _REQUIRED_STATE if getattr(state, name, None) is None]
    if missing:
        raise HTTPException(status_code=503, detail=f"Usage index not initialized: {', '.join(missing)}")
    return state


def _write_guard(request: Request):
    lock = getattr(request.app.state, "write_lock", None)
    return lock if lock is not None else nullcontext()


def _get_dispatcher(request: Request) -> EventDispatcher:
    state = _get_state(request)
    return EventDispatcher.for_site(
        state.db,
        state.site_id,
        state.resolver,
        state.local_links,
        state.purge_queue,
    )


@events_router.post("/page-content-changed")
async def page_content_changed(request: Request, event: PageContentChanged):
    """Reconcile a page's global file usage with its current references."""
    async with _write_guard(request):
        result = await _get_dispatcher(request).dispatch(event)
    return {"status": "ok", "pageId": result.pageId, "added": result.added, "removed": result.removed}


@events_router.post("/page-moved")
async def page_moved(request: Request, event: PageMoved):
    async with _write_guard(request):
        purges = await _get_dispatcher(request).dispatch(event)
    return {"status": "ok", "pageId": event.pageId, "purgesQueued": purges}


@events_router.post("/page-deleted")
async def page_deleted(request: Request, event: PageDeleted):
    async with _write_guard(request):
        await _get_dispatcher(request).dispatch(event)
    return {"status": "ok", "pageId": event.pageId}


@events_router.post("/file-deleted")
async def file_deleted(request: Request, event: FileDeleted):
    async with _write_guard(request):
        applied = await _get_dispatcher(request).dispatch(event)
    return {"status": "ok" if applied else "skipped", "file": event.fileTitle.title}


@events_router.post("/file-undeleted")
async def file_undeleted(request: Request, event: FileUndeleted):
    async with _write_guard(request):
        await _get_dispatcher(request).dispatch(event)
    return {"status": "ok", "file": event.fileTitle.title}


@events_router.post("/file-uploaded")
async def file_uploaded(request: Request, event: FileUploaded):
    async with _write_guard(request):
        await _get_dispatcher(request).dispatch(event)
    return {"status": "ok", "file": event.fileTitle.title}


@usage_router.get("/pages/{page_id}")
async def get_page_usage(request: Request, page_id: int):
    """List the shared files a page on this site uses."""
    state = _get_state(request)
    repo = get_usage_repository(state.db, state.site_id)
    files = sorted(await repo.get_links_from_page(page_id))
    return {"status": "ok", "pageId": page_id, "count": len(files), "files": files}


@usage_router.get("/files/{file_key}")
async def get_file_usage(request: Request, file_key: str):
    """List the pages on this site that use a shared file."""
    state = _get_state(request)
    repo = get_usage_repository(state.db, state.site_id)
    rows = await repo.get_links_to_file(file_key)
    items = [UsageRecord.from_row(row) for row in rows]
    return {"status": "ok", "file": file_key, "count": len(items), "items": items}
