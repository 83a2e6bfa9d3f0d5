import types
import unittest
from unittest.mock import patch

import aiosqlite
from fastapi import HTTPException
from pydantic import TypeAdapter

from globalusage import config
from globalusage.db.repositories.usage import SqliteUsageRepository
from globalusage.db.sqlite_migrations import run_migrations
from globalusage.models import (
    FileDeleted,
    FileUndeleted,
    FileUploaded,
    LifecycleEvent,
    PageContentChanged,
    PageDeleted,
    PageMoved,
    PageRef,
    PageTitle,
    ResolvedFile,
)
from globalusage.routers import events as events_router
from globalusage.services.dispatcher import EventDispatcher
from globalusage.services.purge import PurgeDispatcher


class _FakeResolver:
    def __init__(self, local: set[str]):
        self.local = local

    async def resolve(self, keys):
        return {k: ResolvedFile(canonicalKey=k) for k in keys if k in self.local}


class _FakeLocalLinks:
    async def pages_linking(self, file_key):
        return [PageRef(id=5, namespace=0, title="Bar")]


class _RecordingQueue:
    def __init__(self) -> None:
        self.requests = []

    async def enqueue(self, request) -> None:
        self.requests.append(request)


class EventDispatcherTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await aiosqlite.connect(":memory:")
        self.db.row_factory = aiosqlite.Row
        await run_migrations(self.db)
        self.queue = _RecordingQueue()
        self.dispatcher = EventDispatcher.for_site(
            self.db, "enwiki", _FakeResolver({"A.jpg"}), _FakeLocalLinks(), self.queue
        )

    async def asyncTearDown(self) -> None:
        await self.db.close()

    async def test_events_route_to_handlers(self) -> None:
        page = PageRef(id=5, namespace=0, title="Foo")
        result = await self.dispatcher.dispatch(
            PageContentChanged(page=page, referencedKeys=["A.jpg", "B.png"])
        )
        self.assertEqual(result.added, ["B.png"])

        await self.dispatcher.dispatch(
            PageMoved(oldTitle=PageTitle(title="Foo"), newTitle=PageTitle(title="Foo2"), pageId=5)
        )
        rows = await self.dispatcher.index.get_links_to_file("B.png")
        self.assertEqual(rows[0]["page_title"], "Foo2")

        await self.dispatcher.dispatch(PageDeleted(pageId=5))
        self.assertEqual(await self.dispatcher.index.get_links_from_page(5), set())

    def _host_dispatcher(self) -> EventDispatcher:
        repo = SqliteUsageRepository(self.db, "commonswiki")
        purger = PurgeDispatcher(self.queue, site_id="commonswiki", shared_repo_site_id="commonswiki", enabled=True)
        return EventDispatcher(repo, _FakeResolver(set()), _FakeLocalLinks(), purger)

    async def test_file_deleted_copies_local_links_and_purges(self) -> None:
        dispatcher = self._host_dispatcher()
        title = PageTitle(namespace=6, namespaceName="File", title="Shared.png")

        applied = await dispatcher.dispatch(FileDeleted(fileTitle=title))

        self.assertTrue(applied)
        rows = await dispatcher.index.get_links_to_file("Shared.png")
        self.assertEqual([row["page_id"] for row in rows], [5])
        self.assertEqual([r.title.title for r in self.queue.requests], ["Shared.png"])

    async def test_file_undeleted_and_uploaded_clear_links_and_purge(self) -> None:
        dispatcher = self._host_dispatcher()
        for name, event_cls in (("Back.png", FileUndeleted), ("Fresh.png", FileUploaded)):
            await dispatcher.index.insert_links(PageRef(id=7, title="Gallery"), [name])

            await dispatcher.dispatch(event_cls(fileTitle=PageTitle(namespace=6, title=name)))

            self.assertEqual(await dispatcher.index.get_links_to_file(name), [])
        self.assertEqual([r.title.title for r in self.queue.requests], ["Back.png", "Fresh.png"])
        self.assertTrue(all(r.site == "commonswiki" for r in self.queue.requests))

    async def test_unknown_event_raises_type_error(self) -> None:
        with self.assertRaises(TypeError):
            await self.dispatcher.dispatch(object())

    def test_lifecycle_event_union_parses_by_kind(self) -> None:
        adapter = TypeAdapter(LifecycleEvent)
        event = adapter.validate_python(
            {"kind": "file-deleted", "fileTitle": {"namespace": 6, "title": "Shared.png"}}
        )
        self.assertIsInstance(event, FileDeleted)
        self.assertFalse(event.isOldRevisionDelete)


class EventsRouterTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await aiosqlite.connect(":memory:")
        self.db.row_factory = aiosqlite.Row
        await run_migrations(self.db)
        self.queue = _RecordingQueue()

    async def asyncTearDown(self) -> None:
        await self.db.close()

    def _request(self, **overrides):
        state = dict(
            db=self.db,
            site_id="enwiki",
            resolver=_FakeResolver({"A.jpg"}),
            local_links=_FakeLocalLinks(),
            purge_queue=self.queue,
            write_lock=None,
        )
        state.update(overrides)
        return types.SimpleNamespace(app=types.SimpleNamespace(state=types.SimpleNamespace(**state)))

    async def test_page_content_changed_returns_diff(self) -> None:
        request = self._request()
        payload = await events_router.page_content_changed(
            request,
            PageContentChanged(page=PageRef(id=1, title="Foo"), referencedKeys=["A.jpg", "B.png", "C.gif"]),
        )

        self.assertEqual(payload["status"], "ok")
        self.assertEqual(payload["added"], ["B.png", "C.gif"])

        usage = await events_router.get_page_usage(request, 1)
        self.assertEqual(usage["files"], ["B.png", "C.gif"])

    async def test_file_deleted_reports_skip_for_old_revision(self) -> None:
        request = self._request()
        payload = await events_router.file_deleted(
            request,
            FileDeleted(fileTitle=PageTitle(namespace=6, title="Shared.png"), isOldRevisionDelete=True),
        )
        self.assertEqual(payload["status"], "skipped")

        payload = await events_router.file_deleted(
            request, FileDeleted(fileTitle=PageTitle(namespace=6, title="Shared.png"))
        )
        self.assertEqual(payload["status"], "ok")

        usage = await events_router.get_file_usage(request, "Shared.png")
        self.assertEqual(usage["count"], 1)
        self.assertEqual(usage["items"][0].pageId, 5)

    async def test_page_moved_rekeys_and_counts_purges(self) -> None:
        request = self._request()
        await events_router.page_content_changed(
            request, PageContentChanged(page=PageRef(id=1, title="Foo"), referencedKeys=["B.png"])
        )

        with patch.object(config, "SHARED_REPO_HOST_SITE_ID", "enwiki"), patch.object(
            config, "ENABLE_BACKLINK_PURGE", True
        ):
            payload = await events_router.page_moved(
                request,
                PageMoved(
                    oldTitle=PageTitle(namespace=6, title="Old.png"),
                    newTitle=PageTitle(namespace=6, title="New.png"),
                    pageId=1,
                ),
            )

        self.assertEqual(payload, {"status": "ok", "pageId": 1, "purgesQueued": 2})
        usage = await events_router.get_file_usage(request, "B.png")
        self.assertEqual(usage["items"][0].title, "New.png")

    async def test_file_undeleted_and_uploaded_clear_file_usage(self) -> None:
        request = self._request()
        await events_router.page_content_changed(
            request, PageContentChanged(page=PageRef(id=1, title="Foo"), referencedKeys=["Back.png", "Fresh.png"])
        )

        payload = await events_router.file_undeleted(
            request, FileUndeleted(fileTitle=PageTitle(namespace=6, title="Back.png"))
        )
        self.assertEqual(payload, {"status": "ok", "file": "Back.png"})
        payload = await events_router.file_uploaded(
            request, FileUploaded(fileTitle=PageTitle(namespace=6, title="Fresh.png"))
        )
        self.assertEqual(payload, {"status": "ok", "file": "Fresh.png"})

        usage = await events_router.get_page_usage(request, 1)
        self.assertEqual(usage["files"], [])
        self.assertEqual(self.queue.requests, [])

    async def test_missing_state_returns_503(self) -> None:
        request = self._request(db=None)
        with self.assertRaises(HTTPException) as ctx:
            await events_router.page_deleted(request, PageDeleted(pageId=1))
        self.assertEqual(ctx.exception.status_code, 503)


if __name__ == "__main__":
    unittest.main()
