"""Global usage FastAPI application factory."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import aiosqlite
from fastapi import FastAPI

from globalusage import config
from globalusage.collaborators import FileResolver, LocalLinkSource, PurgeQueue
from globalusage.db import connection, migrations
from globalusage.routers.events import events_router, usage_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("globalusage")


def create_app(
    resolver: FileResolver,
    local_links: LocalLinkSource,
    purge_queue: PurgeQueue,
    site_id: str | None = None,
) -> FastAPI:
    """Build the app around the host's collaborators.

    The database handle is opened on startup and closed on shutdown; each
    request builds its own repository and handlers on top of it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Global usage index starting up")
        db = await connection.open_connection()
        await migrations.run_migrations(db)
        app.state.db = db
        # One SQLite connection is shared by all requests; serialize writes on it
        app.state.write_lock = asyncio.Lock() if isinstance(db, aiosqlite.Connection) else None
        try:
            yield
        finally:
            app.state.db = None
            await connection.close_connection(db)
            logger.info("Global usage index shut down")

    app = FastAPI(title="Global Usage Index", lifespan=lifespan)
    app.state.site_id = site_id or config.SITE_ID
    app.state.resolver = resolver
    app.state.local_links = local_links
    app.state.purge_queue = purge_queue
    app.include_router(events_router)
    app.include_router(usage_router)
    return app
