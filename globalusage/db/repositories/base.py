"""Repository protocols shared by the SQLite and Postgres backends."""
from __future__ import annotations

from typing import AsyncContextManager, Iterable, Protocol, runtime_checkable

from globalusage.collaborators import LocalLinkSource
from globalusage.models import PageRef, PageTitle


@runtime_checkable
class UsageRepository(Protocol):
    """Per-site view of the global file usage table."""

    site: str

    def transaction(self, page_id: int | None = None) -> AsyncContextManager["UsageRepository"]:
        """Atomic block; with page_id, writers of that page are serialized until it ends."""
        ...

    async def get_links_from_page(self, page_id: int) -> set[str]: ...

    async def get_links_to_file(self, file_key: str) -> list[dict]: ...

    async def insert_links(self, page: PageRef, file_keys: Iterable[str]) -> int: ...

    async def delete_links_from_page(self, page_id: int, file_keys: Iterable[str] | None = None) -> None: ...

    async def move_to(self, page_id: int, title: PageTitle) -> None: ...

    async def copy_local_links_to_global(self, file_key: str, local_links: LocalLinkSource) -> int: ...

    async def delete_links_to_file(self, file_key: str) -> None: ...
