"""Interfaces of the host-side collaborators the usage index relies on.

The host supplies the implementations: a local file lookup that knows about
filename normalization and redirects, the local page→file link table, and a
job queue that delivers purge requests to other sites.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from globalusage.models import PageRef, PurgeRequest, ResolvedFile


@runtime_checkable
class FileResolver(Protocol):
    async def resolve(self, keys: list[str]) -> dict[str, ResolvedFile]:
        """Map each key that names a local file to its canonical key.

        Called with bounded batches; keys absent from the answer are not local.
        """
        ...


@runtime_checkable
class LocalLinkSource(Protocol):
    async def pages_linking(self, file_key: str) -> list[PageRef]:
        ...


@runtime_checkable
class PurgeQueue(Protocol):
    async def enqueue(self, request: PurgeRequest) -> None:
        """Hand the request to the job queue and return promptly.

        Delivery happens later, at least once. Calls that outlive the
        dispatcher timeout are abandoned and logged.
        """
        ...
