"""Pydantic models for the usage index and the lifecycle events feeding it."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from globalusage import config


# ── Page identity ───────────────────────────────────────────────────

class PageTitle(BaseModel):
    namespace: int = 0
    title: str = Field(..., min_length=1)
    namespaceName: str = ""

    def in_namespace(self, namespace: int) -> bool:
        return self.namespace == namespace

    def is_file(self) -> bool:
        return self.in_namespace(config.FILE_NAMESPACE)


class PageRef(BaseModel):
    """A page entity as handed over by the host after an edit."""
    id: int
    namespace: int = 0
    title: str = Field(..., min_length=1)
    namespaceName: str = ""


# ── Index rows ──────────────────────────────────────────────────────

class UsageRecord(BaseModel):
    site: str
    pageId: int
    namespace: int
    namespaceName: str = ""
    title: str
    fileKey: str

    @classmethod
    def from_row(cls, row: dict) -> "UsageRecord":
        return cls(
            site=row["site"],
            pageId=row["page_id"],
            namespace=row["page_namespace_id"],
            namespaceName=row.get("page_namespace") or "",
            title=row["page_title"],
            fileKey=row["file_key"],
        )


class SyncResult(BaseModel):
    pageId: int
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


# ── Collaborator payloads ───────────────────────────────────────────

class ResolvedFile(BaseModel):
    canonicalKey: str
    existsLocally: bool = True


class PurgeRequest(BaseModel):
    title: PageTitle
    site: str
    requestedAt: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


# ── Lifecycle events ────────────────────────────────────────────────

class PageContentChanged(BaseModel):
    kind: Literal["page-content-changed"] = "page-content-changed"
    page: PageRef
    referencedKeys: list[str] = Field(default_factory=list)


class PageMoved(BaseModel):
    kind: Literal["page-moved"] = "page-moved"
    oldTitle: PageTitle
    newTitle: PageTitle
    pageId: int


class PageDeleted(BaseModel):
    kind: Literal["page-deleted"] = "page-deleted"
    pageId: int


class FileDeleted(BaseModel):
    kind: Literal["file-deleted"] = "file-deleted"
    fileTitle: PageTitle
    isOldRevisionDelete: bool = False


class FileUndeleted(BaseModel):
    kind: Literal["file-undeleted"] = "file-undeleted"
    fileTitle: PageTitle


class FileUploaded(BaseModel):
    kind: Literal["file-uploaded"] = "file-uploaded"
    fileTitle: PageTitle


LifecycleEvent = Annotated[
    Union[PageContentChanged, PageMoved, PageDeleted, FileDeleted, FileUndeleted, FileUploaded],
    Field(discriminator="kind"),
]
