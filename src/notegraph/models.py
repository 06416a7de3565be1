"""Pydantic models for the link and tag index."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class Span(BaseModel):
    """Character offsets of a matched reference in its source text."""

    start: int
    end: int


class Reference(BaseModel):
    """A [[target|alias]] cross-reference extracted from one document."""

    target: str  # Verbatim, matched case-insensitively
    alias: str | None = None  # Display text after the pipe
    span: Span


class IncomingReference(BaseModel):
    """A backlink: some source document references a target key."""

    source_path: str
    source_name: str  # Display key of the source document
    alias: str | None = None
    context: str = ""  # Excerpt around the reference, for previews


class Tag(BaseModel):
    """A tag and the number of documents currently carrying it."""

    name: str
    count: int
    color: str


class DocumentTagSet(BaseModel):
    """Tags of a single document, in display order."""

    path: str
    tags: list[str] = Field(default_factory=list)


class TreeNode(BaseModel):
    """A node of the document tree supplied by a document provider."""

    id: str
    name: str  # Display name as listed, including the extension for files
    path: str
    kind: Literal["file", "directory"]
    children: list[TreeNode] | None = None

    @property
    def is_directory(self) -> bool:
        return self.kind == "directory"


class IndexState(str, Enum):
    """Lifecycle of an index: EMPTY -> BUILDING -> READY."""

    EMPTY = "empty"
    BUILDING = "building"
    READY = "ready"


class IndexChange(BaseModel):
    """Description of what one index mutation changed.

    Emitted to subscribers instead of relying on observable fields, so a
    rendering layer can refresh exactly the affected panels.
    """

    backlink_keys: set[str] = Field(default_factory=set)  # Target keys whose backlinks changed
    outgoing_keys: set[str] = Field(default_factory=set)  # Display keys whose links changed
    tags_added: set[str] = Field(default_factory=set)  # Tag records created
    tags_removed: set[str] = Field(default_factory=set)  # Tag records deleted
    tags_updated: set[str] = Field(default_factory=set)  # Tags whose count changed
    documents: set[str] = Field(default_factory=set)  # Paths touched
    rebuilt: bool = False  # Produced by a full rebuild
    deferred: bool = False  # Edit queued behind a running rebuild

    @property
    def is_empty(self) -> bool:
        return not (
            self.backlink_keys
            or self.outgoing_keys
            or self.tags_added
            or self.tags_removed
            or self.tags_updated
            or self.documents
            or self.rebuilt
            or self.deferred
        )

    def merge(self, other: IndexChange) -> IndexChange:
        """Combine two changes into a new one."""
        # Net effect: created-then-deleted cancels out, deleted-then-created is an update.
        added = (self.tags_added - other.tags_removed) | (other.tags_added - self.tags_removed)
        removed = (self.tags_removed - other.tags_added) | (other.tags_removed - self.tags_added)
        updated = self.tags_updated | other.tags_updated | (self.tags_removed & other.tags_added)
        return IndexChange(
            backlink_keys=self.backlink_keys | other.backlink_keys,
            outgoing_keys=self.outgoing_keys | other.outgoing_keys,
            tags_added=added,
            tags_removed=removed,
            tags_updated=updated,
            documents=self.documents | other.documents,
            rebuilt=self.rebuilt or other.rebuilt,
            deferred=self.deferred or other.deferred,
        )


class RebuildReport(BaseModel):
    """Outcome of a full rebuild."""

    indexed: int = 0  # Documents read and parsed
    failed: list[str] = Field(default_factory=list)  # Paths whose read failed
    skipped: bool = False  # Dropped because a rebuild was already running
    replayed_edits: int = 0  # Edits queued during the rebuild and re-applied


class IndexSnapshot(BaseModel):
    """Serializable view of the tag index, used for warm starts."""

    tags: list[Tag] = Field(default_factory=list)
    document_tags: list[DocumentTagSet] = Field(default_factory=list)


class IndexStats(BaseModel):
    """Size of the derived index."""

    documents: int  # Documents with outgoing links recorded
    references: int  # Outgoing references across all documents
    backlink_targets: int  # Distinct target keys with at least one backlink
    tags: int  # Distinct tags
    tagged_documents: int  # Documents carrying at least one tag
