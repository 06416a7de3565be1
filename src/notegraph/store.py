"""In-memory link and tag index.

The store owns four maps:

- outgoing: document display key -> references found in that document
- incoming: normalized target key -> backlink entries, one per source path
- document_tags: document path -> tags in display order
- tag_documents: tag -> paths of the documents carrying it

Tag counts are derived from tag_documents, so a count always equals the
number of distinct documents holding the tag. Every mutation is scoped to a
single document, idempotent, performs no I/O, and returns an IndexChange.
"""

from __future__ import annotations

from collections.abc import Iterable

from .config import CONTEXT_RADIUS
from .models import (
    DocumentTagSet,
    IncomingReference,
    IndexChange,
    IndexSnapshot,
    IndexStats,
    Reference,
    Tag,
)
from .parser.links import normalize_target, reference_context

TAG_COLORS = (
    "#ef4444",  # red
    "#f97316",  # orange
    "#f59e0b",  # amber
    "#eab308",  # yellow
    "#84cc16",  # lime
    "#22c55e",  # green
    "#10b981",  # emerald
    "#14b8a6",  # teal
    "#06b6d4",  # cyan
    "#0ea5e9",  # sky
    "#3b82f6",  # blue
    "#6366f1",  # indigo
    "#8b5cf6",  # violet
    "#a855f7",  # purple
    "#d946ef",  # fuchsia
    "#ec4899",  # pink
)


def tag_color(name: str) -> str:
    """Pick a palette color for a tag, stable across sessions."""
    value = 0
    for char in name:
        value = (ord(char) + (value << 5) - value) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return TAG_COLORS[abs(value) % len(TAG_COLORS)]


class IndexStore:
    """Bidirectional reference graph plus tag index for one corpus."""

    def __init__(self, context_radius: int = CONTEXT_RADIUS) -> None:
        self._context_radius = context_radius
        self._outgoing: dict[str, list[Reference]] = {}
        self._incoming: dict[str, list[IncomingReference]] = {}
        self._document_tags: dict[str, list[str]] = {}
        self._tag_documents: dict[str, list[str]] = {}

    # ─────────────────────────────────────────────────────────────────────
    # References
    # ─────────────────────────────────────────────────────────────────────

    def add_references(
        self,
        source_path: str,
        source_name: str,
        references: Iterable[Reference],
        content: str | None = None,
    ) -> IndexChange:
        """Record a document's references and their backlinks.

        At most one backlink entry per source path is kept for each target
        key; repeated links to the same target keep the first alias.

        Args:
            source_path: Path of the document containing the references.
            source_name: Display key of that document.
            references: References parsed from the document.
            content: Document text, used to fill backlink context excerpts.

        Returns:
            Description of the backlink and outgoing keys that changed.
        """
        references = list(references)
        change = IndexChange()

        for reference in references:
            key = normalize_target(reference.target)
            entries = self._incoming.setdefault(key, [])
            if any(entry.source_path == source_path for entry in entries):
                continue

            context = ""
            if content is not None:
                context = reference_context(content, reference.span, self._context_radius)
            entries.append(
                IncomingReference(
                    source_path=source_path,
                    source_name=source_name,
                    alias=reference.alias,
                    context=context,
                )
            )
            change.backlink_keys.add(key)

        if self._outgoing.get(source_name) != references:
            self._outgoing[source_name] = references
            change.outgoing_keys.add(source_name)

        if not change.is_empty:
            change.documents.add(source_path)
        return change

    def remove_references(self, source_path: str, references: Iterable[Reference]) -> IndexChange:
        """Drop the backlinks a document contributed for the given references.

        Target keys left without entries are removed, so removing right after
        adding restores the previous state exactly.
        """
        change = IndexChange()

        for reference in references:
            key = normalize_target(reference.target)
            entries = self._incoming.get(key)
            if not entries:
                continue

            kept = [entry for entry in entries if entry.source_path != source_path]
            if len(kept) == len(entries):
                continue

            change.backlink_keys.add(key)
            if kept:
                self._incoming[key] = kept
            else:
                del self._incoming[key]

        if not change.is_empty:
            change.documents.add(source_path)
        return change

    # ─────────────────────────────────────────────────────────────────────
    # Tags
    # ─────────────────────────────────────────────────────────────────────

    def set_document_tags(self, path: str, tags: Iterable[str]) -> IndexChange:
        """Replace a document's tag set and adjust tag counts.

        Args:
            path: Document path.
            tags: New tags in display order. Duplicates collapse; an empty
                list forgets the document's tags.

        Returns:
            Tags created, deleted, or re-counted.
        """
        new_tags = list(dict.fromkeys(tags))
        old_tags = self._document_tags.get(path, [])
        change = IndexChange()

        new_set = set(new_tags)
        old_set = set(old_tags)

        for tag in old_tags:
            if tag in new_set:
                continue
            documents = self._tag_documents.get(tag, [])
            if path in documents:
                documents.remove(path)
            if documents:
                change.tags_updated.add(tag)
            else:
                self._tag_documents.pop(tag, None)
                change.tags_removed.add(tag)

        for tag in new_tags:
            if tag in old_set:
                continue
            documents = self._tag_documents.get(tag)
            if documents is None:
                self._tag_documents[tag] = [path]
                change.tags_added.add(tag)
            elif path not in documents:
                documents.append(path)
                change.tags_updated.add(tag)

        if new_tags:
            self._document_tags[path] = new_tags
        else:
            self._document_tags.pop(path, None)

        if new_tags != old_tags:
            change.documents.add(path)
        return change

    def delete_tag(self, name: str) -> IndexChange:
        """Remove a tag from every document that carries it."""
        documents = self._tag_documents.pop(name, None)
        if documents is None:
            return IndexChange()

        for path in documents:
            remaining = [tag for tag in self._document_tags.get(path, []) if tag != name]
            if remaining:
                self._document_tags[path] = remaining
            else:
                self._document_tags.pop(path, None)

        return IndexChange(tags_removed={name}, documents=set(documents))

    def rename_tag(self, old_name: str, new_name: str) -> IndexChange:
        """Rename a tag across all documents, merging into new_name if it exists."""
        if old_name == new_name or old_name not in self._tag_documents:
            return IndexChange()

        moved = self._tag_documents.pop(old_name)
        change = IndexChange(tags_removed={old_name}, documents=set(moved))

        for path in moved:
            tags = [new_name if tag == old_name else tag for tag in self._document_tags.get(path, [])]
            self._document_tags[path] = list(dict.fromkeys(tags))

        existing = self._tag_documents.get(new_name)
        if existing is None:
            self._tag_documents[new_name] = list(moved)
            change.tags_added.add(new_name)
        else:
            existing.extend(path for path in moved if path not in existing)
            change.tags_updated.add(new_name)

        return change

    # ─────────────────────────────────────────────────────────────────────
    # Whole-document and whole-store operations
    # ─────────────────────────────────────────────────────────────────────

    def forget_document(self, path: str, source_name: str | None = None) -> IndexChange:
        """Remove everything a document contributed.

        Args:
            path: Document path (backlink entries and tags are keyed by it).
            source_name: Display key to drop from the outgoing map, if any.
        """
        change = IndexChange()

        for key in list(self._incoming):
            entries = self._incoming[key]
            kept = [entry for entry in entries if entry.source_path != path]
            if len(kept) == len(entries):
                continue
            change.backlink_keys.add(key)
            if kept:
                self._incoming[key] = kept
            else:
                del self._incoming[key]

        if source_name is not None and self._outgoing.pop(source_name, None) is not None:
            change.outgoing_keys.add(source_name)

        change = change.merge(self.set_document_tags(path, []))
        if not change.is_empty:
            change.documents.add(path)
        return change

    def clear(self) -> None:
        self._outgoing.clear()
        self._incoming.clear()
        self._document_tags.clear()
        self._tag_documents.clear()

    # ─────────────────────────────────────────────────────────────────────
    # Queries (all return copies)
    # ─────────────────────────────────────────────────────────────────────

    def get_backlinks(self, display_name: str) -> list[IncomingReference]:
        """Backlinks pointing at a display name, matched case-insensitively."""
        return [entry.model_copy() for entry in self._incoming.get(normalize_target(display_name), [])]

    def get_backlink_count(self, display_name: str) -> int:
        return len(self._incoming.get(normalize_target(display_name), []))

    def get_outgoing(self, display_name: str) -> list[Reference]:
        """References recorded for a document, by its exact display key."""
        return [reference.model_copy(deep=True) for reference in self._outgoing.get(display_name, [])]

    def get_all_tags(self) -> list[Tag]:
        """All tags, most used first (ties by name)."""
        tags = [
            Tag(name=name, count=len(documents), color=tag_color(name))
            for name, documents in self._tag_documents.items()
        ]
        return sorted(tags, key=lambda tag: (-tag.count, tag.name))

    def get_tag(self, name: str) -> Tag | None:
        documents = self._tag_documents.get(name)
        if documents is None:
            return None
        return Tag(name=name, count=len(documents), color=tag_color(name))

    def get_document_tags(self, path: str) -> list[str]:
        return list(self._document_tags.get(path, []))

    def document_has_tag(self, path: str, tag: str) -> bool:
        return tag in self._document_tags.get(path, [])

    def get_documents_with_tag(self, tag: str) -> list[str]:
        return list(self._tag_documents.get(tag, []))

    def snapshot(self) -> IndexSnapshot:
        """Serializable copy of the tag index."""
        return IndexSnapshot(
            tags=self.get_all_tags(),
            document_tags=[
                DocumentTagSet(path=path, tags=list(tags)) for path, tags in self._document_tags.items()
            ],
        )

    def load_snapshot(self, snapshot: IndexSnapshot) -> IndexChange:
        """Replace the tag index with a snapshot's document tag sets.

        Counts are recomputed from the document sets; the snapshot's own
        counts are not trusted.
        """
        self._document_tags.clear()
        self._tag_documents.clear()

        change = IndexChange()
        for tag_set in snapshot.document_tags:
            change = change.merge(self.set_document_tags(tag_set.path, tag_set.tags))
        return change

    def stats(self) -> IndexStats:
        return IndexStats(
            documents=len(self._outgoing),
            references=sum(len(references) for references in self._outgoing.values()),
            backlink_targets=len(self._incoming),
            tags=len(self._tag_documents),
            tagged_documents=len(self._document_tags),
        )
