"""Per-session link and tag index.

NoteIndex is the object callers own: one instance per notebook (or test),
with no shared module state. It wires the store, builder and resolver
together, tracks the engine state, and tells subscribers what changed.

State machine:
    EMPTY --rebuild--> BUILDING --> READY
    READY --rebuild / tree change--> BUILDING --> READY
    READY --apply_edit--> READY
    BUILDING --cancelled / failed--> EMPTY
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from .builder import IndexBuilder, ReadContent
from .config import IndexSettings
from .models import (
    IncomingReference,
    IndexChange,
    IndexSnapshot,
    IndexState,
    IndexStats,
    RebuildReport,
    Reference,
    Tag,
    TreeNode,
)
from .resolver import new_document_name, resolve_link_target
from .store import IndexStore
from .tree import iter_documents

log = logging.getLogger(__name__)

ChangeListener = Callable[[IndexChange], None]


class NoteIndex:
    """Bidirectional link graph and tag index for one document collection."""

    def __init__(self, settings: IndexSettings | None = None):
        self.settings = settings or IndexSettings()
        self._store = IndexStore(context_radius=self.settings.context_radius)
        self._builder = IndexBuilder(self._store, self.settings)
        self._state = IndexState.EMPTY
        self._listeners: list[ChangeListener] = []

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is IndexState.READY

    # ─────────────────────────────────────────────────────────────────────
    # Subscriptions
    # ─────────────────────────────────────────────────────────────────────

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener for index changes.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, change: IndexChange) -> IndexChange:
        if change.is_empty:
            return change
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                log.exception("Index change listener failed")
        return change

    # ─────────────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────────────

    async def rebuild(self, tree: Iterable[TreeNode], read_content: ReadContent) -> RebuildReport:
        """Re-index the whole collection from a tree snapshot.

        A call made while a rebuild is running is dropped; the index may stay
        stale until the next trigger. A rebuild that is cancelled or raises
        discards its partial results and the index falls back to EMPTY.
        """
        if self._builder.is_building:
            return await self._builder.rebuild(tree, read_content)

        tree = list(tree)
        self._state = IndexState.BUILDING
        try:
            report = await self._builder.rebuild(tree, read_content)
        except BaseException:
            self._store.clear()
            self._state = IndexState.EMPTY
            raise
        self._state = IndexState.READY

        documents = {
            node.path
            for node in iter_documents(tree, self.settings.extensions, self.settings.hidden_prefix)
        }
        self._emit(IndexChange(rebuilt=True, documents=documents))
        return report

    async def tree_changed(self, tree: Iterable[TreeNode], read_content: ReadContent) -> RebuildReport:
        """Handle a structural change (create, delete, move, rename).

        Document keys and resolution results may have shifted, so this always
        goes through a full rebuild rather than an incremental patch.
        """
        return await self.rebuild(tree, read_content)

    def apply_edit(
        self,
        path: str,
        display_name: str,
        old_content: str,
        new_content: str,
    ) -> IndexChange:
        """Apply a single document's content change.

        Ignored before the first rebuild, deferred during a rebuild.
        """
        if self._state is IndexState.EMPTY:
            log.debug("Index not built yet, ignoring edit to %s", path)
            return IndexChange()
        return self._emit(self._builder.apply_edit(path, display_name, old_content, new_content))

    def remove_document(self, path: str, display_name: str, old_content: str) -> IndexChange:
        """Drop a deleted document: an edit to empty content, then forget it."""
        change = self.apply_edit(path, display_name, old_content, "")
        if change.deferred or self._state is not IndexState.READY:
            return change
        return self._emit(self._store.forget_document(path, display_name))

    def delete_tag(self, name: str) -> IndexChange:
        return self._emit(self._store.delete_tag(name))

    def rename_tag(self, old_name: str, new_name: str) -> IndexChange:
        return self._emit(self._store.rename_tag(old_name, new_name))

    def warm_start(self, snapshot: IndexSnapshot) -> IndexChange:
        """Show cached tags before the first rebuild.

        Only applies while EMPTY; the state stays EMPTY, so a rebuild is still
        required and will replace the cached data.
        """
        if self._state is not IndexState.EMPTY:
            return IndexChange()
        return self._emit(self._store.load_snapshot(snapshot))

    # ─────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────

    def get_backlinks(self, display_name: str) -> list[IncomingReference]:
        return self._store.get_backlinks(display_name)

    def get_backlink_count(self, display_name: str) -> int:
        return self._store.get_backlink_count(display_name)

    def get_outgoing(self, display_name: str) -> list[Reference]:
        return self._store.get_outgoing(display_name)

    def get_all_tags(self) -> list[Tag]:
        return self._store.get_all_tags()

    def get_tag(self, name: str) -> Tag | None:
        return self._store.get_tag(name)

    def get_document_tags(self, path: str) -> list[str]:
        return self._store.get_document_tags(path)

    def document_has_tag(self, path: str, tag: str) -> bool:
        return self._store.document_has_tag(path, tag)

    def get_documents_with_tag(self, tag: str) -> list[str]:
        return self._store.get_documents_with_tag(tag)

    def snapshot(self) -> IndexSnapshot:
        return self._store.snapshot()

    def stats(self) -> IndexStats:
        return self._store.stats()

    def resolve(self, target: str, tree: Iterable[TreeNode]) -> str | None:
        """Resolve a link target to a document path, or None."""
        return resolve_link_target(target, tree, self.settings)

    def new_document_name(self, target: str) -> str:
        """File name to offer creating when resolve() returns None."""
        return new_document_name(target, self.settings)
