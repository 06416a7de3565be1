"""Full and incremental index population.

A full rebuild walks the tree snapshot, reads every eligible document and
repopulates the store from scratch. An incremental edit re-parses one
document's old and new content and patches the store with the difference.

Only one rebuild runs at a time. A rebuild requested while another is in
progress is dropped, not queued. Edits arriving during a rebuild are queued
and re-applied, in arrival order, once the rebuild has repopulated the store.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from .config import IndexSettings
from .models import IndexChange, RebuildReport, TreeNode
from .parser import parse_references, parse_tags
from .store import IndexStore
from .tree import display_key, iter_documents

log = logging.getLogger(__name__)

ReadContent = Callable[[str], Awaitable[str]]


@dataclass
class PendingEdit:
    """An edit received while a rebuild was running."""

    path: str
    display_name: str
    old_content: str
    new_content: str


class IndexBuilder:
    """Drives the parsers and writes their output into an IndexStore."""

    def __init__(self, store: IndexStore, settings: IndexSettings | None = None):
        self._store = store
        self._settings = settings or IndexSettings()
        self._building = False
        self._pending_edits: list[PendingEdit] = []
        # Document paths seen by the last rebuild; None until the first one.
        self._eligible: set[str] | None = None

    @property
    def is_building(self) -> bool:
        return self._building

    @property
    def pending_edits(self) -> int:
        return len(self._pending_edits)

    async def rebuild(self, tree: Iterable[TreeNode], read_content: ReadContent) -> RebuildReport:
        """Clear the store and re-index every eligible document.

        Documents whose read fails are logged and left out of this pass.

        Args:
            tree: Tree snapshot (list of root nodes).
            read_content: Async reader returning a document's text by path.

        Returns:
            Report of indexed and failed documents; skipped=True when the
            call was dropped because a rebuild was already running.
        """
        if self._building:
            log.info("Rebuild already in progress, dropping request")
            return RebuildReport(skipped=True)

        self._building = True
        replayed = False
        try:
            documents = list(
                iter_documents(tree, self._settings.extensions, self._settings.hidden_prefix)
            )
            self._eligible = {node.path for node in documents}
            self._store.clear()
            log.info("Rebuilding index from %d documents", len(documents))

            report = RebuildReport()
            if self._settings.concurrency > 1:
                await self._index_concurrently(documents, read_content, report)
            else:
                await self._index_sequentially(documents, read_content, report)

            report.replayed_edits = self._replay_pending_edits()
            replayed = True

            log.info(
                "Index rebuilt: %d documents indexed, %d failed, %d edits replayed",
                report.indexed,
                len(report.failed),
                report.replayed_edits,
            )
            return report
        finally:
            if not replayed and self._pending_edits:
                # The next rebuild reads the files again, which covers these edits.
                log.warning("Rebuild aborted, discarding %d queued edits", len(self._pending_edits))
                self._pending_edits.clear()
            self._building = False

    async def _index_sequentially(
        self,
        documents: list[TreeNode],
        read_content: ReadContent,
        report: RebuildReport,
    ) -> None:
        for node in documents:
            try:
                content = await read_content(node.path)
            except Exception as e:
                log.warning("Skipping %s: %s", node.path, e)
                report.failed.append(node.path)
                continue
            self._index_document(node, content)
            report.indexed += 1

    async def _index_concurrently(
        self,
        documents: list[TreeNode],
        read_content: ReadContent,
        report: RebuildReport,
    ) -> None:
        """Read with a bounded fan-out, apply results in traversal order."""
        semaphore = asyncio.Semaphore(self._settings.concurrency)

        async def bounded_read(path: str) -> str:
            async with semaphore:
                return await read_content(path)

        tasks = [asyncio.create_task(bounded_read(node.path)) for node in documents]
        try:
            for node, task in zip(documents, tasks):
                try:
                    content = await task
                except Exception as e:
                    log.warning("Skipping %s: %s", node.path, e)
                    report.failed.append(node.path)
                    continue
                self._index_document(node, content)
                report.indexed += 1
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

    def _index_document(self, node: TreeNode, content: str) -> None:
        name = display_key(node.name, self._settings.extensions)
        self._store.add_references(node.path, name, parse_references(content), content=content)
        self._store.set_document_tags(node.path, parse_tags(content))
        log.debug("Indexed %s", node.path)

    def apply_edit(
        self,
        path: str,
        display_name: str,
        old_content: str,
        new_content: str,
    ) -> IndexChange:
        """Patch the store for one document's content change.

        Cost depends only on the size of this document. During a rebuild the
        edit is queued and the returned change has deferred=True.
        Paths outside the document set of the last rebuild are ignored.

        Args:
            path: Document path.
            display_name: Document display key (file name without extension).
            old_content: Content before the edit ("" for a new document).
            new_content: Content after the edit ("" for a deleted document).

        Returns:
            Description of what changed in the store.
        """
        if self._building:
            self._pending_edits.append(PendingEdit(path, display_name, old_content, new_content))
            log.debug("Rebuild in progress, queued edit for %s", path)
            return IndexChange(documents={path}, deferred=True)

        return self._apply_edit(path, display_name, old_content, new_content)

    def _is_indexed(self, path: str) -> bool:
        return self._eligible is None or path in self._eligible

    def _apply_edit(self, path: str, display_name: str, old_content: str, new_content: str) -> IndexChange:
        if not self._is_indexed(path):
            log.debug("Ignoring edit to %s, not an indexed document", path)
            return IndexChange()
        change = self._store.remove_references(path, parse_references(old_content))
        change = change.merge(
            self._store.add_references(
                path,
                display_name,
                parse_references(new_content),
                content=new_content,
            )
        )
        change = change.merge(self._store.set_document_tags(path, parse_tags(new_content)))
        log.debug("Applied edit to %s", path)
        return change

    def _replay_pending_edits(self) -> int:
        pending, self._pending_edits = self._pending_edits, []
        replayed = 0
        for edit in pending:
            if not self._is_indexed(edit.path):
                log.debug("Dropping queued edit to %s, not an indexed document", edit.path)
                continue
            self._apply_edit(edit.path, edit.display_name, edit.old_content, edit.new_content)
            replayed += 1
        return replayed
