"""File watcher that keeps a NoteIndex in sync with a notes directory.

Content edits become incremental apply_edit() calls. Anything structural
(create, delete, move, rename) triggers a full rebuild, since document keys
and link resolution may have shifted.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import HIDDEN_PREFIX, MARKDOWN_EXTENSIONS
from .index import NoteIndex
from .models import RebuildReport, TreeNode
from .provider import DocumentReadError, FileSystemProvider
from .tree import display_key, find_node, is_markdown

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[set[str], set[str]], None]


class DebouncedHandler(FileSystemEventHandler):
    """File system event handler with debouncing.

    Watchdog delivers events on its observer thread; they are handed to the
    event loop with call_soon_threadsafe and batched there.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        callback: ChangeCallback,
        root: Path,
        debounce_seconds: float = 1.0,
        extensions: Iterable[str] = MARKDOWN_EXTENSIONS,
        hidden_prefix: str = HIDDEN_PREFIX,
    ):
        """Initialize the debounced handler.

        Args:
            loop: Event loop that owns the index.
            callback: Called with (modified, structural) path sets after debounce.
            root: Watched notes root, used to spot hidden directories.
            debounce_seconds: Debounce window in seconds.
            extensions: Markdown extensions to react to.
            hidden_prefix: Events under directories with this prefix are ignored.
        """
        super().__init__()
        self._loop = loop
        self._callback = callback
        self._root = root
        self._debounce_seconds = debounce_seconds
        self._extensions = tuple(extensions)
        self._hidden_prefix = hidden_prefix
        self._modified: set[str] = set()
        self._structural: set[str] = set()
        self._timer: asyncio.TimerHandle | None = None

    def _is_hidden(self, path: str) -> bool:
        try:
            parts = Path(path).relative_to(self._root).parts
        except ValueError:
            return False
        return any(part.startswith(self._hidden_prefix) for part in parts[:-1])

    def _relevant(self, path: str, is_directory: bool) -> bool:
        if self._hidden_prefix and self._is_hidden(path):
            return False
        return is_directory or is_markdown(path, self._extensions)

    def _record(self, path: str, structural: bool) -> None:
        """Thread-safe entry point from the observer thread."""
        self._loop.call_soon_threadsafe(self._add_pending, path, structural)

    def _add_pending(self, path: str, structural: bool) -> None:
        if structural:
            self._structural.add(path)
        else:
            self._modified.add(path)
        self._schedule_callback()

    def _schedule_callback(self) -> None:
        """Schedule the callback after debounce period."""
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._loop.call_later(self._debounce_seconds, self._fire)

    def _fire(self) -> None:
        self._timer = None
        if not (self._modified or self._structural):
            return
        modified = self._modified - self._structural
        structural = set(self._structural)
        self._modified.clear()
        self._structural.clear()
        self._callback(modified, structural)

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle file creation."""
        path = os.fsdecode(event.src_path)
        if self._relevant(path, event.is_directory):
            self._record(path, structural=True)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle file deletion."""
        path = os.fsdecode(event.src_path)
        if self._relevant(path, event.is_directory):
            self._record(path, structural=True)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle file modification."""
        if event.is_directory:
            return
        path = os.fsdecode(event.src_path)
        if self._relevant(path, False):
            self._record(path, structural=False)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle file move/rename."""
        src_path = os.fsdecode(event.src_path)
        dest_path = os.fsdecode(event.dest_path) if getattr(event, "dest_path", None) else None

        if self._relevant(src_path, event.is_directory):
            self._record(src_path, structural=True)
        if dest_path and self._relevant(dest_path, event.is_directory):
            self._record(dest_path, structural=True)


class IndexWatcher:
    """Watch a notes directory and keep a NoteIndex up to date."""

    def __init__(
        self,
        index: NoteIndex,
        provider: FileSystemProvider,
        debounce_seconds: float | None = None,
        on_rebuild: Callable[[RebuildReport], None] | None = None,
    ):
        """Initialize the watcher.

        Args:
            index: Index to update on changes.
            provider: Provider for the watched notes directory.
            debounce_seconds: Debounce window; defaults to the index settings.
            on_rebuild: Called after every full rebuild (e.g. to save the tag cache).
        """
        self._index = index
        self._provider = provider
        self._debounce_seconds = (
            debounce_seconds if debounce_seconds is not None else index.settings.debounce_seconds
        )
        self._on_rebuild = on_rebuild
        self._tree: list[TreeNode] = []
        self._contents: dict[str, str] = {}
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._observer: Observer | None = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    @property
    def tree(self) -> list[TreeNode]:
        return self._tree

    async def _read_and_remember(self, path: str) -> str:
        content = await self._provider.read_content(path)
        self._contents[path] = content
        return content

    async def refresh(self) -> RebuildReport:
        """Take a fresh snapshot and rebuild the index from it."""
        async with self._lock:
            return await self._refresh()

    async def _refresh(self) -> RebuildReport:
        self._tree = self._provider.snapshot()
        self._contents.clear()
        report = await self._index.tree_changed(self._tree, self._read_and_remember)
        if self._on_rebuild is not None and not report.skipped:
            self._on_rebuild(report)
        return report

    async def handle_changes(self, modified: set[str], structural: set[str]) -> None:
        """Apply a debounced batch of file changes.

        Args:
            modified: Paths whose content changed.
            structural: Paths created, deleted or moved.
        """
        async with self._lock:
            if structural:
                logger.info("Structural change (%d paths), rebuilding", len(structural))
                await self._refresh()
                return

            for path in sorted(modified):
                old_content = self._contents.get(path)
                if old_content is None:
                    # Not indexed before (e.g. a failed read), so there is nothing to diff against.
                    await self._refresh()
                    return

                try:
                    new_content = await self._provider.read_content(path)
                except DocumentReadError as e:
                    logger.warning("Failed to read %s: %s", path, e)
                    continue

                self._contents[path] = new_content
                if new_content == old_content:
                    continue

                node = find_node(self._tree, path)
                name = node.name if node is not None else Path(path).name
                self._index.apply_edit(
                    path,
                    display_key(name, self._index.settings.extensions),
                    old_content,
                    new_content,
                )
                logger.debug("Re-indexed: %s", path)

    def _on_files_changed(self, modified: set[str], structural: set[str]) -> None:
        assert self._loop is not None
        task = self._loop.create_task(self.handle_changes(modified, structural))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Start watching for file changes.

        Must be called from the event loop thread unless a loop is given.
        """
        if self._observer is not None:
            return

        root = self._provider.root
        if not root.exists():
            logger.warning(f"Notes root does not exist: {root}")
            return

        self._loop = loop or asyncio.get_running_loop()
        handler = DebouncedHandler(
            loop=self._loop,
            callback=self._on_files_changed,
            root=root,
            debounce_seconds=self._debounce_seconds,
            extensions=self._index.settings.extensions,
            hidden_prefix=self._index.settings.hidden_prefix,
        )
        observer = Observer()
        observer.schedule(handler, str(root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info(f"Started watching: {root}")

    def stop(self) -> None:
        """Stop watching for file changes."""
        if self._observer is None:
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        for task in self._tasks:
            task.cancel()
        logger.info("Stopped file watcher")
