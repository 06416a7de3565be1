"""Filesystem-backed document provider.

Supplies the two things the index consumes: a tree snapshot and an async
content reader.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from pathlib import Path

from .config import IGNORED_NAMES
from .models import TreeNode
from .tree import sort_nodes

log = logging.getLogger(__name__)


class DocumentReadError(Exception):
    """Raised when a document cannot be read."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


def _node_id(relative: str) -> str:
    """Stable id derived from the path relative to the root."""
    return hashlib.sha1(relative.encode("utf-8")).hexdigest()[:16]


class FileSystemProvider:
    """Lists a notes directory as TreeNodes and reads documents from it."""

    def __init__(self, root: Path, ignored_names: frozenset[str] = IGNORED_NAMES):
        # Absolute, so node paths match the paths watchdog reports
        self.root = Path(root).resolve()
        self._ignored_names = ignored_names

    def snapshot(self) -> list[TreeNode]:
        """Build a tree snapshot of the notes directory.

        Returns:
            Root-level nodes, directories first, then by name. Symlinked
            directories are not followed. Empty if the root does not exist.
        """
        if not self.root.is_dir():
            log.warning("Notes root does not exist: %s", self.root)
            return []
        return self._read_dir(self.root)

    def _read_dir(self, directory: Path) -> list[TreeNode]:
        nodes: list[TreeNode] = []
        try:
            entries = list(directory.iterdir())
        except OSError as e:
            log.warning("Cannot list %s: %s", directory, e)
            return nodes

        for entry in entries:
            if entry.name in self._ignored_names:
                continue

            is_directory = entry.is_dir()
            if is_directory and entry.is_symlink():
                # Linked folders can loop back into the tree
                log.debug("Skipping symlinked directory %s", entry)
                continue

            relative = entry.relative_to(self.root).as_posix()
            nodes.append(
                TreeNode(
                    id=_node_id(relative),
                    name=entry.name,
                    path=str(entry),
                    kind="directory" if is_directory else "file",
                    children=self._read_dir(entry) if is_directory else None,
                )
            )

        return sort_nodes(nodes)

    async def read_content(self, path: str) -> str:
        """Read a document's text without blocking the event loop.

        Raises:
            DocumentReadError: If the file is missing, unreadable, or not UTF-8.
        """
        try:
            return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentReadError(path, str(e)) from e
