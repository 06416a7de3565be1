"""Helpers over document tree snapshots.

Canonical order is pre-order, directories before files, siblings by name.
Both the builder and the resolver walk trees in that order so that
display-name collisions resolve the same way everywhere.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from .config import HIDDEN_PREFIX, MARKDOWN_EXTENSIONS
from .models import TreeNode


def sort_key(node: TreeNode) -> tuple[int, str, str]:
    return (0 if node.is_directory else 1, node.name.casefold(), node.name)


def sort_nodes(nodes: Iterable[TreeNode]) -> list[TreeNode]:
    """Order siblings: directories first, then by name."""
    return sorted(nodes, key=sort_key)


def is_markdown(name: str, extensions: Iterable[str] = MARKDOWN_EXTENSIONS) -> bool:
    lowered = name.lower()
    return any(lowered.endswith(ext.lower()) for ext in extensions)


def display_key(name: str, extensions: Iterable[str] = MARKDOWN_EXTENSIONS) -> str:
    """Strip the markdown extension from a file name.

    Args:
        name: File name as listed in the tree (e.g. "Note.md").
        extensions: Recognized markdown extensions.

    Returns:
        The document key (e.g. "Note"). Names without a recognized
        extension are returned unchanged.
    """
    lowered = name.lower()
    for ext in sorted(extensions, key=len, reverse=True):
        if ext and lowered.endswith(ext.lower()):
            return name[: -len(ext)]
    return name


def iter_documents(
    tree: Iterable[TreeNode],
    extensions: Iterable[str] = MARKDOWN_EXTENSIONS,
    hidden_prefix: str = HIDDEN_PREFIX,
) -> Iterator[TreeNode]:
    """Yield eligible documents in canonical order.

    A document is eligible when it is a file with a markdown extension and no
    directory on its way down from the roots starts with the hidden prefix.
    """
    extensions = tuple(extensions)
    for node in sort_nodes(tree):
        if node.is_directory:
            if hidden_prefix and node.name.startswith(hidden_prefix):
                continue
            yield from iter_documents(node.children or [], extensions, hidden_prefix)
        elif is_markdown(node.name, extensions):
            yield node


def find_node(tree: Iterable[TreeNode], path: str) -> TreeNode | None:
    """Find the node with the given path anywhere in the tree."""
    for node in tree:
        if node.path == path:
            return node
        if node.children:
            found = find_node(node.children, path)
            if found is not None:
                return found
    return None
