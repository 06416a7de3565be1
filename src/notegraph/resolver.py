"""Wikilink target resolution against a tree snapshot.

Resolution is tiered and stops at the first tier that finds anything:

1. Exact display-name match (case-sensitive)
2. Display-name match ignoring case
3. Display name containing the target, ignoring case

Within a tier the first document in canonical tree order wins. There is no
scoring and no ambiguity reporting.
"""

from __future__ import annotations

from collections.abc import Iterable

from .config import IndexSettings
from .models import TreeNode
from .tree import display_key, iter_documents


def _clean_target(target: str, extensions: Iterable[str]) -> str:
    normalized = target.strip()
    # [[Note.md]] links to the same document as [[Note]]
    return display_key(normalized, extensions).strip()


def resolve_link_target(
    target: str,
    tree: Iterable[TreeNode],
    settings: IndexSettings | None = None,
) -> str | None:
    """Resolve a link target to a document path.

    Args:
        target: The link target from [[target]].
        tree: Current tree snapshot.
        settings: Eligibility settings (extensions, hidden prefix).

    Returns:
        Path of the matching document, or None if no tier matches. The caller
        decides whether to offer creating the document.
    """
    settings = settings or IndexSettings()
    cleaned = _clean_target(target, settings.extensions)
    if not cleaned:
        return None

    candidates = [
        (display_key(node.name, settings.extensions), node.path)
        for node in iter_documents(tree, settings.extensions, settings.hidden_prefix)
    ]

    for name, path in candidates:
        if name == cleaned:
            return path

    folded = cleaned.casefold()
    for name, path in candidates:
        if name.casefold() == folded:
            return path

    for name, path in candidates:
        if folded in name.casefold():
            return path

    return None


def new_document_name(target: str, settings: IndexSettings | None = None) -> str:
    """File name to offer when a target cannot be resolved.

    Args:
        target: The unresolved link target.
        settings: Provides the default extension.

    Returns:
        The target with the default markdown extension (kept if already present).
    """
    settings = settings or IndexSettings()
    name = target.strip()
    if name.lower().endswith(settings.default_extension.lower()):
        return name
    return f"{name}{settings.default_extension}"
