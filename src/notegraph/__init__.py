"""notegraph: wikilink and tag index for markdown note collections."""

from .index import NoteIndex
from .models import (
    IncomingReference,
    IndexChange,
    IndexState,
    RebuildReport,
    Reference,
    Tag,
    TreeNode,
)
from .provider import DocumentReadError, FileSystemProvider

__version__ = "0.1.0"

__all__ = [
    "NoteIndex",
    "FileSystemProvider",
    "DocumentReadError",
    "IncomingReference",
    "IndexChange",
    "IndexState",
    "RebuildReport",
    "Reference",
    "Tag",
    "TreeNode",
    "__version__",
]
