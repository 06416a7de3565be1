"""Markdown parsing: wikilink and tag extraction."""

from ..models import Reference, Span
from .links import iter_references, normalize_target, parse_references, reference_context
from .tags import frontmatter_tags, inline_tags, parse_tags

__all__ = [
    "Reference",
    "Span",
    "iter_references",
    "parse_references",
    "normalize_target",
    "reference_context",
    "parse_tags",
    "frontmatter_tags",
    "inline_tags",
]
