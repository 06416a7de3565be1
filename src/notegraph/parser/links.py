"""Wikilink extraction.

Purely syntactic: no resolution happens here. Targets are kept verbatim;
normalize_target() produces the case-insensitive lookup key used by the store.
"""

import re
from collections.abc import Iterator

from ..config import CONTEXT_RADIUS, ESCAPE_MARKER
from ..models import Reference, Span

# Pattern for [[target]] and [[target|alias]] syntax.
# Target stops at the first pipe; the alias runs to the closing brackets.
LINK_PATTERN = re.compile(r"\[\[([^\]|]+)(?:\|([^\]]*))?\]\]")

_WHITESPACE = re.compile(r"\s+")


def iter_references(content: str) -> Iterator[Reference]:
    """Lazily yield references found in markdown content.

    Each call starts a fresh scan, so the result can be re-iterated by
    calling again.

    Args:
        content: Markdown content to scan.

    Yields:
        References in source order. Escaped links (\\[[...]]) and links with
        a blank target are skipped.
    """
    for match in LINK_PATTERN.finditer(content):
        start = match.start()
        if start > 0 and content[start - 1] == ESCAPE_MARKER:
            continue

        target = match.group(1)
        if not target.strip():
            continue

        alias = match.group(2)
        yield Reference(
            target=target,
            alias=alias if alias else None,
            span=Span(start=start, end=match.end()),
        )


def parse_references(content: str) -> list[Reference]:
    """Extract all references from markdown content.

    Args:
        content: Markdown content to extract references from.

    Returns:
        List of references in source order (duplicates kept).
    """
    return list(iter_references(content))


def normalize_target(target: str) -> str:
    """Normalize a reference target to its lookup key.

    Args:
        target: Raw reference target.

    Returns:
        Trimmed, lowercased key.
    """
    return target.strip().lower()


def reference_context(content: str, span: Span, radius: int = CONTEXT_RADIUS) -> str:
    """Build a one-line excerpt of the text around a reference.

    The excerpt never crosses the line boundaries of the reference itself.

    Args:
        content: Source text the span points into.
        span: Span of the reference.
        radius: Characters kept on each side of the reference.

    Returns:
        Excerpt with collapsed whitespace, marked with ellipses where cut.
    """
    line_start = content.rfind("\n", 0, span.start) + 1
    line_end = content.find("\n", span.end)
    if line_end == -1:
        line_end = len(content)

    start = max(line_start, span.start - radius)
    end = min(line_end, span.end + radius)

    excerpt = _WHITESPACE.sub(" ", content[start:end]).strip()
    if start > line_start:
        excerpt = "..." + excerpt
    if end < line_end:
        excerpt = excerpt + "..."
    return excerpt
