"""Tag extraction from YAML frontmatter and inline #tags."""

from __future__ import annotations

import logging
import re

import frontmatter
import yaml
from frontmatter.default_handlers import YAMLHandler

log = logging.getLogger(__name__)

# Inline tag: '#' at line start or after whitespace, a Latin or CJK letter,
# then letters, digits, underscores or hyphens.
INLINE_TAG_PATTERN = re.compile(
    r"(?<!\S)#([A-Za-z\u4e00-\u9fff][A-Za-z0-9\u4e00-\u9fff_-]*)"
)

HEADING_TOKEN = re.compile(r"^h[1-6]$", re.IGNORECASE)

FENCE_MARKER = "```"

FRONTMATTER_DELIMITER = "---"

_QUOTES = re.compile(r"^[\"']|[\"']$")
_SCALAR_SPLIT = re.compile(r"[,\s]+")


class _StringYAMLHandler(YAMLHandler):
    """Loads every scalar as a string, so `yes`, `2024-01-01` and `null` stay tags."""

    def load(self, fm: str, **kwargs: object) -> object:
        return yaml.load(fm, Loader=yaml.BaseLoader)


_FRONTMATTER_HANDLER = _StringYAMLHandler()


def _clean_tag(value: str) -> str:
    return _QUOTES.sub("", value.strip()).strip()


def _has_frontmatter(content: str) -> bool:
    """Frontmatter must open on the very first line and be closed later."""
    lines = content.splitlines()
    if not lines or lines[0].rstrip() != FRONTMATTER_DELIMITER:
        return False
    return any(line.rstrip() == FRONTMATTER_DELIMITER for line in lines[1:])


def frontmatter_tags(content: str) -> list[str]:
    """Extract tags declared in the frontmatter block.

    Accepts ``tags: [a, b]``, a block list of ``- a`` items, or a
    comma separated scalar. Values are kept as written: `2024`, `yes` and
    `2024-01-01` are tags, not a number, a boolean and a date.

    Args:
        content: Full document text.

    Returns:
        Tags in declaration order. Empty when there is no frontmatter or it
        cannot be parsed.
    """
    if not _has_frontmatter(content):
        return []

    try:
        post = frontmatter.loads(content, handler=_FRONTMATTER_HANDLER)
    except Exception as e:
        log.debug("Ignoring malformed frontmatter: %s", e)
        return []

    raw = post.metadata.get("tags")
    if raw is None:
        return []

    if isinstance(raw, str):
        values = _SCALAR_SPLIT.split(raw)
    elif isinstance(raw, list):
        values = [item for item in raw if isinstance(item, str)]
    else:
        return []

    tags: list[str] = []
    for value in values:
        tag = _clean_tag(value)
        if tag:
            tags.append(tag)
    return tags


def inline_tags(content: str) -> list[str]:
    """Extract inline #tags outside fenced code blocks.

    A token at the very start of a line reads as a heading marker and is
    skipped, as are h1..h6.

    Args:
        content: Full document text.

    Returns:
        Tags in order of appearance (duplicates kept).
    """
    tags: list[str] = []
    in_code_block = False

    for line in content.splitlines():
        if line.strip().startswith(FENCE_MARKER):
            in_code_block = not in_code_block
            continue
        if in_code_block:
            continue

        for match in INLINE_TAG_PATTERN.finditer(line):
            if match.start() == 0:
                continue
            tag = match.group(1)
            if HEADING_TOKEN.match(tag):
                continue
            tags.append(tag)

    return tags


def parse_tags(content: str) -> list[str]:
    """Extract the tag set of a document.

    Frontmatter tags come first, then inline tags; duplicates collapse to
    their first occurrence. Case is preserved.

    Args:
        content: Full document text.

    Returns:
        Ordered list of distinct tags.
    """
    return list(dict.fromkeys(frontmatter_tags(content) + inline_tags(content)))
