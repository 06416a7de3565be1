"""Persistent tag cache for warm starts.

Holds the last known tag index so a tag panel can show something before the
first rebuild finishes. The cache is never authoritative: a fresh rebuild
always replaces what was loaded from it.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from .models import IndexSnapshot

log = logging.getLogger(__name__)

CACHE_FILENAME = "tags.json"


def _cache_path(cache_root: Path) -> Path:
    return cache_root / CACHE_FILENAME


def load_cache(cache_root: Path) -> IndexSnapshot | None:
    """Load the cached tag snapshot.

    Returns:
        The snapshot, or None when the cache is missing or unreadable.
    """
    path = _cache_path(cache_root)
    if not path.exists():
        return None

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return IndexSnapshot.model_validate(payload)
    except (json.JSONDecodeError, OSError, ValidationError) as e:
        log.debug("Ignoring unreadable tag cache %s: %s", path, e)
        return None


def save_cache(snapshot: IndexSnapshot, cache_root: Path) -> Path:
    """Write the tag snapshot, creating the cache directory if needed."""
    cache_root.mkdir(parents=True, exist_ok=True)
    path = _cache_path(cache_root)
    path.write_text(json.dumps(snapshot.model_dump(), indent=2), encoding="utf-8")
    return path
