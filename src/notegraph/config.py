"""Configuration management for notegraph.

This module contains all configurable constants for the link and tag index.
Magic numbers are documented here rather than scattered throughout the codebase.
"""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


# =============================================================================
# Document Eligibility
# =============================================================================

# File extensions treated as markdown documents. Only files with one of these
# extensions contribute references and tags to the index.
MARKDOWN_EXTENSIONS = (".md", ".markdown")

# Extension used when offering to create a document for an unresolved link.
DEFAULT_EXTENSION = ".md"

# Directories whose name starts with this prefix are skipped with everything
# below them (.git, .obsidian, .trash, ...).
HIDDEN_PREFIX = "."

# Names never listed by the filesystem provider, hidden or not.
IGNORED_NAMES = frozenset({".git", ".gitignore", "config.json", ".secret", ".DS_Store"})


# =============================================================================
# Parsing
# =============================================================================

# A [[reference]] immediately preceded by this character is literal text.
ESCAPE_MARKER = "\\"

# Characters of surrounding text kept on each side of a reference when
# building the backlink context excerpt.
CONTEXT_RADIUS = 40


# =============================================================================
# Rebuild and Watching
# =============================================================================

# Number of documents read concurrently during a full rebuild.
# 1 keeps the sequential traversal; higher values bound total rebuild latency
# when reads are slow.
DEFAULT_REBUILD_CONCURRENCY = 1

# Upper bound for the configured fan-out.
MAX_REBUILD_CONCURRENCY = 64

# Debounce window for the file watcher. Editors save in bursts
# (write temp file, rename, touch) so events are batched.
WATCH_DEBOUNCE_SECONDS = 1.0


# =============================================================================
# Files
# =============================================================================

CONFIG_FILENAME = ".notegraph.yaml"
CACHE_DIRNAME = ".notegraph"

# Maximum directory traversal depth when searching for the config file.
MAX_CONFIG_SEARCH_DEPTH = 50


class IndexSettings(BaseModel):
    """Tunable settings for one index instance."""

    extensions: tuple[str, ...] = MARKDOWN_EXTENSIONS
    hidden_prefix: str = HIDDEN_PREFIX
    concurrency: int = Field(default=DEFAULT_REBUILD_CONCURRENCY, ge=1, le=MAX_REBUILD_CONCURRENCY)
    context_radius: int = Field(default=CONTEXT_RADIUS, ge=0)
    debounce_seconds: float = Field(default=WATCH_DEBOUNCE_SECONDS, ge=0)
    default_extension: str = DEFAULT_EXTENSION


def _discover_config_file(start_dir: Path | None = None, max_depth: int = MAX_CONFIG_SEARCH_DEPTH) -> Path | None:
    """Walk up from start_dir looking for a .notegraph.yaml file.

    Args:
        start_dir: Directory to start from (defaults to cwd)
        max_depth: Maximum directories to traverse up

    Returns:
        Path to the config file if found, None otherwise.
    """
    current = Path(start_dir or os.getcwd()).resolve()

    for _ in range(max_depth):
        config_file = current / CONFIG_FILENAME
        if config_file.is_file():
            return config_file

        parent = current.parent
        if parent == current:  # Reached filesystem root
            break
        current = parent

    return None


def _load_config_data(config_file: Path) -> dict:
    try:
        data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_file} must contain a mapping")
    return data


def get_notes_root(start_dir: Path | None = None) -> Path:
    """Get the notes root directory.

    Discovery order:
    1. NOTEGRAPH_ROOT environment variable (explicit override)
    2. Walk up from cwd looking for .notegraph.yaml with a root field
       (relative roots are resolved against the config file's directory)
    3. Error with helpful message

    Raises:
        ConfigurationError: If no notes root can be found.
    """
    root = os.environ.get("NOTEGRAPH_ROOT")
    if root:
        return Path(root)

    config_file = _discover_config_file(start_dir)
    if config_file:
        data = _load_config_data(config_file)
        if "root" in data:
            notes_root = (config_file.parent / str(data["root"])).resolve()
            if notes_root.is_dir():
                return notes_root
            raise ConfigurationError(f"Notes root from {config_file} does not exist: {notes_root}")

    raise ConfigurationError(
        "No notes directory found. Options:\n"
        "  1. Pass --root /path/to/notes\n"
        "  2. Set NOTEGRAPH_ROOT to an existing notes directory\n"
        f"  3. Create {CONFIG_FILENAME} with 'root: <path>' in a parent directory"
    )


def get_cache_root(notes_root: Path | None = None) -> Path:
    """Get the directory holding the tag warm-start cache.

    Discovery order:
    1. NOTEGRAPH_CACHE_ROOT environment variable (explicit override)
    2. {notes_root}/.notegraph/ (hidden, so never indexed)
    """
    root = os.environ.get("NOTEGRAPH_CACHE_ROOT")
    if root:
        return Path(root)

    return (notes_root or get_notes_root()) / CACHE_DIRNAME


def load_settings(start_dir: Path | None = None) -> IndexSettings:
    """Load index settings from the config file and environment.

    The config file may carry any IndexSettings field next to ``root``.
    NOTEGRAPH_CONCURRENCY overrides the rebuild fan-out.

    Raises:
        ConfigurationError: If the config file or an override is invalid.
    """
    data: dict = {}
    config_file = _discover_config_file(start_dir)
    if config_file:
        data = {k: v for k, v in _load_config_data(config_file).items() if k in IndexSettings.model_fields}

    concurrency = os.environ.get("NOTEGRAPH_CONCURRENCY")
    if concurrency:
        data["concurrency"] = concurrency

    if "extensions" in data and isinstance(data["extensions"], str):
        data["extensions"] = [data["extensions"]]

    try:
        return IndexSettings.model_validate(data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        raise ConfigurationError("Invalid notegraph settings:\n" + "\n".join(errors)) from e
