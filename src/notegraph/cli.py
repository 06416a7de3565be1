#!/usr/bin/env python3
"""
notegraph: CLI for the wikilink and tag index

Usage:
    notegraph backlinks "Note"        # Who links to Note
    notegraph links "Note"            # What Note links to
    notegraph tags                    # All tags with counts
    notegraph tagged work             # Documents carrying a tag
    notegraph resolve "note"          # Which file [[note]] opens
    notegraph watch                   # Keep the index live
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, NoReturn

import click

from . import __version__ as NOTEGRAPH_VERSION
from .config import ConfigurationError, IndexSettings, get_cache_root, get_notes_root, load_settings
from .index import NoteIndex
from .models import IndexChange, RebuildReport, TreeNode
from .provider import FileSystemProvider

log = logging.getLogger(__name__)


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


# ─────────────────────────────────────────────────────────────────────────────
# Output Formatting
# ─────────────────────────────────────────────────────────────────────────────


def output(data, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        click.echo(data)


def _handle_error(error: Exception) -> NoReturn:
    raise click.ClickException(str(error)) from error


# ─────────────────────────────────────────────────────────────────────────────
# Session Setup
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class Session:
    """An index built over one notes directory for the current command."""

    root: Path
    index: NoteIndex
    provider: FileSystemProvider
    tree: list[TreeNode]
    report: RebuildReport


def _settings_and_root(ctx: click.Context) -> tuple[Path, IndexSettings]:
    try:
        root_option = ctx.obj.get("root")
        root = Path(root_option) if root_option else get_notes_root()
        settings = load_settings()
    except ConfigurationError as exc:
        _handle_error(exc)
    if not root.is_dir():
        _handle_error(ConfigurationError(f"Notes root does not exist: {root}"))
    return root, settings


def _open_session(ctx: click.Context) -> Session:
    root, settings = _settings_and_root(ctx)
    index = NoteIndex(settings)
    provider = FileSystemProvider(root)
    tree = provider.snapshot()
    report = run_async(index.rebuild(tree, provider.read_content))
    for path in report.failed:
        click.echo(f"Warning: could not read {path}", err=True)
    return Session(root=provider.root, index=index, provider=provider, tree=tree, report=report)


def _document_path(session: Session, path: str) -> str:
    """Accept paths relative to the notes root as well as absolute ones."""
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = session.root / candidate
    return str(candidate.resolve())


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group()
@click.version_option(version=NOTEGRAPH_VERSION, prog_name="notegraph")
@click.option(
    "--root",
    type=click.Path(file_okay=False),
    envvar="NOTEGRAPH_ROOT",
    help="Notes directory (default: NOTEGRAPH_ROOT or .notegraph.yaml)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="NOTEGRAPH_QUIET",
    help="Suppress warnings, show only errors and essential output",
)
@click.pass_context
def cli(ctx: click.Context, root: str | None, quiet: bool):
    """notegraph: wikilinks, backlinks and tags for a markdown notes folder.

    \b
    Links:
      notegraph backlinks "Project Plan"    # Documents linking here
      notegraph links "Project Plan"        # Links out of a document
      notegraph resolve "plan"              # Which document [[plan]] opens

    \b
    Tags:
      notegraph tags --min-count=2
      notegraph doc-tags inbox/task.md
      notegraph tagged urgent
    """
    from ._logging import set_quiet_mode

    ctx.ensure_object(dict)
    ctx.obj["root"] = root
    ctx.obj["quiet"] = quiet

    if quiet:
        set_quiet_mode(True)


# ─────────────────────────────────────────────────────────────────────────────
# Link Commands
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def backlinks(ctx: click.Context, name: str, as_json: bool):
    """Show documents that link to NAME.

    \b
    Examples:
      notegraph backlinks "Meeting Notes"
      notegraph backlinks meeting-notes --json
    """
    session = _open_session(ctx)
    entries = session.index.get_backlinks(name)

    if as_json:
        output([entry.model_dump() for entry in entries], as_json=True)
        return

    if not entries:
        click.echo(f"No backlinks to {name}.")
        return

    for entry in entries:
        label = f"{entry.source_name} ({entry.alias})" if entry.alias else entry.source_name
        click.echo(f"  {label}  {entry.source_path}")
        if entry.context:
            click.echo(f"      {entry.context}")


@cli.command()
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def links(ctx: click.Context, name: str, as_json: bool):
    """Show the links found in document NAME and where they resolve.

    \b
    Examples:
      notegraph links "Meeting Notes"
    """
    session = _open_session(ctx)
    references = session.index.get_outgoing(name)

    rows: list[dict[str, Any]] = []
    for reference in references:
        row = reference.model_dump()
        row["resolved"] = session.index.resolve(reference.target, session.tree)
        rows.append(row)

    if as_json:
        output(rows, as_json=True)
        return

    if not rows:
        click.echo(f"No links in {name}.")
        return

    for row in rows:
        label = f"{row['target']} | {row['alias']}" if row["alias"] else row["target"]
        destination = row["resolved"] or "(unresolved)"
        click.echo(f"  [[{label}]] -> {destination}")


@cli.command()
@click.argument("target")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def resolve(ctx: click.Context, target: str, as_json: bool):
    """Resolve a link TARGET to a document path.

    Exits with status 1 when nothing matches and suggests a file to create.

    \b
    Examples:
      notegraph resolve "project plan"
    """
    root, settings = _settings_and_root(ctx)
    index = NoteIndex(settings)
    tree = FileSystemProvider(root).snapshot()
    path = index.resolve(target, tree)

    if as_json:
        output(
            {"target": target, "path": path, "create": None if path else index.new_document_name(target)},
            as_json=True,
        )
        if path is None:
            ctx.exit(1)
        return

    if path is None:
        click.echo(f"No document matches '{target}'. Create: {index.new_document_name(target)}", err=True)
        ctx.exit(1)
    click.echo(path)


# ─────────────────────────────────────────────────────────────────────────────
# Tag Commands
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.option("--min-count", default=1, type=click.IntRange(min=1), help="Minimum usage count")
@click.option("--save-cache", is_flag=True, help="Also write the warm-start tag cache")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tags(ctx: click.Context, min_count: int, save_cache: bool, as_json: bool):
    """List all tags with usage counts.

    \b
    Examples:
      notegraph tags
      notegraph tags --min-count=3
      notegraph tags --save-cache
    """
    session = _open_session(ctx)
    if save_cache:
        from .tag_cache import save_cache as write_cache

        try:
            write_cache(session.index.snapshot(), get_cache_root(session.root))
        except OSError as exc:
            log.warning("Could not write tag cache: %s", exc)

    result = [tag for tag in session.index.get_all_tags() if tag.count >= min_count]

    if as_json:
        output([tag.model_dump() for tag in result], as_json=True)
        return

    if not result:
        click.echo("No tags found.")
        return

    for tag in result:
        click.echo(f"  {tag.name}: {tag.count}")


@cli.command("doc-tags")
@click.argument("path")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def doc_tags(ctx: click.Context, path: str, as_json: bool):
    """Show the tags of the document at PATH.

    \b
    Examples:
      notegraph doc-tags inbox/task.md
    """
    session = _open_session(ctx)
    result = session.index.get_document_tags(_document_path(session, path))

    if as_json:
        output(result, as_json=True)
        return

    if not result:
        click.echo("No tags.")
        return

    click.echo(", ".join(result))


@cli.command()
@click.argument("tag")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tagged(ctx: click.Context, tag: str, as_json: bool):
    """List documents carrying TAG.

    \b
    Examples:
      notegraph tagged urgent
    """
    session = _open_session(ctx)
    result = session.index.get_documents_with_tag(tag)

    if as_json:
        output(result, as_json=True)
        return

    if not result:
        click.echo(f"No documents tagged {tag}.")
        return

    for path in result:
        click.echo(f"  {path}")


# ─────────────────────────────────────────────────────────────────────────────
# Index Commands
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def stats(ctx: click.Context, as_json: bool):
    """Show index size and documents that could not be read."""
    session = _open_session(ctx)
    result = session.index.stats().model_dump()
    result["indexed"] = session.report.indexed
    result["failed"] = session.report.failed

    if as_json:
        output(result, as_json=True)
        return

    click.echo(f"Root:              {session.root}")
    click.echo(f"Documents indexed: {result['indexed']}")
    click.echo(f"References:        {result['references']}")
    click.echo(f"Linked targets:    {result['backlink_targets']}")
    click.echo(f"Tags:              {result['tags']} on {result['tagged_documents']} documents")
    if result["failed"]:
        click.echo(f"Unreadable:        {len(result['failed'])}")


def _describe_change(change: IndexChange) -> str | None:
    if change.rebuilt:
        return f"rebuilt ({len(change.documents)} documents)"
    if change.deferred:
        return None
    parts = []
    if change.backlink_keys:
        parts.append(f"backlinks: {', '.join(sorted(change.backlink_keys))}")
    if change.tags_added:
        parts.append(f"new tags: {', '.join(sorted(change.tags_added))}")
    if change.tags_removed:
        parts.append(f"dropped tags: {', '.join(sorted(change.tags_removed))}")
    if not parts:
        return None
    return "; ".join(parts)


async def _watch(root: Path, settings: IndexSettings, cache_root: Path) -> None:
    from .tag_cache import load_cache, save_cache
    from .watcher import IndexWatcher

    index = NoteIndex(settings)
    cached = load_cache(cache_root)
    if cached is not None:
        index.warm_start(cached)

    def on_change(change: IndexChange) -> None:
        message = _describe_change(change)
        if message:
            click.echo(message)

    def on_rebuild(report: RebuildReport) -> None:
        try:
            save_cache(index.snapshot(), cache_root)
        except OSError as exc:
            log.warning("Could not write tag cache: %s", exc)

    index.subscribe(on_change)
    watcher = IndexWatcher(index, FileSystemProvider(root), on_rebuild=on_rebuild)
    await watcher.refresh()
    watcher.start()
    try:
        await asyncio.Event().wait()
    finally:
        watcher.stop()


@cli.command()
@click.pass_context
def watch(ctx: click.Context):
    """Watch the notes directory and report index changes until interrupted."""
    root, settings = _settings_and_root(ctx)
    click.echo(f"Watching {root} (Ctrl-C to stop)")
    try:
        run_async(_watch(root, settings, get_cache_root(root)))
    except KeyboardInterrupt:
        click.echo("Stopped.")


# ─────────────────────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────────────────────


def main():
    """Entry point for notegraph CLI."""
    from ._logging import configure_logging

    configure_logging()
    cli()


if __name__ == "__main__":
    main()
