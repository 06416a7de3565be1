"""CLI tests for notegraph.

Covers each command with:
- One happy path per command
- One error or empty case where the command has one
- Bulk parametrized tests for --help and --json output

Design:
- Uses fixtures from conftest.py (notes_with_corpus, cli_invoke, runner)
- Runs against real files in a temporary notes directory
"""

import json
import logging
from pathlib import Path

import pytest

from notegraph import __version__ as NOTEGRAPH_VERSION
from notegraph._logging import set_quiet_mode
from notegraph.cli import _describe_change, cli
from notegraph.models import IndexChange


def resolved(root: Path, relative: str) -> str:
    return str((root / relative).resolve())


# ─────────────────────────────────────────────────────────────────────────────
# Command Lists
# ─────────────────────────────────────────────────────────────────────────────

ALL_COMMANDS = ["backlinks", "links", "resolve", "tags", "doc-tags", "tagged", "stats", "watch"]

# Commands that support --json output, with the arguments they need
JSON_COMMANDS = [
    ["backlinks", "B"],
    ["links", "A"],
    ["resolve", "B"],
    ["tags"],
    ["doc-tags", "task.md"],
    ["tagged", "work"],
    ["stats"],
]


# ─────────────────────────────────────────────────────────────────────────────
# Bulk Tests (Parametrized)
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.parametrize("cmd", ALL_COMMANDS)
def test_command_has_working_help(runner, cmd):
    """Every command has a working --help that shows usage."""
    result = runner.invoke(cli, [cmd, "--help"])
    assert result.exit_code == 0, f"{cmd} --help failed: {result.output}"
    assert "Usage:" in result.output


@pytest.mark.parametrize("args", JSON_COMMANDS)
def test_json_output_is_valid(cli_invoke, notes_with_corpus, args):
    """--json output parses as JSON."""
    result = cli_invoke([*args, "--json"])
    assert result.exit_code == 0, result.output
    json.loads(result.output)


def test_version_option(runner):
    """--version outputs version number."""
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert NOTEGRAPH_VERSION in result.output


def test_missing_root_is_an_error(runner, tmp_path):
    """A notes root that does not exist fails without a traceback."""
    result = runner.invoke(cli, ["--root", str(tmp_path / "nope"), "stats"])
    assert result.exit_code == 1
    assert "does not exist" in result.output
    assert "Traceback" not in result.output


def test_root_option(runner, notes_with_corpus):
    """--root selects the notes directory explicitly."""
    result = runner.invoke(cli, ["--root", str(notes_with_corpus), "stats", "--json"])
    assert result.exit_code == 0
    assert json.loads(result.output)["indexed"] == 5


def test_quiet_mode_raises_log_level(cli_invoke, notes_with_corpus):
    """--quiet limits package logging to errors."""
    try:
        result = cli_invoke(["--quiet", "stats"])
        assert result.exit_code == 0
        assert logging.getLogger("notegraph").level == logging.ERROR
    finally:
        set_quiet_mode(False)


# ─────────────────────────────────────────────────────────────────────────────
# Link Commands
# ─────────────────────────────────────────────────────────────────────────────


class TestBacklinksCommand:
    """Tests for 'notegraph backlinks'."""

    def test_lists_sources_with_alias(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["backlinks", "B"])

        assert result.exit_code == 0
        assert "A (See B)" in result.output
        assert resolved(notes_with_corpus, "projects/code.md") in result.output

    def test_json_entries(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["backlinks", "b", "--json"])

        data = json.loads(result.output)
        assert [entry["source_name"] for entry in data] == ["code", "A"]
        assert data[1]["alias"] == "See B"
        assert "[[B|See B]]" in data[1]["context"]

    def test_no_backlinks(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["backlinks", "Nobody"])

        assert result.exit_code == 0
        assert "No backlinks to Nobody." in result.output


class TestLinksCommand:
    """Tests for 'notegraph links'."""

    def test_shows_resolution(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["links", "Plan", "--json"])

        data = json.loads(result.output)
        assert len(data) == 1
        assert data[0]["target"] == "Task"
        assert data[0]["resolved"] == resolved(notes_with_corpus, "task.md")

    def test_text_output(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["links", "A"])

        assert f"[[B | See B]] -> {resolved(notes_with_corpus, 'B.md')}" in result.output

    def test_document_without_links(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["links", "B"])

        assert "No links in B." in result.output


class TestResolveCommand:
    """Tests for 'notegraph resolve'."""

    def test_resolves_substring(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["resolve", "plan"])

        assert result.exit_code == 0
        assert result.output.strip() == resolved(notes_with_corpus, "projects/Plan.md")

    def test_unresolved_suggests_file(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["resolve", "Missing"])

        assert result.exit_code == 1
        assert "Create: Missing.md" in result.output

    def test_unresolved_json(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["resolve", "Missing", "--json"])

        assert result.exit_code == 1
        assert json.loads(result.output) == {"target": "Missing", "path": None, "create": "Missing.md"}

    def test_hidden_documents_do_not_resolve(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["resolve", "Old"])

        assert result.exit_code == 1


# ─────────────────────────────────────────────────────────────────────────────
# Tag Commands
# ─────────────────────────────────────────────────────────────────────────────


class TestTagsCommand:
    """Tests for 'notegraph tags'."""

    def test_counts_sorted(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["tags", "--json"])

        data = json.loads(result.output)
        assert [(tag["name"], tag["count"]) for tag in data] == [("work", 2), ("real", 1), ("urgent", 1)]
        assert all(tag["color"].startswith("#") for tag in data)

    def test_min_count(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["tags", "--min-count", "2"])

        assert "work: 2" in result.output
        assert "urgent" not in result.output

    def test_listing_is_read_only(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["tags"])

        assert result.exit_code == 0
        assert not (notes_with_corpus / ".notegraph").exists()

    def test_save_cache_writes_tag_cache(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["tags", "--save-cache"])

        assert result.exit_code == 0
        cache = json.loads((notes_with_corpus / ".notegraph" / "tags.json").read_text(encoding="utf-8"))
        assert {entry["path"] for entry in cache["document_tags"]} == {
            resolved(notes_with_corpus, "task.md"),
            resolved(notes_with_corpus, "projects/Plan.md"),
            resolved(notes_with_corpus, "projects/code.md"),
        }

    def test_no_tags(self, cli_invoke, notes_root):
        (notes_root / "plain.md").write_text("Nothing to see.", encoding="utf-8")

        result = cli_invoke(["tags"])

        assert "No tags found." in result.output


class TestDocTagsCommand:
    """Tests for 'notegraph doc-tags'."""

    def test_relative_path(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["doc-tags", "task.md"])

        assert result.output.strip() == "work, urgent"

    def test_code_fence_tags_ignored(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["doc-tags", "projects/code.md", "--json"])

        assert json.loads(result.output) == ["real"]

    def test_untagged(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["doc-tags", "B.md"])

        assert "No tags." in result.output


class TestTaggedCommand:
    """Tests for 'notegraph tagged'."""

    def test_lists_documents(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["tagged", "work", "--json"])

        assert json.loads(result.output) == [
            resolved(notes_with_corpus, "projects/Plan.md"),
            resolved(notes_with_corpus, "task.md"),
        ]

    def test_unknown_tag(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["tagged", "stale"])

        assert "No documents tagged stale." in result.output


# ─────────────────────────────────────────────────────────────────────────────
# Index Commands
# ─────────────────────────────────────────────────────────────────────────────


class TestStatsCommand:
    """Tests for 'notegraph stats'."""

    def test_json(self, cli_invoke, notes_with_corpus):
        result = cli_invoke(["stats", "--json"])

        data = json.loads(result.output)
        assert data["indexed"] == 5
        assert data["failed"] == []
        assert data["tags"] == 3

    def test_reports_unreadable_documents(self, cli_invoke, notes_root):
        (notes_root / "good.md").write_text("#ok", encoding="utf-8")
        (notes_root / "bad.md").write_bytes(b"\xff\xfe")

        result = cli_invoke(["stats"])

        assert result.exit_code == 0
        assert "could not read" in result.output
        assert "Unreadable:" in result.output


class TestDescribeChange:
    """Tests for the watch command's change summaries."""

    def test_rebuild(self):
        change = IndexChange(rebuilt=True, documents={"/a.md", "/b.md"})

        assert _describe_change(change) == "rebuilt (2 documents)"

    def test_edit(self):
        change = IndexChange(backlink_keys={"b", "a"}, tags_added={"new"}, tags_removed={"old"})

        assert _describe_change(change) == "backlinks: a, b; new tags: new; dropped tags: old"

    @pytest.mark.parametrize(
        "change",
        [
            IndexChange(deferred=True, documents={"/a.md"}),
            IndexChange(tags_updated={"work"}),
        ],
    )
    def test_silent_changes(self, change):
        assert _describe_change(change) is None
