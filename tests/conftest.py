"""Shared test fixtures for the notegraph test suite.

Design:
- notes_root: isolated notes directory with NOTEGRAPH_* env pointing at it
- build_tree: in-memory tree snapshots from {"dir/name.md": content} dicts
- FakeReader: async reader over a dict, with injectable failures and pauses
- cli_invoke: CliRunner wrapper bound to notes_root
"""

from __future__ import annotations

import asyncio
from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from notegraph.cli import cli
from notegraph.models import TreeNode

VIRTUAL_ROOT = "/notes"


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions (for test code, not fixtures)
# ─────────────────────────────────────────────────────────────────────────────


def path_of(relative: str) -> str:
    """Path a document gets in trees produced by build_tree()."""
    return f"{VIRTUAL_ROOT}/{relative}"


def build_tree(relative_paths) -> list[TreeNode]:
    """Build a tree snapshot from relative file paths.

    Usage:
        tree = build_tree(["A.md", "folder/B.md"])
    """
    roots: list[TreeNode] = []
    directories: dict[str, TreeNode] = {}

    def children_of(parent: str) -> list[TreeNode]:
        if not parent:
            return roots
        return directories[parent].children

    for relative in relative_paths:
        parts = relative.split("/")
        for depth in range(1, len(parts)):
            dir_rel = "/".join(parts[:depth])
            if dir_rel not in directories:
                node = TreeNode(
                    id=f"dir:{dir_rel}",
                    name=parts[depth - 1],
                    path=path_of(dir_rel),
                    kind="directory",
                    children=[],
                )
                directories[dir_rel] = node
                children_of("/".join(parts[: depth - 1])).append(node)
        children_of("/".join(parts[:-1])).append(
            TreeNode(id=f"file:{relative}", name=parts[-1], path=path_of(relative), kind="file")
        )

    return roots


def create_note(root: Path, relative: str, content: str) -> Path:
    """Write a note file under a real notes root.

    Usage in tests:
        from conftest import create_note
        create_note(notes_root, "inbox/task.md", "#todo")
    """
    note = root / relative
    note.parent.mkdir(parents=True, exist_ok=True)
    note.write_text(content, encoding="utf-8")
    return note


class FakeReader:
    """Async content reader over {relative_path: content}.

    Paths listed in ``failing`` raise OSError. Paths listed in ``gates`` wait
    for the matching asyncio.Event before returning.
    """

    def __init__(self, contents: dict[str, str], failing: set[str] | None = None):
        self.contents = {path_of(rel): text for rel, text in contents.items()}
        self.failing = {path_of(rel) for rel in (failing or set())}
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []

    def gate(self, relative: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[path_of(relative)] = event
        return event

    async def __call__(self, path: str) -> str:
        self.calls.append(path)
        gate = self.gates.get(path)
        if gate is not None:
            await gate.wait()
        if path in self.failing:
            raise OSError(f"cannot read {path}")
        return self.contents[path]


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def notes_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Create an isolated notes directory.

    Sets NOTEGRAPH_ROOT to the directory and clears other overrides.

    Usage:
        def test_something(notes_root):
            (notes_root / "note.md").write_text("[[other]]")
    """
    root = tmp_path / "notes"
    root.mkdir()

    monkeypatch.setenv("NOTEGRAPH_ROOT", str(root))
    monkeypatch.delenv("NOTEGRAPH_CACHE_ROOT", raising=False)
    monkeypatch.delenv("NOTEGRAPH_CONCURRENCY", raising=False)
    monkeypatch.chdir(tmp_path)

    yield root


@pytest.fixture
def corpus() -> dict[str, str]:
    """A small corpus covering links, tags, fences and a hidden directory."""
    return {
        "A.md": "Intro. See [[B|See B]] for details.\n",
        "B.md": "No links here.\n",
        "task.md": '---\ntags: ["work","urgent"]\n---\n\nFinish the report.\n',
        "projects/Plan.md": "Linked from [[Task]] and tagged #work.\n",
        "projects/code.md": "```\n#notatag [[B]]\n```\nOutside #real\n",
        ".trash/Old.md": "[[B]] #stale\n",
        "image.png": "binary",
    }


@pytest.fixture
def notes_with_corpus(notes_root: Path, corpus: dict[str, str]) -> Path:
    """The corpus fixture written to disk under notes_root."""
    for relative, content in corpus.items():
        create_note(notes_root, relative, content)
    return notes_root


# ─────────────────────────────────────────────────────────────────────────────
# CLI Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def cli_invoke(runner: CliRunner, notes_root: Path):
    """Helper for invoking the CLI against notes_root.

    Usage:
        def test_tags(cli_invoke):
            result = cli_invoke(["tags", "--json"])
            assert result.exit_code == 0
    """

    def _invoke(args: list[str], catch_exceptions: bool = False):
        return runner.invoke(
            cli,
            args,
            catch_exceptions=catch_exceptions,
            env={"NOTEGRAPH_ROOT": str(notes_root)},
        )

    return _invoke
