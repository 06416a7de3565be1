"""Tests for wikilink target resolution (notegraph.resolver)."""

from __future__ import annotations

import pytest

from conftest import build_tree, path_of
from notegraph.config import IndexSettings
from notegraph.resolver import new_document_name, resolve_link_target


@pytest.fixture
def tree():
    # Canonical order: archive/note.md, projects/My Note Plan.md, Note.md, Notebook.md
    return build_tree(
        [
            "Note.md",
            "Notebook.md",
            "archive/note.md",
            "projects/My Note Plan.md",
            ".hidden/Secret.md",
            "picture.png",
        ]
    )


class TestResolveLinkTarget:
    def test_exact_match_wins_over_earlier_case_insensitive_match(self, tree):
        assert resolve_link_target("Note", tree) == path_of("Note.md")

    def test_exact_match_for_lowercase(self, tree):
        assert resolve_link_target("note", tree) == path_of("archive/note.md")

    def test_case_insensitive_tier_uses_traversal_order(self, tree):
        assert resolve_link_target("NOTE", tree) == path_of("archive/note.md")

    @pytest.mark.parametrize("target", ["Note", "note", "NOTE"])
    def test_any_case_resolves_single_document(self, target: str):
        tree = build_tree(["Note.md"])

        assert resolve_link_target(target, tree) == path_of("Note.md")

    @pytest.mark.parametrize(
        ("target", "expected"),
        [
            ("book", "Notebook.md"),
            ("plan", "projects/My Note Plan.md"),
            ("ote", "archive/note.md"),  # first containing match in traversal order
        ],
    )
    def test_substring_tier(self, tree, target: str, expected: str):
        assert resolve_link_target(target, tree) == path_of(expected)

    @pytest.mark.parametrize("target", ["Note.md", "  Note  ", "Note.MD"])
    def test_extension_and_padding_are_ignored(self, tree, target: str):
        assert resolve_link_target(target, tree) == path_of("Note.md")

    @pytest.mark.parametrize("target", ["", "   ", "missing", "Secret", "picture"])
    def test_unresolvable_targets(self, tree, target: str):
        assert resolve_link_target(target, tree) is None

    def test_hidden_prefix_is_configurable(self, tree):
        settings = IndexSettings(hidden_prefix="")

        assert resolve_link_target("Secret", tree, settings) == path_of(".hidden/Secret.md")

    def test_empty_tree(self):
        assert resolve_link_target("Note", []) is None


class TestNewDocumentName:
    @pytest.mark.parametrize(
        ("target", "expected"),
        [
            ("Missing Page", "Missing Page.md"),
            ("Page.md", "Page.md"),
            ("  padded ", "padded.md"),
        ],
    )
    def test_default_extension(self, target: str, expected: str):
        assert new_document_name(target) == expected

    def test_custom_default_extension(self):
        settings = IndexSettings(extensions=[".markdown", ".md"], default_extension=".markdown")

        assert new_document_name("Idea", settings) == "Idea.markdown"
