"""Tests for navigation tree parsing and derivation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from sitegen.exceptions import ConfigInvalid, MissingDocument
from sitegen.filesystem.content_manager import ContentManager
from sitegen.filesystem.frontmatter import parse_document
from sitegen.schemas.config import DuplicateLabelPolicy
from sitegen.services.nav_service import (
    NavLink,
    NavPage,
    NavSection,
    NavTree,
    append_unlisted,
    check_nav_documents,
    derive_nav,
    parse_nav,
    prune_nav,
)

if TYPE_CHECKING:
    from pathlib import Path


def _docs(sources: dict[str, str]) -> dict[str, object]:
    return {path: parse_document(text, path) for path, text in sources.items()}


class TestParseNav:
    def test_single_page(self) -> None:
        tree = parse_nav([{"FAQ": "faq.md"}])
        assert tree == NavTree(items=(NavPage(path="faq.md", label="FAQ"),))

    def test_nested_sections_links_and_bare_paths(self) -> None:
        tree = parse_nav(
            [
                "index.md",
                {"Guide": [{"Setup": "guide/setup.md"}, "guide/usage.md"]},
                {"Repo": "https://example.com/repo"},
            ]
        )
        assert tree.items == (
            NavPage(path="index.md"),
            NavSection(
                label="Guide",
                children=(
                    NavPage(path="guide/setup.md", label="Setup"),
                    NavPage(path="guide/usage.md"),
                ),
            ),
            NavLink(label="Repo", url="https://example.com/repo"),
        )
        assert tree.page_paths() == ["index.md", "guide/setup.md", "guide/usage.md"]

    def test_iter_pages_reports_parents(self) -> None:
        tree = parse_nav([{"A": [{"B": [{"Deep": "a/b/deep.md"}]}]}])
        assert list(tree.iter_pages()) == [(NavPage(path="a/b/deep.md", label="Deep"), ("A", "B"))]

    def test_paths_normalized(self) -> None:
        tree = parse_nav([{"X": "./guide/../faq.md"}])
        assert tree.page_paths() == ["faq.md"]

    def test_multi_key_entry_rejected(self) -> None:
        with pytest.raises(ConfigInvalid, match="single-key"):
            parse_nav([{"A": "a.md", "B": "b.md"}])

    def test_wrong_value_type_rejected(self) -> None:
        with pytest.raises(ConfigInvalid, match="expected a path"):
            parse_nav([{"A": 3}])

    def test_absolute_path_rejected(self) -> None:
        with pytest.raises(ConfigInvalid, match="relative"):
            parse_nav([{"A": "/etc/passwd.md"}])

    def test_escaping_path_rejected(self) -> None:
        with pytest.raises(ConfigInvalid, match="escapes"):
            parse_nav([{"A": "../outside.md"}])

    def test_non_markdown_rejected(self) -> None:
        with pytest.raises(ConfigInvalid, match="not a markdown document"):
            parse_nav([{"Logo": "logo.png"}])

    def test_document_listed_twice_rejected(self) -> None:
        with pytest.raises(ConfigInvalid, match="more than once"):
            parse_nav([{"A": "a.md"}, {"S": [{"Again": "a.md"}]}])

    def test_empty_label_rejected(self) -> None:
        with pytest.raises(ConfigInvalid, match="labels must not be empty"):
            parse_nav([{" ": "a.md"}])


class TestDuplicateLabels:
    _NAV = [{"Intro": "a.md"}, {"Intro": "b.md"}]

    def test_allow(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            parse_nav(self._NAV, DuplicateLabelPolicy.ALLOW)
        assert "duplicate" not in caplog.text

    def test_warn(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            tree = parse_nav(self._NAV, DuplicateLabelPolicy.WARN)
        assert len(tree.items) == 2
        assert "duplicate nav label 'Intro'" in caplog.text

    def test_error(self) -> None:
        with pytest.raises(ConfigInvalid, match="duplicate nav label"):
            parse_nav(self._NAV, DuplicateLabelPolicy.ERROR)

    def test_same_label_in_different_sections_is_fine(self) -> None:
        nav = [{"A": [{"Intro": "a.md"}]}, {"B": [{"Intro": "b.md"}]}]
        tree = parse_nav(nav, DuplicateLabelPolicy.ERROR)
        assert tree.page_paths() == ["a.md", "b.md"]


class TestCheckNavDocuments:
    def test_missing_document(self, tmp_path: Path) -> None:
        (tmp_path / "faq.md").write_text("# FAQ\n", encoding="utf-8")
        tree = parse_nav([{"FAQ": "faq.md"}, {"Gone": "missing.md"}])
        with pytest.raises(MissingDocument) as exc_info:
            check_nav_documents(tree, ContentManager(tmp_path))
        assert exc_info.value.path == "missing.md"

    def test_all_present(self, tmp_path: Path) -> None:
        (tmp_path / "faq.md").write_text("# FAQ\n", encoding="utf-8")
        check_nav_documents(parse_nav([{"FAQ": "faq.md"}]), ContentManager(tmp_path))


class TestDeriveNav:
    def test_index_first_then_order_then_name(self) -> None:
        docs = _docs(
            {
                "zeta.md": "# Zeta\n",
                "alpha.md": "# Alpha\n",
                "first.md": "---\norder: 1\n---\n# First\n",
                "index.md": "# Home\n",
            }
        )
        tree = derive_nav(docs)  # type: ignore[arg-type]
        assert tree.page_paths() == ["index.md", "first.md", "alpha.md", "zeta.md"]

    def test_directories_become_sections(self) -> None:
        docs = _docs(
            {
                "index.md": "# Home\n",
                "user-guide/index.md": "# The Guide\n",
                "user-guide/setup.md": "# Setup\n",
                "reference/api.md": "# API\n",
            }
        )
        tree = derive_nav(docs)  # type: ignore[arg-type]
        assert tree.items == (
            NavPage(path="index.md"),
            NavSection(label="Reference", children=(NavPage(path="reference/api.md"),)),
            NavSection(
                label="The Guide",
                children=(
                    NavPage(path="user-guide/index.md"),
                    NavPage(path="user-guide/setup.md"),
                ),
            ),
        )

    def test_section_order_from_index_document(self) -> None:
        docs = _docs(
            {
                "b/index.md": "---\norder: 1\n---\n# B\n",
                "a/page.md": "# A page\n",
            }
        )
        tree = derive_nav(docs)  # type: ignore[arg-type]
        assert [item.label for item in tree.items] == ["B", "A"]

    def test_every_document_placed_once(self) -> None:
        paths = ["index.md", "a.md", "x/b.md", "x/y/c.md", "x/y/index.md", "z/README.md"]
        docs = _docs({p: "# T\n" for p in paths})
        tree = derive_nav(docs)  # type: ignore[arg-type]
        assert sorted(tree.page_paths()) == sorted(paths)


class TestAppendAndPrune:
    def test_append_unlisted(self) -> None:
        tree = parse_nav([{"Home": "index.md"}])
        docs = _docs({"extra/notes.md": "# Notes\n"})
        result = append_unlisted(tree, docs)  # type: ignore[arg-type]
        assert result.page_paths() == ["index.md", "extra/notes.md"]
        assert isinstance(result.items[1], NavSection)
        assert result.items[1].label == "Extra"

    def test_append_nothing(self) -> None:
        tree = parse_nav([{"Home": "index.md"}])
        assert append_unlisted(tree, {}) is tree

    def test_prune_drops_pages_and_empty_sections(self) -> None:
        tree = parse_nav(
            [
                {"Home": "index.md"},
                {"S": [{"Gone": "gone.md"}]},
                {"Repo": "https://example.com"},
            ]
        )
        result = prune_nav(tree, ["index.md"])
        assert result.items == (
            NavPage(path="index.md", label="Home"),
            NavLink(label="Repo", url="https://example.com"),
        )
