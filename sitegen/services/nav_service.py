"""Navigation tree: parsing, automatic derivation and traversal."""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from sitegen.exceptions import ConfigInvalid, MissingDocument
from sitegen.filesystem.content_manager import is_markdown_path
from sitegen.filesystem.frontmatter import title_from_filename
from sitegen.schemas.config import DuplicateLabelPolicy
from sitegen.services.slug_service import is_index_document

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from sitegen.filesystem.content_manager import ContentManager
    from sitegen.filesystem.frontmatter import DocumentData

logger = logging.getLogger(__name__)

_LINK_PREFIXES = ("http://", "https://", "mailto:")


@dataclass(frozen=True)
class NavPage:
    """Leaf entry referencing a document. ``label`` None means use the document title."""

    path: str
    label: str | None = None


@dataclass(frozen=True)
class NavLink:
    """Leaf entry pointing outside the site."""

    label: str
    url: str


@dataclass(frozen=True)
class NavSection:
    """Labeled subtree."""

    label: str
    children: tuple[NavItem, ...] = ()


NavItem = NavPage | NavLink | NavSection


@dataclass(frozen=True)
class NavTree:
    """Ordered top-level navigation entries."""

    items: tuple[NavItem, ...] = ()

    def iter_pages(self) -> Iterator[tuple[NavPage, tuple[str, ...]]]:
        """Yield every page in navigation order with the labels of its enclosing sections."""
        yield from _iter_pages(self.items, ())

    def page_paths(self) -> list[str]:
        """Document paths in navigation order."""
        return [page.path for page, _ in self.iter_pages()]


def _iter_pages(
    items: Iterable[NavItem], parents: tuple[str, ...]
) -> Iterator[tuple[NavPage, tuple[str, ...]]]:
    for item in items:
        if isinstance(item, NavPage):
            yield item, parents
        elif isinstance(item, NavSection):
            yield from _iter_pages(item.children, (*parents, item.label))


@dataclass
class _NavParser:
    duplicate_labels: DuplicateLabelPolicy
    seen_paths: set[str] = field(default_factory=set)

    def parse_items(self, raw_items: list[Any], where: str) -> tuple[NavItem, ...]:
        items = tuple(self.parse_entry(raw, where) for raw in raw_items)
        self._check_duplicate_labels(items, where)
        return items

    def parse_entry(self, raw: Any, where: str) -> NavItem:
        if isinstance(raw, str):
            if raw.startswith(_LINK_PREFIXES):
                return NavLink(label=raw, url=raw)
            return NavPage(path=self._normalize_path(raw, where))

        if not isinstance(raw, dict) or len(raw) != 1:
            raise ConfigInvalid(
                f"{where}: each nav entry must be a path or a single-key table "
                f"mapping a label to a path, URL or list, got {raw!r}"
            )

        ((label, value),) = raw.items()
        label = str(label).strip()
        if not label:
            raise ConfigInvalid(f"{where}: nav labels must not be empty")

        if isinstance(value, list):
            return NavSection(label=label, children=self.parse_items(value, f"{where} > {label}"))
        if isinstance(value, str):
            if value.startswith(_LINK_PREFIXES):
                return NavLink(label=label, url=value)
            return NavPage(path=self._normalize_path(value, f"{where} > {label}"), label=label)
        raise ConfigInvalid(
            f"{where} > {label}: expected a path, URL or list, got {type(value).__name__}"
        )

    def _normalize_path(self, raw_path: str, where: str) -> str:
        value = raw_path.strip().replace("\\", "/")
        if not value:
            raise ConfigInvalid(f"{where}: empty document path")
        if value.startswith("/") or PurePosixPath(value).is_absolute():
            raise ConfigInvalid(f"{where}: document path must be relative: {raw_path}")
        normalized = posixpath.normpath(value.removeprefix("./"))
        if normalized == ".." or normalized.startswith("../"):
            raise ConfigInvalid(f"{where}: document path escapes the docs directory: {raw_path}")
        if not is_markdown_path(normalized):
            raise ConfigInvalid(f"{where}: not a markdown document: {raw_path}")
        if normalized in self.seen_paths:
            raise ConfigInvalid(f"{where}: {normalized} is listed in nav more than once")
        self.seen_paths.add(normalized)
        return normalized

    def _check_duplicate_labels(self, items: tuple[NavItem, ...], where: str) -> None:
        if self.duplicate_labels is DuplicateLabelPolicy.ALLOW:
            return
        seen: set[str] = set()
        for item in items:
            label = item.label
            if label is None:
                continue
            if label in seen:
                msg = f"{where}: duplicate nav label {label!r}"
                if self.duplicate_labels is DuplicateLabelPolicy.ERROR:
                    raise ConfigInvalid(msg)
                logger.warning(msg)
            seen.add(label)


def parse_nav(
    raw_nav: list[Any],
    duplicate_labels: DuplicateLabelPolicy = DuplicateLabelPolicy.WARN,
) -> NavTree:
    """Build a navigation tree from the raw ``nav`` list of sitegen.toml.

    Raises ConfigInvalid for malformed entries, paths outside the docs
    directory, documents listed twice, and (with the ``error`` policy)
    duplicate sibling labels.
    """
    parser = _NavParser(duplicate_labels=duplicate_labels)
    return NavTree(items=parser.parse_items(raw_nav, "nav"))


def check_nav_documents(tree: NavTree, content_manager: ContentManager) -> None:
    """Raise MissingDocument for the first nav page with no backing file."""
    for path in tree.page_paths():
        if not content_manager.exists(path):
            raise MissingDocument(path)


def _sort_key(order: float | None, name: str) -> tuple[bool, float, str]:
    return (order is None, order if order is not None else 0.0, name)


def derive_nav(documents: Mapping[str, DocumentData]) -> NavTree:
    """Derive a navigation tree from the directory layout of *documents*.

    Directories become sections labeled with the title of their index
    document (or the directory name).  Within a directory the index comes
    first, the remaining entries are ordered by front matter ``order`` and
    then by name.
    """
    return NavTree(items=_derive_dir("", documents))


def _derive_dir(directory: str, documents: Mapping[str, DocumentData]) -> tuple[NavItem, ...]:
    index_page: NavPage | None = None
    entries: list[tuple[tuple[bool, float, str], NavItem]] = []
    subdirs: set[str] = set()

    prefix = f"{directory}/" if directory else ""
    for path in sorted(documents):
        if not path.startswith(prefix):
            continue
        rest = path[len(prefix) :]
        if "/" in rest:
            subdirs.add(rest.split("/", maxsplit=1)[0])
            continue
        if is_index_document(path) and index_page is None:
            index_page = NavPage(path=path)
            continue
        entries.append((_sort_key(documents[path].order, rest), NavPage(path=path)))

    for name in sorted(subdirs):
        sub_path = f"{prefix}{name}"
        children = _derive_dir(sub_path, documents)
        if not children:
            continue
        label = title_from_filename(name)
        order: float | None = None
        first = children[0]
        if isinstance(first, NavPage) and is_index_document(first.path):
            label = documents[first.path].title
            order = documents[first.path].order
        entries.append((_sort_key(order, name), NavSection(label=label, children=children)))

    entries.sort(key=lambda pair: pair[0])
    items: list[NavItem] = [item for _, item in entries]
    if index_page is not None:
        items.insert(0, index_page)
    return tuple(items)


def append_unlisted(tree: NavTree, unlisted: Mapping[str, DocumentData]) -> NavTree:
    """Append documents missing from an explicit nav, grouped by directory."""
    if not unlisted:
        return tree
    return NavTree(items=tree.items + derive_nav(unlisted).items)


def prune_nav(tree: NavTree, keep: Iterable[str]) -> NavTree:
    """Drop pages whose document is not in *keep*, and sections left empty."""
    keep_set = set(keep)
    return NavTree(items=_prune(tree.items, keep_set))


def _prune(items: tuple[NavItem, ...], keep: set[str]) -> tuple[NavItem, ...]:
    result: list[NavItem] = []
    for item in items:
        if isinstance(item, NavPage):
            if item.path in keep:
                result.append(item)
        elif isinstance(item, NavSection):
            children = _prune(item.children, keep)
            if children:
                result.append(NavSection(label=item.label, children=children))
        else:
            result.append(item)
    return tuple(result)
