"""YAML front matter parser for documents."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import frontmatter
import yaml

from sitegen.exceptions import MalformedMarkdown

RECOGNIZED_FIELDS: frozenset[str] = frozenset(
    {
        "title",
        "order",
        "draft",
        "description",
    }
)

_SETEXT_H1_RE = re.compile(r"^ {0,3}=+\s*$")


@dataclass
class DocumentData:
    """Parsed document data."""

    title: str
    body: str
    raw_content: str
    file_path: str
    order: float | None = None
    description: str = ""
    is_draft: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)


def title_from_filename(file_path: str) -> str:
    """Derive a human-readable title from a file or directory name."""
    name = file_path.rstrip("/").rsplit("/", maxsplit=1)[-1]
    name = re.sub(r"\.(md|markdown)$", "", name)
    name = re.sub(r"^\d+[-_]", "", name)  # strip ordering prefix
    name = name.replace("-", " ").replace("_", " ").strip()
    return name.title() if name else "Untitled"


def extract_title(content: str, file_path: str = "") -> str:
    """Extract title from the first level-1 heading in markdown body.

    Both ``# Title`` and a ``Title`` line underlined with ``===`` count.
    Falls back to deriving title from filename.
    """
    in_code_block = False
    lines = content.strip().split("\n")
    for index, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith(("```", "~~~")):
            in_code_block = not in_code_block
            continue
        if in_code_block:
            continue
        if stripped.startswith("# ") and not stripped.startswith("## "):
            return stripped.removeprefix("# ").strip().rstrip("#").strip()
        next_line = lines[index + 1] if index + 1 < len(lines) else ""
        if (
            stripped
            and not stripped.startswith("#")
            and not _SETEXT_H1_RE.match(line)
            and _SETEXT_H1_RE.match(next_line)
        ):
            return stripped
    if file_path:
        return title_from_filename(file_path)
    return "Untitled"


def parse_order(raw_order: object | None) -> float | None:
    """Parse the navigation ``order`` front matter value.

    Non-numeric values are ignored rather than rejected.
    """
    if raw_order is None or isinstance(raw_order, bool):
        return None
    if isinstance(raw_order, int | float):
        return float(raw_order)
    try:
        return float(str(raw_order).strip())
    except ValueError:
        return None


def parse_document(raw_content: str, file_path: str = "") -> DocumentData:
    """Parse a markdown file with optional YAML front matter into DocumentData.

    Raises MalformedMarkdown if the front matter is not valid YAML or is not
    a mapping.
    """
    try:
        post = frontmatter.loads(raw_content)
    except yaml.YAMLError as exc:
        reason = str(exc).splitlines()[0] if str(exc) else "invalid YAML"
        raise MalformedMarkdown(file_path, f"invalid front matter: {reason}") from None

    # Title: prefer front matter (non-empty string), fall back to heading extraction.
    # Non-string values (e.g. title: 42) are coerced to string.
    fm_title = post.get("title")
    if fm_title is not None and not isinstance(fm_title, str):
        fm_title = str(fm_title)
    if fm_title and fm_title.strip():
        title = fm_title.strip()
    else:
        title = extract_title(post.content, file_path)

    raw_description = post.get("description")
    description = str(raw_description).strip() if raw_description is not None else ""

    return DocumentData(
        title=title,
        body=post.content,
        raw_content=raw_content,
        file_path=file_path,
        order=parse_order(post.get("order")),
        description=description,
        is_draft=bool(post.get("draft", False)),
        metadata=dict(post.metadata),
    )
