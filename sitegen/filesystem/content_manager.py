"""Content directory scanner and document reader."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from sitegen.exceptions import MalformedMarkdown, MissingDocument
from sitegen.filesystem.frontmatter import DocumentData, parse_document

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES: frozenset[str] = frozenset({".md", ".markdown"})


def hash_content(content: str | bytes) -> str:
    """Compute SHA-256 hash of content."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def is_markdown_path(rel_path: str) -> bool:
    """Whether a relative path names a markdown document."""
    return PurePosixPath(rel_path).suffix.lower() in MARKDOWN_SUFFIXES


def _is_hidden(rel_path: PurePosixPath) -> bool:
    return any(part.startswith(".") for part in rel_path.parts)


@dataclass
class ContentManager:
    """Reads documents and assets from the content directory.

    ``exclude`` lists absolute directories that are never scanned, such as
    an output directory placed inside the content directory.
    """

    content_dir: Path
    exclude: list[Path] = field(default_factory=list)

    def _iter_files(self) -> list[str]:
        root = self.content_dir.resolve()
        if not root.is_dir():
            return []
        excluded = [p.resolve() for p in self.exclude]
        found: list[str] = []
        for path in root.rglob("*"):
            if not path.is_file():
                continue
            if any(path.is_relative_to(ex) for ex in excluded):
                continue
            rel = PurePosixPath(path.relative_to(root).as_posix())
            if _is_hidden(rel):
                continue
            found.append(str(rel))
        return sorted(found)

    def discover_documents(self) -> list[str]:
        """Return relative paths of all markdown documents, sorted."""
        return [p for p in self._iter_files() if is_markdown_path(p)]

    def discover_assets(self) -> list[str]:
        """Return relative paths of all non-markdown files, sorted."""
        return [p for p in self._iter_files() if not is_markdown_path(p)]

    def _validate_path(self, rel_path: str) -> Path:
        """Validate that a relative path stays within the content directory.

        Raises ValueError if the resolved path escapes content_dir.
        """
        full_path = (self.content_dir / rel_path).resolve()
        if not full_path.is_relative_to(self.content_dir.resolve()):
            raise ValueError(f"Path traversal detected: {rel_path}")
        return full_path

    def exists(self, rel_path: str) -> bool:
        """Whether a relative path names an existing file inside the content directory."""
        try:
            full_path = self._validate_path(rel_path)
        except ValueError:
            return False
        return full_path.is_file()

    def asset_path(self, rel_path: str) -> Path:
        """Absolute path of an asset, validated against traversal."""
        return self._validate_path(rel_path)

    def read_document(self, rel_path: str) -> DocumentData:
        """Read and parse a single document by relative path.

        Raises MissingDocument if the file does not exist (or lies outside the
        content directory) and MalformedMarkdown if it cannot be decoded or
        its front matter cannot be parsed.
        """
        try:
            full_path = self._validate_path(rel_path)
        except ValueError:
            raise MissingDocument(rel_path) from None
        if not full_path.is_file():
            raise MissingDocument(rel_path)
        try:
            raw_content = full_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedMarkdown(rel_path, f"not valid UTF-8 ({exc.reason})") from None
        logger.debug("Read document %s (%d bytes)", rel_path, len(raw_content))
        return parse_document(raw_content, file_path=rel_path)
