"""Slug generation for heading anchors and document routes."""

from __future__ import annotations

import re
import unicodedata
from pathlib import PurePosixPath

MAX_SLUG_LENGTH = 80

INDEX_STEMS: frozenset[str] = frozenset({"index", "readme"})


def generate_slug(text: str) -> str:
    """Generate a URL-safe slug from heading text.

    - Normalize unicode to ASCII (NFKD)
    - Lowercase, strip
    - Replace non-alphanumeric chars with hyphens
    - Strip leading/trailing hyphens
    - Truncate to 80 chars (don't cut mid-word if possible)
    - Return "section" for input with no usable characters
    """
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = text.lower().strip()
    text = re.sub(r"[^a-z0-9]+", "-", text)
    text = text.strip("-")

    if not text:
        return "section"

    if len(text) > MAX_SLUG_LENGTH:
        truncated = text[:MAX_SLUG_LENGTH]
        last_hyphen = truncated.rfind("-")
        if last_hyphen > 0:
            truncated = truncated[:last_hyphen]
        text = truncated.rstrip("-")

    return text


def unique_slug(text: str, used: set[str]) -> str:
    """Generate a slug not yet in *used*, appending -2, -3, etc., and record it."""
    base = generate_slug(text)
    slug = base
    counter = 2
    while slug in used:
        slug = f"{base}-{counter}"
        counter += 1
    used.add(slug)
    return slug


def route_for_document(rel_path: str) -> str:
    """Map a document path to its site route.

    ``faq.md`` -> ``/faq/``, ``guide/setup.md`` -> ``/guide/setup/``,
    ``index.md`` and ``README.md`` -> the route of their directory.
    """
    path = PurePosixPath(rel_path)
    parts = list(path.parent.parts) if str(path.parent) != "." else []
    if path.stem.lower() not in INDEX_STEMS:
        parts.append(path.stem)
    if not parts:
        return "/"
    return "/" + "/".join(parts) + "/"


def output_file_for_route(route: str) -> str:
    """Relative output file for a route: ``/faq/`` -> ``faq/index.html``."""
    stripped = route.strip("/")
    if not stripped:
        return "index.html"
    return f"{stripped}/index.html"


def is_index_document(rel_path: str) -> bool:
    """Whether a document is the index of its directory."""
    return PurePosixPath(rel_path).stem.lower() in INDEX_STEMS
