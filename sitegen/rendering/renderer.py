"""Markdown to HTML renderer built on Python-Markdown."""

from __future__ import annotations

import html
import logging
import posixpath
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import TYPE_CHECKING
from urllib.parse import urlparse as _urlparse

import markdown

from sitegen.services.slug_service import unique_slug

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class RenderError(RuntimeError):
    """Raised when a markdown body cannot be converted to HTML."""


MARKDOWN_EXTENSIONS: tuple[str, ...] = (
    "fenced_code",
    "tables",
    "footnotes",
    "sane_lists",
    "attr_list",
    "def_list",
)

_SAFE_ID_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9:_-]*$")
_VOID_TAGS: frozenset[str] = frozenset(
    {"area", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "wbr"}
)
_DROP_CONTENT_TAGS: frozenset[str] = frozenset({"script", "style"})
_ALLOWED_TAGS: frozenset[str] = frozenset(
    {
        "a",
        "abbr",
        "blockquote",
        "br",
        "code",
        "dd",
        "del",
        "details",
        "div",
        "dl",
        "dt",
        "em",
        "figcaption",
        "figure",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "hr",
        "img",
        "kbd",
        "li",
        "ol",
        "p",
        "pre",
        "samp",
        "section",
        "span",
        "strong",
        "sub",
        "sup",
        "summary",
        "table",
        "tbody",
        "td",
        "th",
        "thead",
        "tr",
        "ul",
        "var",
    }
)
_GLOBAL_ALLOWED_ATTRS: frozenset[str] = frozenset({"class", "id"})
_TAG_ALLOWED_ATTRS: dict[str, frozenset[str]] = {
    "a": frozenset({"href", "title"}),
    "abbr": frozenset({"title"}),
    "img": frozenset({"alt", "src", "title"}),
    "td": frozenset({"colspan", "rowspan", "align"}),
    "th": frozenset({"colspan", "rowspan", "align"}),
}


def _is_safe_url(url_value: str, *, allow_non_http: bool) -> bool:
    """Validate URL values for href/src attributes."""
    value = url_value.strip()
    if not value:
        return False
    if value.startswith(("#", "/", "./", "../")):
        return not value.startswith("//")

    parsed = _urlparse(value)
    if not parsed.scheme:
        return True

    allowed_schemes = {"http", "https"}
    if allow_non_http:
        allowed_schemes.update({"mailto", "tel"})
    return parsed.scheme.lower() in allowed_schemes


class _HtmlSanitizer(HTMLParser):
    """Allowlist-based HTML sanitizer for rendered document bodies."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=False)
        self._parts: list[str] = []
        self._open_tags: list[str | None] = []
        self._drop_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        tag_name = tag.lower()
        if tag_name in _DROP_CONTENT_TAGS:
            self._drop_depth += 1
        if tag_name not in _ALLOWED_TAGS:
            if tag_name not in _VOID_TAGS:
                self._open_tags.append(None)
            return

        rendered_attrs = self._sanitize_attrs(tag_name, attrs)
        attrs_text = "".join(
            f' {name}="{html.escape(value, quote=True)}"' for name, value in rendered_attrs
        )
        self._parts.append(f"<{tag_name}{attrs_text}>")
        if tag_name in _VOID_TAGS:
            return
        self._open_tags.append(tag_name)

    def handle_endtag(self, tag: str) -> None:
        tag_name = tag.lower()
        if tag_name in _DROP_CONTENT_TAGS and self._drop_depth:
            self._drop_depth -= 1
        if tag_name in _VOID_TAGS or not self._open_tags:
            return
        open_tag = self._open_tags.pop()
        if open_tag == tag_name:
            self._parts.append(f"</{tag_name}>")

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        tag_name = tag.lower()
        if tag_name not in _ALLOWED_TAGS:
            return
        rendered_attrs = self._sanitize_attrs(tag_name, attrs)
        attrs_text = "".join(
            f' {name}="{html.escape(value, quote=True)}"' for name, value in rendered_attrs
        )
        self._parts.append(f"<{tag_name}{attrs_text} />")

    def handle_data(self, data: str) -> None:
        if self._drop_depth:
            return
        self._parts.append(html.escape(data, quote=False))

    def handle_entityref(self, name: str) -> None:
        if not self._drop_depth:
            self._parts.append(f"&{name};")

    def handle_charref(self, name: str) -> None:
        if not self._drop_depth:
            self._parts.append(f"&#{name};")

    def get_sanitized_html(self) -> str:
        return "".join(self._parts)

    def _sanitize_attrs(
        self,
        tag_name: str,
        attrs: list[tuple[str, str | None]],
    ) -> list[tuple[str, str]]:
        allowed_attrs = _GLOBAL_ALLOWED_ATTRS | _TAG_ALLOWED_ATTRS.get(tag_name, frozenset())
        sanitized: list[tuple[str, str]] = []

        for raw_name, raw_value in attrs:
            name = raw_name.lower()
            if raw_value is None or name not in allowed_attrs:
                continue

            value = raw_value.strip()
            if name == "href" and not _is_safe_url(value, allow_non_http=True):
                continue
            if name == "src" and not _is_safe_url(value, allow_non_http=False):
                continue
            if name == "id" and not _SAFE_ID_RE.fullmatch(value):
                continue

            sanitized.append((name, value))
        return sanitized


def _sanitize_html(rendered_html: str) -> str:
    """Sanitize rendered HTML output to prevent script execution."""
    sanitizer = _HtmlSanitizer()
    sanitizer.feed(rendered_html)
    sanitizer.close()
    return sanitizer.get_sanitized_html()


@dataclass(frozen=True)
class TocEntry:
    """A heading listed in a page's table of contents."""

    level: int
    id: str
    text: str


@dataclass
class RenderedBody:
    """HTML body of one document plus its table of contents."""

    html: str
    toc: list[TocEntry] = field(default_factory=list)


_TAG_RE = re.compile(r"<[^>]+>")
_ID_ATTR_RE = re.compile(r'\bid="([^"]*)"')


def _add_heading_anchors(rendered: str) -> tuple[str, list[TocEntry]]:
    """Add id attributes to h2-h6 headings and collect them as a table of contents.

    The page title heading (h1) is left untouched.
    """
    used: set[str] = set()
    toc: list[TocEntry] = []

    def _add_id(match: re.Match[str]) -> str:
        tag = match.group(1)
        attrs = match.group(2)
        content = match.group(3)
        text = html.unescape(_TAG_RE.sub("", content)).strip()
        existing = _ID_ATTR_RE.search(attrs)
        if existing:
            used.add(existing.group(1))
            toc.append(TocEntry(level=int(tag[1]), id=existing.group(1), text=text))
            return match.group(0)
        slug = unique_slug(text, used)
        toc.append(TocEntry(level=int(tag[1]), id=slug, text=text))
        return f'<{tag}{attrs} id="{slug}">{content}</{tag}>'

    anchored = re.sub(
        r"<(h[2-6])([^>]*)>(.*?)</\1>",
        _add_id,
        rendered,
        flags=re.DOTALL,
    )
    return anchored, toc


def render_markdown(text: str, *, sanitize: bool = False) -> RenderedBody:
    """Render a markdown body to HTML.

    Raises RenderError if the markdown converter fails.
    """
    converter = markdown.Markdown(extensions=list(MARKDOWN_EXTENSIONS), output_format="html")
    try:
        output = converter.convert(text)
    except Exception as exc:
        # Python-Markdown extensions can raise arbitrary errors on hostile input
        raise RenderError(f"markdown conversion failed: {exc}") from exc
    if sanitize:
        output = _sanitize_html(output)
    anchored, toc = _add_heading_anchors(output)
    return RenderedBody(html=anchored, toc=toc)


_SKIP_PREFIXES = ("/", "#", "data:", "http:", "https:", "mailto:", "tel:", "javascript:")


def rewrite_relative_urls(
    rendered: str,
    file_path: str,
    resolve: Callable[[str], str | None],
) -> str:
    """Rewrite relative src and href attributes to site URLs.

    Args:
        rendered: Rendered HTML string.
        file_path: Document path relative to the content directory,
            e.g. ``guide/setup.md``.
        resolve: Maps a content-relative path (e.g. ``guide/img/a.png`` or
            ``faq.md``) to its site URL, or returns None to leave the
            attribute unchanged.

    Returns:
        HTML with relative URLs replaced by the resolved site URLs.  Query
        strings and fragments are preserved.
    """
    base_dir = posixpath.dirname(file_path)

    def _replace(match: re.Match[str]) -> str:
        attr = match.group(1)
        quote = match.group(2)
        value = match.group(3)

        if not value or value.startswith(_SKIP_PREFIXES):
            return match.group(0)
        if _urlparse(value).scheme:
            return match.group(0)

        target, sep_fragment, fragment = value.partition("#")
        target, sep_query, query = target.partition("?")
        if not target:
            return match.group(0)

        relative = target.removeprefix("./")
        resolved = posixpath.normpath(posixpath.join(base_dir, relative))
        # Don't produce URLs that escape the content root
        if resolved.startswith(".."):
            return match.group(0)

        url = resolve(resolved)
        if url is None:
            return match.group(0)
        suffix = f"{sep_query}{query}{sep_fragment}{fragment}"
        return f"{attr}={quote}{url}{suffix}{quote}"

    return re.sub(r"""(src|href)=(["'])([^"']*)\2""", _replace, rendered)
