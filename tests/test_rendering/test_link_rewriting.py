"""Tests for relative URL rewriting in rendered HTML."""

from __future__ import annotations

from sitegen.rendering.renderer import rewrite_relative_urls

_ROUTES = {"faq.md": "/faq/", "index.md": "/", "guide/setup.md": "/guide/setup/"}
_ASSETS = {"guide/img/flow.png", "logo.svg"}


def _resolve(path: str) -> str | None:
    if path in _ROUTES:
        return _ROUTES[path]
    if path in _ASSETS:
        return "/" + path
    return None


class TestRewriteRelativeUrls:
    def test_document_link_rewritten_to_route(self) -> None:
        result = rewrite_relative_urls('<a href="faq.md">FAQ</a>', "index.md", _resolve)
        assert result == '<a href="/faq/">FAQ</a>'

    def test_parent_relative_link(self) -> None:
        result = rewrite_relative_urls('<a href="../faq.md">x</a>', "guide/setup.md", _resolve)
        assert result == '<a href="/faq/">x</a>'

    def test_fragment_preserved(self) -> None:
        result = rewrite_relative_urls(
            '<a href="../index.md#top">x</a>', "guide/setup.md", _resolve
        )
        assert result == '<a href="/#top">x</a>'

    def test_query_and_fragment_preserved(self) -> None:
        result = rewrite_relative_urls('<a href="faq.md?x=1#a">x</a>', "index.md", _resolve)
        assert result == '<a href="/faq/?x=1#a">x</a>'

    def test_img_src_relative(self) -> None:
        result = rewrite_relative_urls('<img src="img/flow.png">', "guide/setup.md", _resolve)
        assert result == '<img src="/guide/img/flow.png">'

    def test_img_src_dot_slash_prefix(self) -> None:
        result = rewrite_relative_urls('<img src="./img/flow.png">', "guide/setup.md", _resolve)
        assert result == '<img src="/guide/img/flow.png">'

    def test_single_quotes(self) -> None:
        result = rewrite_relative_urls("<img src='logo.svg'>", "index.md", _resolve)
        assert result == "<img src='/logo.svg'>"

    def test_unresolved_left_unchanged(self) -> None:
        html = '<a href="other/">x</a>'
        assert rewrite_relative_urls(html, "index.md", _resolve) == html

    def test_skip_absolute_url(self) -> None:
        html = '<a href="https://example.com/faq.md">x</a>'
        assert rewrite_relative_urls(html, "index.md", _resolve) == html

    def test_skip_absolute_path(self) -> None:
        html = '<a href="/faq.md">x</a>'
        assert rewrite_relative_urls(html, "index.md", _resolve) == html

    def test_skip_fragment(self) -> None:
        html = '<a href="#section">x</a>'
        assert rewrite_relative_urls(html, "index.md", _resolve) == html

    def test_skip_mailto(self) -> None:
        html = '<a href="mailto:user@example.com">x</a>'
        assert rewrite_relative_urls(html, "index.md", _resolve) == html

    def test_escaping_content_root_left_unchanged(self) -> None:
        html = '<a href="../../outside.md">x</a>'
        assert rewrite_relative_urls(html, "guide/setup.md", _resolve) == html

    def test_resolver_receives_normalized_path(self) -> None:
        seen: list[str] = []

        def _record(path: str) -> str | None:
            seen.append(path)
            return None

        rewrite_relative_urls('<a href="./a/../b/c.md#x">x</a>', "guide/setup.md", _record)
        assert seen == ["guide/b/c.md"]
