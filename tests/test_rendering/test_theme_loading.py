"""Tests for theme loading."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from sitegen.exceptions import ConfigInvalid
from sitegen.rendering.theme import BUILTIN_THEMES_DIR, load_theme, resolve_theme_dir

if TYPE_CHECKING:
    from pathlib import Path


def _base_context() -> dict[str, object]:
    return {
        "site": {"name": "Docs", "description": "", "site_url": ""},
        "theme_url": "/_theme/",
        "live_reload": False,
        "reload_interval_ms": 1000,
        "nav": [],
    }


class TestResolveThemeDir:
    def test_builtin(self, tmp_path: Path) -> None:
        assert resolve_theme_dir("default", tmp_path) == BUILTIN_THEMES_DIR / "default"

    def test_custom_relative_path(self, tmp_path: Path) -> None:
        assert resolve_theme_dir("themes/mine", tmp_path) == (tmp_path / "themes/mine").resolve()


class TestLoadTheme:
    def test_default_theme(self, tmp_path: Path) -> None:
        theme = load_theme("default", tmp_path)
        assert theme.static_files() == ["style.css"]
        page = theme.render_not_found(_base_context())
        assert "Page not found" in page

    def test_unknown_theme(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigInvalid, match="theme not found"):
            load_theme("nonexistent", tmp_path)

    def test_theme_without_page_template(self, tmp_path: Path) -> None:
        (tmp_path / "mine").mkdir()
        with pytest.raises(ConfigInvalid, match="page.html"):
            load_theme("mine", tmp_path)

    def test_template_syntax_error(self, tmp_path: Path) -> None:
        (tmp_path / "mine").mkdir()
        (tmp_path / "mine" / "page.html").write_text("{% if %}", encoding="utf-8")
        with pytest.raises(ConfigInvalid, match="page.html line 1"):
            load_theme("mine", tmp_path)

    def test_fallback_404_provides_page_to_page_template(self, tmp_path: Path) -> None:
        (tmp_path / "mine").mkdir()
        (tmp_path / "mine" / "page.html").write_text(
            "<title>{{ page.title }} - {{ site.name }}</title>{{ page.content | safe }}"
            "{% for crumb in page.breadcrumbs %}{{ crumb }}{% endfor %}",
            encoding="utf-8",
        )
        theme = load_theme("mine", tmp_path)
        rendered = theme.render_not_found(_base_context())
        assert rendered.startswith("<title>Page not found - Docs</title><p>")


class TestTemplateRuntimeErrors:
    def test_undefined_variable_in_page(self, tmp_path: Path) -> None:
        (tmp_path / "mine").mkdir()
        (tmp_path / "mine" / "page.html").write_text("{{ page.nope }}", encoding="utf-8")
        theme = load_theme("mine", tmp_path)
        with pytest.raises(ConfigInvalid, match="theme mine: page.html: .*nope"):
            theme.render_page({**_base_context(), "page": {"title": "T"}})

    def test_missing_include_in_404(self, tmp_path: Path) -> None:
        (tmp_path / "mine").mkdir()
        (tmp_path / "mine" / "page.html").write_text("ok", encoding="utf-8")
        (tmp_path / "mine" / "404.html").write_text(
            '{% include "partials/footer.html" %}', encoding="utf-8"
        )
        theme = load_theme("mine", tmp_path)
        with pytest.raises(ConfigInvalid, match="theme mine: 404.html: partials/footer.html"):
            theme.render_not_found(_base_context())
