"""Jinja2 theme loading and page templating."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jinja2

from sitegen.exceptions import ConfigInvalid

logger = logging.getLogger(__name__)

BUILTIN_THEMES_DIR = Path(__file__).resolve().parent.parent / "themes"
PAGE_TEMPLATE = "page.html"
NOT_FOUND_TEMPLATE = "404.html"
STATIC_DIR = "static"


@dataclass
class Theme:
    """A loaded theme: a template environment plus its static files."""

    name: str
    directory: Path
    env: jinja2.Environment

    @property
    def static_dir(self) -> Path:
        return self.directory / STATIC_DIR

    def static_files(self) -> list[str]:
        """Relative paths of the theme's static files, sorted."""
        if not self.static_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.static_dir).as_posix()
            for p in self.static_dir.rglob("*")
            if p.is_file() and not p.name.startswith(".")
        )

    def _render(self, template_name: str, context: dict[str, Any]) -> str:
        """Render a template, reporting template errors as ConfigInvalid."""
        try:
            return self.env.get_template(template_name).render(**context)
        except jinja2.TemplateError as exc:
            raise ConfigInvalid(f"theme {self.name}: {template_name}: {exc}") from None

    def render_page(self, context: dict[str, Any]) -> str:
        return self._render(PAGE_TEMPLATE, context)

    def render_not_found(self, context: dict[str, Any]) -> str:
        """Render the 404 page, falling back to the page template.

        The page template receives a ``page`` describing the error page
        unless *context* already provides one.
        """
        if (self.directory / NOT_FOUND_TEMPLATE).is_file():
            return self._render(NOT_FOUND_TEMPLATE, context)
        return self._render(PAGE_TEMPLATE, {"page": not_found_page_context(), **context})


def not_found_page_context() -> dict[str, Any]:
    """The ``page`` variable used when a theme renders its 404 page with page.html."""
    return {
        "title": "Page not found",
        "description": "",
        "path": "",
        "route": "",
        "url": "",
        "is_home": False,
        "canonical_url": "",
        "content": "<p>The page you are looking for does not exist.</p>",
        "has_title_heading": False,
        "toc": [],
        "breadcrumbs": [],
        "prev": None,
        "next": None,
        "meta": {},
    }


def resolve_theme_dir(theme: str, root: Path) -> Path:
    """Resolve a theme setting to a directory.

    Bare names select a built-in theme; anything else is a path relative to
    the configuration file's directory.
    """
    builtin = BUILTIN_THEMES_DIR / theme
    if "/" not in theme and "\\" not in theme and builtin.is_dir():
        return builtin
    return (root / theme).resolve()


def load_theme(theme: str, root: Path) -> Theme:
    """Load a theme by name or path.

    Raises ConfigInvalid if the theme does not exist, lacks a page template,
    or contains a template with a syntax error.  Errors raised while a
    template renders are reported as ConfigInvalid by the Theme methods.
    """
    directory = resolve_theme_dir(theme, root)
    if not directory.is_dir():
        raise ConfigInvalid(f"theme not found: {theme}")
    if not (directory / PAGE_TEMPLATE).is_file():
        raise ConfigInvalid(f"theme {theme} has no {PAGE_TEMPLATE} template")

    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(directory)),
        autoescape=jinja2.select_autoescape(["html", "xml"]),
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
    )
    for name in (PAGE_TEMPLATE, NOT_FOUND_TEMPLATE):
        if not (directory / name).is_file():
            continue
        try:
            env.get_template(name)
        except jinja2.TemplateSyntaxError as exc:
            raise ConfigInvalid(f"theme {theme}: {name} line {exc.lineno}: {exc.message}") from None

    logger.debug("Loaded theme %s from %s", theme, directory)
    return Theme(name=theme, directory=directory, env=env)
