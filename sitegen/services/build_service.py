"""Site generation: documents + navigation + theme -> static site output."""

from __future__ import annotations

import dataclasses
import html
import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from sitegen.exceptions import ConfigInvalid, MalformedMarkdown, MissingDocument
from sitegen.filesystem.content_manager import ContentManager, hash_content, is_markdown_path
from sitegen.rendering.renderer import (
    RenderedBody,
    RenderError,
    render_markdown,
    rewrite_relative_urls,
)
from sitegen.rendering.theme import Theme, load_theme
from sitegen.schemas.config import MalformedPolicy
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
from sitegen.services.slug_service import output_file_for_route, route_for_document

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sitegen.filesystem.frontmatter import DocumentData
    from sitegen.filesystem.toml_manager import SiteConfig
    from sitegen.services.nav_service import NavItem

logger = logging.getLogger(__name__)

THEME_URL_PREFIX = "_theme/"
NOT_FOUND_FILE = "404.html"
SITEMAP_FILE = "sitemap.xml"

_H1_RE = re.compile(r"<h1[\s>]")

RenderCache = dict[str, RenderedBody]


@dataclass
class SiteOutput:
    """Generated site: route -> page HTML, plus generated files and copied assets."""

    pages: dict[str, bytes] = field(default_factory=dict)
    files: dict[str, bytes] = field(default_factory=dict)
    assets: dict[str, Path] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def iter_outputs(self) -> Iterator[tuple[str, bytes | Path]]:
        """Yield (relative output path, content or source file), sorted by path."""
        entries: dict[str, bytes | Path] = {}
        for route, body in self.pages.items():
            entries[output_file_for_route(route)] = body
        entries.update(self.files)
        entries.update(self.assets)
        for rel_path in sorted(entries):
            yield rel_path, entries[rel_path]

    def not_found_page(self) -> bytes:
        return self.files.get(NOT_FOUND_FILE, b"Not found")


def url_for_route(route: str) -> str:
    """Percent-encode a route for use in an href."""
    return quote(route)


def _pretty_label(item: NavPage, documents: dict[str, DocumentData]) -> str:
    return item.label if item.label is not None else documents[item.path].title


class SiteGenerator:
    """Deterministic transformation of a site configuration into a SiteOutput.

    Args:
        config: Parsed site configuration.
        live_reload: Inject the dev server's reload script into pages.
        reload_interval_ms: Poll interval of the reload script.
        render_cache: Markdown render cache keyed by content hash; shared
            across rebuilds by the dev server.
    """

    def __init__(
        self,
        config: SiteConfig,
        *,
        live_reload: bool = False,
        reload_interval_ms: int = 1000,
        render_cache: RenderCache | None = None,
    ) -> None:
        self.config = config
        self.live_reload = live_reload
        self.reload_interval_ms = reload_interval_ms
        self.render_cache: RenderCache = render_cache if render_cache is not None else {}
        self.content_manager = ContentManager(
            content_dir=config.docs_path, exclude=[config.output_path]
        )
        self._warnings: list[str] = []

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self._warnings.append(message)

    def _handle_malformed(self, exc: MalformedMarkdown) -> None:
        if self.config.build.on_malformed is MalformedPolicy.ABORT:
            raise exc
        self._warn(f"Skipping malformed document {exc.path}: {exc.reason}")

    # -- stages ---------------------------------------------------------

    def _load_nav(self) -> NavTree | None:
        if self.config.nav is None:
            return None
        tree = parse_nav(self.config.nav, self.config.build.duplicate_labels)
        check_nav_documents(tree, self.content_manager)
        return tree

    def _read_documents(self, nav: NavTree | None) -> dict[str, DocumentData]:
        paths = set(self.content_manager.discover_documents())
        if nav is not None:
            paths.update(nav.page_paths())

        documents: dict[str, DocumentData] = {}
        for rel_path in sorted(paths):
            try:
                document = self.content_manager.read_document(rel_path)
            except MalformedMarkdown as exc:
                self._handle_malformed(exc)
                continue
            if document.is_draft and not self.config.build.include_drafts:
                logger.info("Skipping draft %s", rel_path)
                continue
            documents[rel_path] = document
        return documents

    def _render_bodies(self, documents: dict[str, DocumentData]) -> dict[str, RenderedBody]:
        sanitize = self.config.build.sanitize_html
        bodies: dict[str, RenderedBody] = {}
        for rel_path, document in documents.items():
            key = hash_content(f"{int(sanitize)}\0{document.body}")
            cached = self.render_cache.get(key)
            if cached is None:
                try:
                    cached = render_markdown(document.body, sanitize=sanitize)
                except RenderError as exc:
                    self._handle_malformed(MalformedMarkdown(rel_path, str(exc)))
                    continue
                self.render_cache[key] = cached
            bodies[rel_path] = cached
        return bodies

    def _resolve_tree(self, nav: NavTree | None, documents: dict[str, DocumentData]) -> NavTree:
        if nav is None:
            return derive_nav(documents)
        listed = set(nav.page_paths())
        unlisted = {p: d for p, d in documents.items() if p not in listed}
        if unlisted and self.config.build.include_unlisted:
            logger.info("Adding %d unlisted documents to navigation", len(unlisted))
            nav = append_unlisted(nav, unlisted)
        else:
            for rel_path in unlisted:
                self._warn(f"Document {rel_path} is not listed in nav and will not be built")
        return prune_nav(nav, documents)

    @staticmethod
    def _assign_routes(tree: NavTree) -> dict[str, str]:
        routes: dict[str, str] = {}
        owners: dict[str, str] = {}
        for page, _ in tree.iter_pages():
            route = route_for_document(page.path)
            if route in owners:
                raise ConfigInvalid(
                    f"{page.path} and {owners[route]} both map to route {route}"
                )
            owners[route] = page.path
            routes[page.path] = route
        return routes

    def _link_resolver(
        self,
        source: str,
        routes: dict[str, str],
        assets: set[str],
    ) -> Callable[[str], str | None]:
        strict = self.config.build.strict_links

        def _resolve(target: str) -> str | None:
            if is_markdown_path(target):
                if target in routes:
                    return url_for_route(routes[target])
                if self.content_manager.exists(target):
                    self._warn(f"{source} links to {target}, which is not part of the site")
                    return None
                if strict:
                    logger.error("%s links to missing document %s", source, target)
                    raise MissingDocument(target)
                self._warn(f"{source} links to missing document {target}")
                return None
            if target in assets:
                return url_for_route("/" + target)
            return None

        return _resolve

    def _nav_context(
        self,
        items: tuple[NavItem, ...],
        current: str,
        routes: dict[str, str],
        documents: dict[str, DocumentData],
    ) -> list[dict[str, Any]]:
        entries: list[dict[str, Any]] = []
        for item in items:
            if isinstance(item, NavPage):
                entries.append(
                    {
                        "kind": "page",
                        "label": _pretty_label(item, documents),
                        "url": url_for_route(routes[item.path]),
                        "active": item.path == current,
                        "children": [],
                    }
                )
            elif isinstance(item, NavLink):
                entries.append(
                    {
                        "kind": "link",
                        "label": item.label,
                        "url": item.url,
                        "active": False,
                        "children": [],
                    }
                )
            elif isinstance(item, NavSection):
                children = self._nav_context(item.children, current, routes, documents)
                entries.append(
                    {
                        "kind": "section",
                        "label": item.label,
                        "url": "",
                        "active": any(child["active"] for child in children),
                        "children": children,
                    }
                )
        return entries

    def _base_context(self) -> dict[str, Any]:
        return {
            "site": {
                "name": self.config.name,
                "description": self.config.description,
                "site_url": self.config.site_url,
            },
            "theme_url": "/" + THEME_URL_PREFIX,
            "live_reload": self.live_reload,
            "reload_interval_ms": self.reload_interval_ms,
        }

    def _render_pages(
        self,
        theme: Theme,
        tree: NavTree,
        documents: dict[str, DocumentData],
        bodies: dict[str, RenderedBody],
        routes: dict[str, str],
        assets: set[str],
    ) -> dict[str, bytes]:
        ordered = list(tree.iter_pages())
        pages: dict[str, bytes] = {}
        for index, (nav_page, parents) in enumerate(ordered):
            rel_path = nav_page.path
            document = documents[rel_path]
            body = bodies[rel_path]
            content = rewrite_relative_urls(
                body.html, rel_path, self._link_resolver(rel_path, routes, assets)
            )

            def _neighbour(position: int) -> dict[str, str] | None:
                if not 0 <= position < len(ordered):
                    return None
                other = ordered[position][0]
                return {
                    "title": _pretty_label(other, documents),
                    "url": url_for_route(routes[other.path]),
                }

            route = routes[rel_path]
            context = self._base_context()
            context["nav"] = self._nav_context(tree.items, rel_path, routes, documents)
            context["page"] = {
                "title": document.title,
                "description": document.description,
                "path": rel_path,
                "route": route,
                "url": url_for_route(route),
                "is_home": route == "/",
                "canonical_url": f"{self.config.site_url}{url_for_route(route)}"
                if self.config.site_url
                else "",
                "content": content,
                "has_title_heading": bool(_H1_RE.search(content)),
                "toc": body.toc,
                "breadcrumbs": list(parents),
                "prev": _neighbour(index - 1),
                "next": _neighbour(index + 1),
                "meta": document.metadata,
            }
            pages[route] = theme.render_page(context).encode("utf-8")
        return pages

    def _render_sitemap(self, routes: list[str]) -> bytes:
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for route in sorted(routes):
            loc = html.escape(f"{self.config.site_url}{url_for_route(route)}")
            lines.append(f"  <url><loc>{loc}</loc></url>")
        lines.append("</urlset>")
        return ("\n".join(lines) + "\n").encode("utf-8")

    # -- entry point ----------------------------------------------------

    def build(self) -> SiteOutput:
        """Build the complete site in memory.

        Raises ConfigInvalid before anything is read if the navigation or
        theme configuration is invalid, MissingDocument if navigation (or,
        with strict links, a document link) references a missing file, and
        MalformedMarkdown under the ``abort`` policy.
        """
        self._warnings = []
        theme = load_theme(self.config.theme, self.config.root)
        nav = self._load_nav()

        documents = self._read_documents(nav)
        bodies = self._render_bodies(documents)
        documents = {p: d for p, d in documents.items() if p in bodies}

        tree = self._resolve_tree(nav, documents)
        routes = self._assign_routes(tree)
        assets = set(self.content_manager.discover_assets())

        output = SiteOutput()
        output.pages = self._render_pages(theme, tree, documents, bodies, routes, assets)

        claimed = {output_file_for_route(route): f"page {route}" for route in output.pages}

        def _claim(out_path: str, owner: str) -> None:
            if out_path in claimed:
                raise ConfigInvalid(f"{owner} collides with {claimed[out_path]} at {out_path}")
            claimed[out_path] = owner

        for rel_path in sorted(assets):
            _claim(rel_path, f"asset {rel_path}")
            output.assets[rel_path] = self.content_manager.asset_path(rel_path)
        for rel_path in theme.static_files():
            out_path = f"{THEME_URL_PREFIX}{rel_path}"
            _claim(out_path, f"theme file {rel_path}")
            output.assets[out_path] = theme.static_dir / rel_path

        not_found_context = self._base_context()
        not_found_context["nav"] = self._nav_context(tree.items, "", routes, documents)
        _claim(NOT_FOUND_FILE, "404 page")
        output.files[NOT_FOUND_FILE] = theme.render_not_found(not_found_context).encode("utf-8")
        if self.config.site_url:
            _claim(SITEMAP_FILE, "sitemap")
            output.files[SITEMAP_FILE] = self._render_sitemap(list(output.pages))

        output.warnings = list(self._warnings)
        logger.info(
            "Built %d pages and %d assets (%d warnings)",
            len(output.pages),
            len(output.assets),
            len(output.warnings),
        )
        return output


def write_site(output: SiteOutput, output_dir: Path, *, clean: bool = True) -> int:
    """Write a SiteOutput to *output_dir*, replacing it on completion.

    With ``clean`` the output is first written to a sibling staging directory
    which then replaces *output_dir*, so a failed write leaves the previous
    site intact.  Returns the number of files written.
    """
    output_dir = output_dir.resolve()
    staging = output_dir.with_name(f".{output_dir.name}.staging") if clean else output_dir
    if clean and staging.exists():
        shutil.rmtree(staging)
    staging.mkdir(parents=True, exist_ok=True)

    count = 0
    for rel_path, content in output.iter_outputs():
        target = staging / PurePosixPath(rel_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, Path):
            shutil.copyfile(content, target)
        else:
            target.write_bytes(content)
        count += 1

    if clean:
        if output_dir.exists():
            shutil.rmtree(output_dir)
        staging.rename(output_dir)
    logger.info("Wrote %d files to %s", count, output_dir)
    return count


def check_output_dir(config: SiteConfig) -> None:
    """Refuse output locations whose cleaning would delete the sources."""
    output_path = config.output_path
    if config.docs_path.is_relative_to(output_path) or config.root.is_relative_to(output_path):
        raise ConfigInvalid(
            f"output directory {output_path} contains the site sources and cannot be replaced"
        )


def build_site(
    config: SiteConfig, output_dir: Path | None = None, *, clean: bool = True
) -> SiteOutput:
    """Build the site described by *config* and write it to disk."""
    if output_dir is not None:
        config = dataclasses.replace(config, output_dir=str(output_dir))
    check_output_dir(config)
    output = SiteGenerator(config).build()
    write_site(output, config.output_path, clean=clean)
    return output
