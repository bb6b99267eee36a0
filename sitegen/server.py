"""Development server: serves the in-memory site and rebuilds on change."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from contextlib import aclosing, asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import watchfiles
from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse, Response

from sitegen.exceptions import SiteError
from sitegen.filesystem.toml_manager import parse_site_config
from sitegen.rendering.theme import resolve_theme_dir
from sitegen.services.build_service import SiteGenerator, SiteOutput
from sitegen.services.slug_service import output_file_for_route

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

    from sitegen.config import Settings
    from sitegen.filesystem.toml_manager import SiteConfig
    from sitegen.services.build_service import RenderCache

logger = logging.getLogger(__name__)

VERSION_ENDPOINT = "/_sitegen/version"


class DevServer:
    """Owns the single in-memory SiteOutput served during development.

    Rebuilds run synchronously on the event loop, one at a time.  A new
    output replaces the previous one only when the build completes; a failed
    rebuild keeps the previous output and records the error.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.config: SiteConfig | None = None
        self.output: SiteOutput | None = None
        self.version = 0
        self.last_error: str | None = None
        self._files: dict[str, bytes | Path] = {}
        self._render_cache: RenderCache = {}

    def rebuild(self, *, raise_errors: bool = False) -> bool:
        """Rebuild the site from disk. Returns True if the output was replaced."""
        try:
            config = parse_site_config(self.settings.config_file)
            generator = SiteGenerator(
                config,
                live_reload=True,
                reload_interval_ms=int(self.settings.poll_interval_seconds * 1000),
                render_cache=self._render_cache,
            )
            output = generator.build()
        except SiteError as exc:
            self.last_error = exc.describe()
            logger.error("Rebuild failed, keeping previous site: %s", self.last_error)
            if raise_errors:
                raise
            return False

        self.config = config
        self.output = output
        self._files = dict(output.iter_outputs())
        self.version += 1
        self.last_error = None
        logger.info("Site rebuilt (version %d)", self.version)
        return True

    def watch_paths(self) -> list[Path]:
        """Paths whose changes trigger a rebuild."""
        config_file = self.settings.config_file.resolve()
        paths = [config_file]
        if self.config is not None:
            paths.append(self.config.docs_path)
            paths.append(resolve_theme_dir(self.config.theme, self.config.root))
        return [p for p in dict.fromkeys(paths) if p.exists()]

    def _is_relevant_change(self, change: watchfiles.Change, path: str) -> bool:
        if not watchfiles.DefaultFilter()(change, path):
            return False
        if self.config is None:
            return True
        return not Path(path).resolve().is_relative_to(self.config.output_path)

    async def watch(self, stop_event: asyncio.Event) -> None:
        """Rebuild on every batch of file changes until *stop_event* is set.

        The watcher restarts whenever a rebuild moves the docs or theme
        directory, so the new locations are watched.
        """
        while not stop_event.is_set():
            paths = self.watch_paths()
            logger.info("Watching %s", ", ".join(str(p) for p in paths))
            watcher = watchfiles.awatch(
                *paths,
                watch_filter=self._is_relevant_change,
                stop_event=stop_event,
            )
            async with aclosing(watcher):
                async for changes in watcher:
                    logger.info("Detected %d changed file(s), rebuilding", len(changes))
                    self.rebuild()
                    if self.watch_paths() != paths:
                        logger.info("Watched paths changed, restarting watcher")
                        break

    def lookup(self, url_path: str) -> tuple[str, bytes | Path | None]:
        """Resolve a request path against the current output.

        Returns ``("file", content)``, ``("redirect", None)`` when the path
        names a page without its trailing slash, or ``("missing", None)``.
        """
        stripped = url_path.lstrip("/")
        if not stripped or stripped.endswith("/"):
            out_path = output_file_for_route("/" + stripped)
        else:
            out_path = stripped
        if out_path in self._files:
            return "file", self._files[out_path]
        if f"{stripped}/index.html" in self._files:
            return "redirect", None
        return "missing", None


def _media_type(path: str) -> str:
    if path.endswith("/") or not path:
        return "text/html; charset=utf-8"
    guessed, _ = mimetypes.guess_type(path)
    if guessed is None:
        return "application/octet-stream"
    if guessed.startswith("text/") or guessed in {"application/javascript", "image/svg+xml"}:
        return f"{guessed}; charset=utf-8"
    return guessed


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: initial build and file watcher."""
    dev_server: DevServer = app.state.dev_server
    if dev_server.output is None:
        dev_server.rebuild()

    stop_event = asyncio.Event()
    watch_task: asyncio.Task[None] | None = None
    if dev_server.settings.watch:
        watch_task = asyncio.create_task(dev_server.watch(stop_event))

    yield

    stop_event.set()
    if watch_task is not None:
        try:
            await watch_task
        except Exception as exc:
            logger.error("File watcher stopped with error: %s", exc, exc_info=True)
    logger.info("Dev server stopped")


def create_app(dev_server: DevServer) -> FastAPI:
    """Create the FastAPI application serving *dev_server*'s output."""
    app = FastAPI(
        title="sitegen dev server",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.dev_server = dev_server

    @app.middleware("http")
    async def no_cache_headers(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        response = await call_next(request)
        response.headers.setdefault("Cache-Control", "no-store")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        return response

    @app.get(VERSION_ENDPOINT)
    async def site_version() -> JSONResponse:
        return JSONResponse(
            {"version": dev_server.version, "error": dev_server.last_error},
        )

    @app.api_route("/{file_path:path}", methods=["GET", "HEAD"])
    async def serve_site(file_path: str) -> Response:
        if dev_server.output is None:
            detail = dev_server.last_error or "Site has not been built yet"
            return Response(content=detail, status_code=503, media_type="text/plain")

        kind, content = dev_server.lookup(file_path)
        if kind == "redirect":
            return RedirectResponse(url=f"/{file_path.strip('/')}/", status_code=302)
        if kind == "missing" or content is None:
            return Response(
                content=dev_server.output.not_found_page(),
                status_code=404,
                media_type="text/html; charset=utf-8",
            )
        media_type = _media_type(file_path)
        if isinstance(content, Path):
            return FileResponse(content, media_type=media_type)
        return Response(content=content, media_type=media_type)

    return app


def cli_entry(settings: Settings) -> None:
    """Build the site and serve it until interrupted."""
    import uvicorn

    dev_server = DevServer(settings)
    dev_server.rebuild(raise_errors=True)
    app = create_app(dev_server)
    logger.info("Serving %s on http://%s:%d/", settings.config_file, settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
