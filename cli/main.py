"""Command-line entry point: build, check, serve and init."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from sitegen.config import Settings
from sitegen.exceptions import SiteError
from sitegen.filesystem.toml_manager import parse_site_config
from sitegen.services.build_service import SiteGenerator, build_site, check_output_dir
from sitegen.services.scaffold_service import ensure_site_scaffold

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    """Configure process logging."""
    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stderr,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("watchfiles").setLevel(logging.WARNING)
    logging.getLogger("MARKDOWN").setLevel(logging.WARNING)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitegen",
        description="Build and preview static documentation sites from markdown",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Site configuration file (default: sitegen.toml)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    build = subparsers.add_parser("build", help="Build the site into the output directory")
    build.add_argument("--output", "-o", default=None, help="Override the output directory")
    build.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Replace the output directory wholesale (default: on)",
    )

    subparsers.add_parser("check", help="Build in memory and report errors without writing")

    serve = subparsers.add_parser("serve", help="Serve the site locally and rebuild on change")
    serve.add_argument("--host", default=None, help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", "-p", type=int, default=None, help="Port (default: 8000)")
    serve.add_argument("--no-watch", action="store_true", help="Disable rebuild on change")

    init = subparsers.add_parser("init", help="Create a new site skeleton")
    init.add_argument("directory", nargs="?", default=".", help="Target directory")
    init.add_argument("--name", default="My Docs", help="Site name")
    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: dict[str, object] = {}
    if args.config is not None:
        overrides["config_file"] = Path(args.config)
    if getattr(args, "host", None) is not None:
        overrides["host"] = args.host
    if getattr(args, "port", None) is not None:
        overrides["port"] = args.port
    if getattr(args, "no_watch", False):
        overrides["watch"] = False
    return Settings(**overrides)  # type: ignore[arg-type]


def _report(exc: SiteError) -> int:
    logger.debug("Build failed", exc_info=exc)
    print(exc.describe(), file=sys.stderr)
    return 1


def run_build(settings: Settings, output: str | None, clean: bool) -> int:
    config = parse_site_config(settings.config_file)
    result = build_site(config, Path(output).resolve() if output else None, clean=clean)
    print(f"Built {len(result.pages)} pages ({len(result.warnings)} warnings)")
    return 0


def run_check(settings: Settings) -> int:
    config = parse_site_config(settings.config_file)
    check_output_dir(config)
    result = SiteGenerator(config).build()
    for warning in result.warnings:
        print(f"warning: {warning}")
    print(f"OK: {len(result.pages)} pages, {len(result.assets)} assets")
    return 0


def run_init(directory: str, name: str) -> int:
    target = Path(directory).resolve()
    try:
        created = ensure_site_scaffold(target, name=name)
    except NotADirectoryError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    if not created:
        print(f"Nothing to do: {target} already contains a site")
        return 0
    for path in created:
        print(f"  + {path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        return 2

    try:
        settings = _settings_from_args(args)
    except ValidationError as exc:
        print(f"Error: invalid settings: {exc.errors()[0]['msg']}", file=sys.stderr)
        return 2

    try:
        if args.command == "build":
            return run_build(settings, args.output, args.clean)
        if args.command == "check":
            return run_check(settings)
        if args.command == "init":
            return run_init(args.directory, args.name)
        if args.command == "serve":
            from sitegen.server import cli_entry

            try:
                settings.validate_server_binding()
            except ValueError as exc:
                print(f"Error: {exc}", file=sys.stderr)
                return 2
            cli_entry(settings)
            return 0
    except SiteError as exc:
        return _report(exc)
    except KeyboardInterrupt:
        return 130

    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
