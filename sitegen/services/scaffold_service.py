"""Scaffolding for new sites."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sitegen.filesystem.toml_manager import CONFIG_FILE_NAME, SiteConfig, write_site_config

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_DEFAULT_INDEX_MD = (
    "# Welcome\n\n"
    "This site is built with sitegen.\n\n"
    "Edit `docs/index.md` and run `sitegen serve` to preview your changes.\n"
)


def ensure_site_scaffold(directory: Path, name: str = "My Docs") -> list[Path]:
    """Create a config file and an index document without overwriting existing files.

    Returns the paths that were created.
    """
    if directory.exists() and not directory.is_dir():
        msg = f"Site path exists but is not a directory: {directory}"
        raise NotADirectoryError(msg)

    created: list[Path] = []
    if not directory.exists():
        logger.info("Creating site directory at %s", directory)
        directory.mkdir(parents=True)
        created.append(directory)

    config_path = directory / CONFIG_FILE_NAME
    if not config_path.exists():
        config = SiteConfig(name=name, root=directory, nav=[{"Home": "index.md"}])
        write_site_config(config_path, config)
        logger.info("Created site configuration: %s", config_path)
        created.append(config_path)

    docs_dir = directory / "docs"
    if not docs_dir.exists():
        docs_dir.mkdir()
        created.append(docs_dir)

    index_md = docs_dir / "index.md"
    if not index_md.exists():
        index_md.write_text(_DEFAULT_INDEX_MD, encoding="utf-8")
        logger.info("Created index document: %s", index_md)
        created.append(index_md)

    return created
