"""Shared test fixtures for sitegen."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from sitegen.filesystem.toml_manager import parse_site_config

if TYPE_CHECKING:
    from pathlib import Path

    from sitegen.filesystem.toml_manager import SiteConfig

DEFAULT_CONFIG = '[site]\nname = "Test Docs"\n'


def make_site(
    root: Path,
    files: dict[str, str | bytes],
    config: str = DEFAULT_CONFIG,
) -> Path:
    """Write a site (config plus docs/ files) under *root* and return the config path."""
    root.mkdir(parents=True, exist_ok=True)
    docs = root / "docs"
    docs.mkdir(exist_ok=True)
    for rel_path, content in files.items():
        target = docs / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
    config_path = root / "sitegen.toml"
    config_path.write_text(config, encoding="utf-8")
    return config_path


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    """Directory holding a small three-page site with nav and an image."""
    make_site(
        tmp_path / "site-src",
        {
            "index.md": "# Home\n\nWelcome to the docs. See the [FAQ](faq.md).\n",
            "faq.md": "---\ntitle: Frequently Asked\n---\n# FAQ\n\nAnswer.\n",
            "guide/setup.md": (
                "# Setup\n\n![diagram](img/flow.png)\n\n## Install\n\nRun it.\n\n"
                "## Configure\n\nBack to [home](../index.md#top).\n"
            ),
            "guide/img/flow.png": b"\x89PNG\r\n\x1a\nfake",
        },
        config=(
            'nav = [\n  { "Home" = "index.md" },\n  { "FAQ" = "faq.md" },\n'
            '  { "Guide" = [ { "Setup" = "guide/setup.md" } ] },\n]\n\n'
            '[site]\nname = "Test Docs"\nsite_url = "https://docs.example.com"\n'
        ),
    )
    return tmp_path / "site-src"


@pytest.fixture
def site_config(site_root: Path) -> SiteConfig:
    return parse_site_config(site_root / "sitegen.toml")
