"""TOML configuration reader/writer for sitegen.toml."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import ValidationError

from sitegen.exceptions import ConfigInvalid
from sitegen.schemas.config import BuildSection, ConfigFile

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "sitegen.toml"


@dataclass
class SiteConfig:
    """Parsed site configuration from sitegen.toml."""

    name: str
    root: Path
    description: str = ""
    site_url: str = ""
    theme: str = "default"
    docs_dir: str = "docs"
    output_dir: str = "site"
    build: BuildSection = field(default_factory=BuildSection)
    nav: list[Any] | None = None

    @property
    def docs_path(self) -> Path:
        """Absolute path of the content directory."""
        return (self.root / self.docs_dir).resolve()

    @property
    def output_path(self) -> Path:
        """Absolute path of the output directory."""
        return (self.root / self.output_dir).resolve()


def _format_validation_error(exc: ValidationError) -> str:
    parts: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "config"
        parts.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return "; ".join(parts)


def parse_site_config(config_path: Path) -> SiteConfig:
    """Parse and validate sitegen.toml.

    Raises ConfigInvalid if the file is missing, is not valid TOML, or does
    not match the configuration schema.
    """
    if not config_path.is_file():
        raise ConfigInvalid(f"configuration file not found: {config_path}")

    try:
        data = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigInvalid(f"{config_path.name} is not valid TOML: {exc}") from None
    except UnicodeDecodeError:
        raise ConfigInvalid(f"{config_path.name} is not valid UTF-8") from None

    try:
        parsed = ConfigFile.model_validate(data)
    except ValidationError as exc:
        raise ConfigInvalid(_format_validation_error(exc)) from None

    site = parsed.site
    for key, value in (("docs_dir", site.docs_dir), ("output_dir", site.output_dir)):
        if Path(value).is_absolute():
            raise ConfigInvalid(f"site.{key} must be relative to {config_path.name}: {value}")

    config = SiteConfig(
        name=site.name,
        root=config_path.parent.resolve(),
        description=site.description,
        site_url=site.site_url,
        theme=site.theme,
        docs_dir=site.docs_dir,
        output_dir=site.output_dir,
        build=parsed.build,
        nav=parsed.nav,
    )
    if config.output_path == config.docs_path:
        raise ConfigInvalid("site.output_dir must differ from site.docs_dir")
    logger.debug("Loaded site configuration %s from %s", config.name, config_path)
    return config


def write_site_config(config_path: Path, config: SiteConfig) -> None:
    """Write site configuration back to sitegen.toml."""
    site_data: dict[str, Any] = {
        "name": config.name,
        "description": config.description,
        "theme": config.theme,
        "docs_dir": config.docs_dir,
        "output_dir": config.output_dir,
    }
    if config.site_url:
        site_data["site_url"] = config.site_url

    data: dict[str, Any] = {
        "site": site_data,
        "build": config.build.model_dump(mode="json"),
    }
    if config.nav is not None:
        data["nav"] = config.nav

    config_path.write_bytes(tomli_w.dumps(data).encode("utf-8"))
