"""Schemas for the ``sitegen.toml`` configuration file."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MalformedPolicy(StrEnum):
    """What to do with a document that cannot be parsed."""

    WARN = "warn"
    ABORT = "abort"


class DuplicateLabelPolicy(StrEnum):
    """What to do with sibling navigation entries sharing a label."""

    ALLOW = "allow"
    WARN = "warn"
    ERROR = "error"


class SiteSection(BaseModel):
    """The ``[site]`` table."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    site_url: str = ""
    theme: str = Field(default="default", min_length=1)
    docs_dir: str = Field(default="docs", min_length=1)
    output_dir: str = Field(default="site", min_length=1)

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        _ = cls
        if not v.strip():
            raise ValueError("site name must not be blank")
        return v.strip()

    @field_validator("site_url")
    @classmethod
    def site_url_must_be_absolute(cls, v: str) -> str:
        _ = cls
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("site_url must start with http:// or https://")
        return v.rstrip("/")


class BuildSection(BaseModel):
    """The ``[build]`` table."""

    model_config = ConfigDict(extra="forbid")

    on_malformed: MalformedPolicy = MalformedPolicy.ABORT
    duplicate_labels: DuplicateLabelPolicy = DuplicateLabelPolicy.WARN
    strict_links: bool = True
    include_unlisted: bool = False
    include_drafts: bool = False
    sanitize_html: bool = False


class ConfigFile(BaseModel):
    """Top-level layout of ``sitegen.toml``.

    ``nav`` is kept as raw TOML data here; its recursive structure is
    validated while the navigation tree is built.
    """

    model_config = ConfigDict(extra="forbid")

    site: SiteSection
    build: BuildSection = Field(default_factory=BuildSection)
    nav: list[Any] | None = None
