"""Site generation exception types.

Convention:
- ``ConfigInvalid`` is raised while loading ``sitegen.toml``, before any
  document is read or rendered.
- ``MissingDocument`` is raised when navigation (or, with strict links, a
  document link) references a path with no backing file.
- ``MalformedMarkdown`` is raised when a document cannot be decoded, its
  front matter cannot be parsed, or the renderer fails on it.  Whether it
  aborts the build is decided by the ``on_malformed`` build option.

All three derive from ``SiteError``; the CLI boundary catches that base
class and reports ``<kind>: <message>``.
"""

from __future__ import annotations


class SiteError(Exception):
    """Base class for errors that stop a site build."""

    kind = "SiteError"

    def __str__(self) -> str:
        return self.message

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""

    def describe(self) -> str:
        """Return the ``Kind: message`` line printed by the CLI."""
        return f"{self.kind}: {self.message}"


class MissingDocument(SiteError):
    """Raised when a referenced document path has no backing file."""

    kind = "MissingDocument"

    def __init__(self, path: str) -> None:
        super().__init__(path)
        self.path = path


class MalformedMarkdown(SiteError):
    """Raised when a document cannot be parsed or rendered."""

    kind = "MalformedMarkdown"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class ConfigInvalid(SiteError):
    """Raised when the site configuration fails validation."""

    kind = "ConfigInvalid"
