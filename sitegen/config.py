"""Process settings loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """sitegen process settings.

    These control how the tool runs (where the config file lives, where the
    dev server listens).  What gets built is described by ``sitegen.toml``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SITEGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    config_file: Path = Path("sitegen.toml")
    debug: bool = False

    # Dev server
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    watch: bool = True
    poll_interval_seconds: float = Field(default=1.0, gt=0)

    def validate_server_binding(self) -> None:
        """Refuse to expose the dev server beyond localhost unless debugging."""
        if self.debug:
            return
        if self.host not in {"127.0.0.1", "localhost", "::1"}:
            raise ValueError(
                f"Dev server host {self.host!r} is not a loopback address; "
                "set SITEGEN_DEBUG=1 to bind it anyway"
            )
