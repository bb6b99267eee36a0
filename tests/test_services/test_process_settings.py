"""Tests for process settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from sitegen.config import Settings


class TestSettings:
    def test_default_settings(self) -> None:
        s = Settings(_env_file=None)
        assert s.config_file == Path("sitegen.toml")
        assert s.debug is False
        assert s.host == "127.0.0.1"
        assert s.port == 8000
        assert s.watch is True

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SITEGEN_PORT", "9001")
        monkeypatch.setenv("SITEGEN_WATCH", "false")
        monkeypatch.setenv("SITEGEN_CONFIG_FILE", "docs/site.toml")
        s = Settings(_env_file=None)
        assert s.port == 9001
        assert s.watch is False
        assert s.config_file == Path("docs/site.toml")

    def test_env_file(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text("SITEGEN_HOST=localhost\nSITEGEN_DEBUG=true\n", encoding="utf-8")
        s = Settings(_env_file=env_file)
        assert s.host == "localhost"
        assert s.debug is True

    def test_port_out_of_range(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, port=70000)

    def test_poll_interval_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, poll_interval_seconds=0)


class TestServerBinding:
    @pytest.mark.parametrize("host", ["127.0.0.1", "localhost", "::1"])
    def test_loopback_allowed(self, host: str) -> None:
        Settings(_env_file=None, host=host).validate_server_binding()

    def test_public_host_rejected(self) -> None:
        with pytest.raises(ValueError, match="not a loopback address"):
            Settings(_env_file=None, host="0.0.0.0").validate_server_binding()

    def test_public_host_allowed_in_debug(self) -> None:
        Settings(_env_file=None, host="0.0.0.0", debug=True).validate_server_binding()
