"""
Tests for the command line
"""
from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from chatbridge.cli.main import app

runner = CliRunner()


@pytest.fixture
def relay_env(monkeypatch):
    monkeypatch.setenv("DISCORD_TOKEN", "abc.def.secret")
    monkeypatch.setenv("GUILD_ID", "123")


@pytest.fixture
def no_env(monkeypatch):
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    monkeypatch.delenv("GUILD_ID", raising=False)
    # Keep a developer's .env out of the test
    monkeypatch.setattr("chatbridge.cli.main.load_env_file", lambda: False)


class TestConfigCommand:
    """Tests for `chatbridge config`."""

    def test_missing_configuration(self, no_env):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 1
        assert "DISCORD_TOKEN" in result.output

    def test_shows_masked_settings(self, relay_env):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "guild_id" in result.output
        assert "cret" in result.output
        assert "abc.def.secret" not in result.output


class TestRelayCommand:
    """Tests for `chatbridge relay`."""

    def test_missing_configuration(self, no_env):
        result = runner.invoke(app, ["relay"])
        assert result.exit_code == 1

    def test_invalid_log_level(self, relay_env):
        result = runner.invoke(app, ["relay", "--log-level", "LOUD"])
        assert result.exit_code == 1
        assert "Unknown log level" in result.output

    def test_runs_relay_with_overrides(self, relay_env):
        with patch("chatbridge.relay.app.RelayApp.run", new=AsyncMock()) as run, \
                patch("chatbridge.cli.main.setup_logging"), \
                patch("chatbridge.platforms.discord_platform.DiscordPlatform") as platform_cls:
            result = runner.invoke(app, ["relay", "--host", "0.0.0.0", "--port", "9001", "--plain-logs"])

        assert result.exit_code == 0, result.output
        run.assert_awaited_once()
        platform_cls.assert_called_once_with(token="abc.def.secret", guild_id=123, enable_message_content=False)
        assert "ws://0.0.0.0:9001" in result.output


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
