"""Tests for hook-listener CLI."""

from __future__ import annotations

import json
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from hooklistener.cli import main
from hooklistener.queue.producer import QueueProducer, StartupError
from hooklistener.webhooks.verifier import compute_signature


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("HOOKLISTENER_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


class TestCLIBasics:
    """Basic CLI tests."""

    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "serve" in result.output
        assert "sign" in result.output
        assert "status" in result.output

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert "hook-listener" in result.output


class TestSignCommand:
    """Tests for sign command."""

    def test_sign_stdin(self):
        runner = CliRunner()
        result = runner.invoke(main, ["sign", "--secret", "topsecret"], input='{"a":1}')

        assert result.exit_code == 0
        assert result.output.strip() == compute_signature(b'{"a":1}', b"topsecret")

    def test_sign_file(self, tmp_path):
        payload = tmp_path / "payload.json"
        payload.write_bytes(b'{"zen":"Keep it logically awesome."}')
        runner = CliRunner()
        result = runner.invoke(main, ["sign", "--secret", "s3", str(payload)])

        assert result.exit_code == 0
        assert result.output.startswith("sha1=")

    def test_sign_requires_secret(self):
        runner = CliRunner()
        result = runner.invoke(main, ["sign"], input="x")
        assert result.exit_code != 0


class TestServeCommand:
    """Tests for serve command startup checks."""

    def test_missing_settings(self):
        runner = CliRunner()
        result = runner.invoke(main, ["serve"])

        assert result.exit_code == 1
        assert "Missing required settings" in result.output

    def test_invalid_config_file(self, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("bind: [unclosed\n")
        runner = CliRunner()
        result = runner.invoke(main, ["serve", "--config", str(bad)])

        assert result.exit_code == 1
        assert "Failed to load config" in result.output

    def test_startup_failure_exits_nonzero(self):
        """Test an unreachable log stops the process before serving."""
        runner = CliRunner()
        with patch.object(
            QueueProducer, "open", AsyncMock(side_effect=StartupError("Cannot connect to log database"))
        ):
            result = runner.invoke(
                main,
                ["serve", "--secret", "topsecret", "--pgsql", "postgresql://app@db/hooks", "--bind", "127.0.0.1:0"],
            )

        assert result.exit_code == 1
        assert "Startup failed" in result.output

    def test_settings_summary_from_config_section(self, tmp_path):
        """Test the startup summary lists file settings with secrets masked."""
        config_file = tmp_path / "shared.toml"
        config_file.write_text(
            '[hooklistener]\n'
            'secret = "topsecret"\n'
            'database_url = "postgresql://app:hunter2@db/hooks"\n'
            'queue_table = "events"\n'
        )
        runner = CliRunner()
        with patch.object(
            QueueProducer, "open", AsyncMock(side_effect=StartupError("Cannot connect to log database"))
        ):
            result = runner.invoke(main, ["serve", "--config", str(config_file), "--bind", "127.0.0.1:0"])

        assert result.exit_code == 1
        assert "Listener settings" in result.output
        assert "events" in result.output
        assert "***" in result.output
        assert "topsecret" not in result.output
        assert "hunter2" not in result.output


class TestStatusCommand:
    """Tests for status command."""

    def _mock_client(self, mock_client_class, payload):
        mock_response = MagicMock()
        mock_response.json.return_value = payload

        mock_client = MagicMock()
        mock_client.get.return_value = mock_response
        mock_client.__enter__ = MagicMock(return_value=mock_client)
        mock_client.__exit__ = MagicMock(return_value=False)
        mock_client_class.return_value = mock_client
        return mock_client

    def test_status_json(self):
        runner = CliRunner()

        import httpx
        with patch.object(httpx, "Client") as mock_client_class:
            client = self._mock_client(
                mock_client_class,
                {"status": "healthy", "writes_in_flight": 0, "write_capacity": 1},
            )
            result = runner.invoke(main, ["status", "--json", "--url", "http://hooks:8080/"])

        assert result.exit_code == 0
        assert json.loads(result.output)["status"] == "healthy"
        client.get.assert_called_once_with("http://hooks:8080/health")

    def test_status_table(self):
        runner = CliRunner()

        import httpx
        with patch.object(httpx, "Client") as mock_client_class:
            self._mock_client(mock_client_class, {"status": "healthy"})
            result = runner.invoke(main, ["status"])

        assert result.exit_code == 0
        assert "healthy" in result.output

    def test_status_unreachable(self):
        runner = CliRunner()

        import httpx
        with patch.object(httpx, "Client") as mock_client_class:
            mock_client_class.side_effect = httpx.ConnectError("Connection refused")
            result = runner.invoke(main, ["status", "--json"])

        assert result.exit_code == 1
        assert json.loads(result.output)["status"] == "unreachable"
