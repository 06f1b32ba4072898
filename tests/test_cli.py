"""Tests for the confwatch CLI."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from confwatch.cli.__main__ import app
from confwatch.core.errors import TransportError

runner = CliRunner()


def fake_backend(values=None) -> MagicMock:
    backend = MagicMock()
    backend.get_values.return_value = values or {"/app/db/host": "x"}
    backend.watch_prefix.return_value = "c1"
    return backend


class TestCli:
    """Test suite for CLI commands."""

    def test_get(self):
        backend = fake_backend()
        with patch("confwatch.core.environment.Environment.backend", return_value=backend):
            result = runner.invoke(app, ["get", "/app/*", "--backend", "zk"])
        assert result.exit_code == 0
        assert json.loads(result.output) == {"/app/db/host": "x"}
        backend.get_values.assert_called_once_with(["/app/*"])

    def test_get_error(self):
        backend = fake_backend()
        backend.get_values.side_effect = TransportError("down")
        with patch("confwatch.core.environment.Environment.backend", return_value=backend):
            result = runner.invoke(app, ["get", "/app", "--backend", "zk"])
        assert result.exit_code == 1

    def test_watch_once(self):
        backend = fake_backend()
        with patch("confwatch.core.environment.Environment.backend", return_value=backend):
            result = runner.invoke(
                app, ["watch", "/app", "--key", "/app/db", "--backend", "zk", "--once"]
            )
        assert result.exit_code == 0
        call = backend.watch_prefix.call_args
        assert call.args[:3] == ("/app", ("/app/db",), "")

    def test_watch_wildcard_prefix_default_filter(self):
        """Without --key the filter is the prefix with its wildcard removed."""
        backend = fake_backend()
        with patch("confwatch.core.environment.Environment.backend", return_value=backend):
            result = runner.invoke(app, ["watch", "/app/*", "--backend", "zk", "--once"])
        assert result.exit_code == 0
        prefix, keys, cursor = backend.watch_prefix.call_args.args[:3]
        assert prefix == "/app/*"
        assert keys == ("/app",)
        assert all("/app/db/host".startswith(k) for k in keys)

    def test_backends_list(self, tmp_path):
        config_file = tmp_path / "confwatch.yaml"
        config_file.write_text("backends:\n  zk:\n    type: zookeeper\n")
        result = runner.invoke(app, ["backends-list", "--config", str(config_file)])
        assert result.exit_code == 0
        assert json.loads(result.output) == ["zk"]
