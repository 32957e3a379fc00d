"""
Unit tests for the command-line interface.
"""

import pytest

from udsipc.__main__ import _build_parser, _config_from_args, main


class TestArguments:
    """Tests for argument parsing and config overrides."""

    def test_serve_overrides(self, monkeypatch):
        """Test that serve flags land in the config."""
        monkeypatch.delenv("UDS_SOCKET_PATH", raising=False)
        args = _build_parser().parse_args([
            "serve", "--socket", "/tmp/cli.sock", "-m", "2",
            "--log-format", "json", "--shutdown-timeout", "1.5",
        ])

        config = _config_from_args(args)

        assert config.socket_path == "/tmp/cli.sock"
        assert config.max_connections == 2
        assert config.log_format == "json"
        assert config.shutdown_timeout == 1.5

    def test_flags_beat_environment(self, monkeypatch):
        """Test that a flag wins over the matching variable."""
        monkeypatch.setenv("UDS_SOCKET_PATH", "/tmp/env.sock")
        monkeypatch.setenv("UDS_CONNECT_ATTEMPTS", "9")

        args = _build_parser().parse_args(["client", "-s", "/tmp/flag.sock", "-a", "1"])
        config = _config_from_args(args)

        assert config.socket_path == "/tmp/flag.sock"
        assert config.connect_attempts == 1

    def test_environment_used_without_flags(self, monkeypatch):
        monkeypatch.setenv("UDS_SOCKET_PATH", "/tmp/env.sock")

        config = _config_from_args(_build_parser().parse_args(["client"]))

        assert config.socket_path == "/tmp/env.sock"

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args([])

    def test_invalid_config_exit_code(self, capsys):
        """Test that a bad value is reported without starting anything."""
        assert main(["serve", "--max-connections", "0"]) == 2
        assert "max_connections" in capsys.readouterr().err


class TestClientCommand:
    """Tests for the demo client."""

    def test_no_server(self, socket_path, capsys):
        """Test the exit code when nothing is listening."""
        assert main(["client", "--socket", socket_path, "--attempts", "0"]) == 1
        assert "connect error" in capsys.readouterr().err

    def test_demo_sequence(self, running_server, example_handler, socket_path, capsys):
        """Test the full demo against the example server."""
        assert main(["client", "--socket", socket_path, "--attempts", "0"]) == 0

        out = capsys.readouterr().out
        assert "Version: 1.0" in out
        assert "Message: This is a message from the server." in out
        assert "client: PUT_MESSAGE OK" in out
        assert "client: response status(1)" in out
        assert example_handler.messages == ["This is a message from client"]
