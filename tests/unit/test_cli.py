"""Tests for servertime._cli — command-line interface.

Test Techniques Used:
    - Specification-based Testing: Flag parsing, output lines
    - Behavioural Testing: Exit codes for synced / fallback / errors
    - Mock-based Isolation: MockTransport patched in for HTTP
    - Error Condition Testing: Invalid flag values, config errors
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from servertime._cli import (
    EXIT_CONFIG_ERROR,
    EXIT_NOT_SYNCED,
    EXIT_OK,
    app,
)
from servertime._errors import TransportError
from servertime._transport import MockTransport, TransportResponse

ENDPOINT = "https://time.test/now"
# 2025-01-01T01:00:00Z
SERVER_TS = 1_735_693_200_000

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _restore_root_logger() -> Iterator[None]:
    """The CLI callback reconfigures the root logger; undo it."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "SERVERTIME_SYNC__ENDPOINT",
        "SERVERTIME_SYNC__METHOD",
        "SERVERTIME_SYNC__ATTEMPTS",
        "SERVERTIME_FORMAT__DEFAULT_PATTERN",
        "SERVERTIME_FORMAT__LOCAL_ZONE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def env_file(tmp_path: Path) -> str:
    """Path to an empty .env file so the working directory is ignored."""
    path = tmp_path / ".env"
    path.write_text("")
    return str(path)


@pytest.fixture
def transport() -> Iterator[MockTransport]:
    mock = MockTransport()
    with patch("servertime._cli._make_transport", return_value=mock):
        yield mock


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------


class TestGlobalOptions:
    """Technique: Specification-based Testing."""

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == EXIT_OK
        assert result.output.startswith("servertime v")

    def test_no_command_prints_help(self, runner: CliRunner, env_file: str) -> None:
        result = runner.invoke(app, ["--env-file", env_file])

        assert result.exit_code == EXIT_OK
        assert "sync" in result.output
        assert "watch" in result.output

    def test_invalid_log_level(self, runner: CliRunner, env_file: str) -> None:
        result = runner.invoke(app, ["--env-file", env_file, "--log-level", "LOUD", "format"])

        assert result.exit_code != EXIT_OK
        assert "Invalid log level" in result.output

    def test_invalid_log_format(self, runner: CliRunner, env_file: str) -> None:
        result = runner.invoke(app, ["--env-file", env_file, "--log-format", "xml", "format"])

        assert result.exit_code != EXIT_OK
        assert "Invalid log format" in result.output

    def test_log_level_applied(self, runner: CliRunner, env_file: str) -> None:
        runner.invoke(app, ["--env-file", env_file, "--log-level", "debug", "format", "YYYY"])

        assert logging.getLogger().level == logging.DEBUG

    def test_config_error_exit_code(self, runner: CliRunner, tmp_path: Path) -> None:
        bad = tmp_path / ".env"
        bad.write_text("SERVERTIME_SYNC__ATTEMPTS=zero\n")

        result = runner.invoke(app, ["--env-file", str(bad), "format"])

        assert result.exit_code == EXIT_CONFIG_ERROR


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------


class TestSyncCommand:
    """Technique: Behavioural Testing."""

    def test_synced_output_and_exit(
        self, runner: CliRunner, env_file: str, transport: MockTransport
    ) -> None:
        transport.default = TransportResponse(200, {"timestamp": SERVER_TS})

        result = runner.invoke(
            app,
            ["--env-file", env_file, "sync", ENDPOINT, "--zone", "UTC", "--attempts", "1"],
        )

        assert result.exit_code == EXIT_OK
        lines = result.output.splitlines()
        assert lines[0] == "2025-01-01 01:00:00"
        assert lines[1].startswith("synced=true offset_ms=")

    def test_method_and_pattern(
        self, runner: CliRunner, env_file: str, transport: MockTransport
    ) -> None:
        transport.default = TransportResponse(200, {"timestamp": SERVER_TS})

        result = runner.invoke(
            app,
            [
                "--env-file", env_file,
                "sync", ENDPOINT,
                "--method", "get",
                "--zone", "Asia/Tokyo",
                "--pattern", "HH:mm",
                "--attempts", "1",
            ],
        )

        assert result.exit_code == EXIT_OK
        assert result.output.splitlines()[0] == "10:00"
        assert transport.calls[0][0] == "GET"

    def test_fallback_exit_code(
        self, runner: CliRunner, env_file: str, transport: MockTransport
    ) -> None:
        transport.default = TransportError("refused")

        result = runner.invoke(app, ["--env-file", env_file, "sync", ENDPOINT])

        assert result.exit_code == EXIT_NOT_SYNCED
        assert "synced=false offset_ms=0.0" in result.output
        assert transport.call_count == 3

    def test_endpoint_from_env_file(
        self, runner: CliRunner, tmp_path: Path, transport: MockTransport
    ) -> None:
        path = tmp_path / ".env"
        path.write_text(f"SERVERTIME_SYNC__ENDPOINT={ENDPOINT}\nSERVERTIME_SYNC__ATTEMPTS=1\n")
        transport.default = TransportResponse(200, {"timestamp": SERVER_TS})

        result = runner.invoke(app, ["--env-file", str(path), "sync"])

        assert result.exit_code == EXIT_OK
        assert transport.calls[0][1] == ENDPOINT
        assert transport.calls[0][0] == "POST"

    def test_missing_endpoint(
        self, runner: CliRunner, env_file: str, transport: MockTransport
    ) -> None:
        result = runner.invoke(app, ["--env-file", env_file, "sync"])

        assert result.exit_code != EXIT_OK
        assert "No endpoint given" in result.output
        assert transport.call_count == 0

    def test_invalid_method(
        self, runner: CliRunner, env_file: str, transport: MockTransport
    ) -> None:
        result = runner.invoke(app, ["--env-file", env_file, "sync", ENDPOINT, "--method", "PUT"])

        assert result.exit_code != EXIT_OK
        assert "Invalid method" in result.output


# ---------------------------------------------------------------------------
# watch / format
# ---------------------------------------------------------------------------


class TestWatchCommand:
    """Technique: Behavioural Testing."""

    def test_prints_count_lines(
        self, runner: CliRunner, env_file: str, transport: MockTransport
    ) -> None:
        transport.default = TransportResponse(200, {"timestamp": SERVER_TS})

        result = runner.invoke(
            app,
            ["--env-file", env_file, "watch", ENDPOINT, "--count", "1", "--zone", "UTC",
             "--pattern", "HH:mm:ss"],
        )

        assert result.exit_code == EXIT_OK
        assert result.output.splitlines()[0].startswith("01:00:0")

    def test_marks_local_fallback(
        self, runner: CliRunner, env_file: str, transport: MockTransport
    ) -> None:
        transport.default = TransportError("refused")

        result = runner.invoke(app, ["--env-file", env_file, "watch", ENDPOINT, "--count", "1"])

        assert result.exit_code == EXIT_OK
        # Attempt warnings share the captured stream, so search every line.
        assert any(line.endswith(" (local)") for line in result.output.splitlines())


class TestFormatCommand:
    """Technique: Specification-based Testing."""

    def test_renders_without_network(
        self, runner: CliRunner, env_file: str, transport: MockTransport
    ) -> None:
        result = runner.invoke(app, ["--env-file", env_file, "format", "YYYY", "--zone", "UTC"])

        assert result.exit_code == EXIT_OK
        assert result.output.strip().isdigit()
        assert len(result.output.strip()) == 4
        assert transport.call_count == 0
