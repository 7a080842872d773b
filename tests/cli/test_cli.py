# tests/cli/test_cli.py
"""Tests for the EventGear CLI."""

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog
from typer.testing import CliRunner

from eventgear import __version__
from eventgear.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """simulate configures logging against the runner's streams."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text("""
engine:
  frame_duration: 0.1
  max_history_size: 10
logging:
  level: warning
bridges:
  - name: log
    options:
      level: debug
""")
    return path


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"eventgear version {__version__}" in result.stdout

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "simulate" in result.stdout
        assert "check-config" in result.stdout


class TestCheckConfig:
    """check-config validates settings and bridges."""

    def test_valid_settings(self, settings_file: Path) -> None:
        result = runner.invoke(app, ["check-config", str(settings_file)])

        assert result.exit_code == 0
        assert "Configuration valid: settings.yaml" in result.stdout
        assert "frame_duration: 0.1" in result.stdout
        assert "- log" in result.stdout

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["check-config", str(tmp_path / "absent.yaml")])

        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_invalid_values(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("engine:\n  frequency_smoothing_factor: 5\n")

        result = runner.invoke(app, ["check-config", str(path)])

        assert result.exit_code == 1
        assert "Configuration Validation Failed" in result.output

    def test_unknown_bridge(self, tmp_path: Path) -> None:
        path = tmp_path / "bridges.yaml"
        path.write_text("bridges:\n  - name: carrier-pigeon\n")

        result = runner.invoke(app, ["check-config", str(path)])

        assert result.exit_code == 1
        assert "Bridge Error" in result.output


class TestSimulate:
    """simulate drives a real-time engine."""

    @pytest.mark.slow
    def test_json_summary(self) -> None:
        result = runner.invoke(
            app, ["simulate", "--rate", "50", "--duration", "0.2", "--frame", "0.1", "--seed", "1", "--json"]
        )

        assert result.exit_code == 0
        summary = json.loads(result.stdout)
        assert summary["events"] > 0
        assert summary["total_frequency"] > 0
        assert len(summary["history"]) == summary["timeframes"]
        assert set(summary["exceedances"]) >= {"jitter_exceedances", "frequency_upper_exceedances"}

    @pytest.mark.slow
    def test_yaml_summary_with_settings(self, settings_file: Path) -> None:
        result = runner.invoke(
            app, ["simulate", "--settings", str(settings_file), "--duration", "0.1", "--jitter", "2", "--seed", "7"]
        )

        assert result.exit_code == 0
        assert "events:" in result.stdout

    def test_zero_duration_registers_nothing(self) -> None:
        result = runner.invoke(app, ["simulate", "--duration", "0", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["events"] == 0

    def test_invalid_log_level(self) -> None:
        result = runner.invoke(app, ["simulate", "--duration", "0", "--log-level", "chatty"])

        assert result.exit_code == 1
        assert "Unknown log level" in result.output

    def test_missing_settings_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["simulate", "--settings", str(tmp_path / "absent.yaml")])

        assert result.exit_code == 1
        assert "does not exist" in result.output
