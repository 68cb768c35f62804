"""Unit tests for the main CLI application."""

from pathlib import Path

from digestctl import __version__
from digestctl.cli.main import app
from typer.testing import CliRunner

runner = CliRunner()


class TestMainApp:
    """Tests for global options and command registration."""

    def test_version(self) -> None:
        """--version prints the version and exits."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"digestctl version {__version__}" in result.stdout

    def test_no_args_shows_help(self) -> None:
        """Running without a command prints usage."""
        result = runner.invoke(app, [])
        assert "Usage" in result.output

    def test_commands_listed(self) -> None:
        """All commands appear in the help text."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("scan", "digest", "config"):
            assert command in result.stdout

    def test_verbose_flag_accepted(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--verbose", "scan", str(tmp_path)])
        assert result.exit_code == 0
