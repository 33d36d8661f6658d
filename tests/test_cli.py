"""Tests for the command line interface."""
from pathlib import Path

import pytest
from click.testing import CliRunner

from iisgeolocate import __version__
from iisgeolocate.cli import commands
from iisgeolocate.config import get_settings
from iisgeolocate.services.logparser.schemas import RunSummary
from iisgeolocate.services.pipeline import ConfigurationError, NoLogFilesFoundError


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def no_logging_config(monkeypatch):
    """Keep the CLI from replacing pytest's log handlers."""
    monkeypatch.setattr(commands, "configure_logging", lambda level: None)


@pytest.fixture
def captured(monkeypatch) -> list:
    calls: list = []

    def fake_run(settings):
        calls.append(settings)
        return RunSummary()

    monkeypatch.setattr(commands, "run_pipeline", fake_run)
    return calls


def test_version(runner: CliRunner):
    result = runner.invoke(commands.cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_options_map_to_settings(runner: CliRunner, captured: list, tmp_path: Path):
    result = runner.invoke(
        commands.cli,
        ["-d", str(tmp_path / "logs"), "--csv", str(tmp_path / "out"), "--sbl", "--nul", "--ip-field", "s-ip"],
    )
    assert result.exit_code == 0, result.output
    settings = captured[0]
    assert settings.pipeline.input_dir == tmp_path / "logs"
    assert settings.pipeline.output_dir == tmp_path / "out"
    assert settings.pipeline.suppress_bad_lines is True
    assert settings.pipeline.no_updated_logs is True
    assert settings.pipeline.ip_field == "s-ip"
    assert settings.pipeline.skip_reserved_ranges is False


def test_environment_used_when_option_absent(runner: CliRunner, captured: list, tmp_path: Path, monkeypatch):
    monkeypatch.setenv("PIPELINE_SUPPRESS_BAD_LINES", "true")
    monkeypatch.setenv("PIPELINE_INPUT_DIR", str(tmp_path / "env-logs"))
    result = runner.invoke(commands.cli, ["--csv", str(tmp_path / "out")])
    assert result.exit_code == 0, result.output
    assert captured[0].pipeline.suppress_bad_lines is True
    assert captured[0].pipeline.input_dir == tmp_path / "env-logs"


def test_geoip_db_and_log_level(runner: CliRunner, captured: list, tmp_path: Path):
    db = tmp_path / "GeoIP2-City.mmdb"
    result = runner.invoke(
        commands.cli,
        ["-d", str(tmp_path), "--csv", str(tmp_path), "--geoip-db", str(db), "--log-level", "debug", "--skip-reserved"],
    )
    assert result.exit_code == 0, result.output
    assert captured[0].geoip.db_path == db
    assert captured[0].log_level == "DEBUG"
    assert captured[0].pipeline.skip_reserved_ranges is True


def test_missing_directories_prints_help(runner: CliRunner, monkeypatch):
    def fake_run(settings):
        raise ConfigurationError("Both -d and --csv are required")

    monkeypatch.setattr(commands, "run_pipeline", fake_run)
    result = runner.invoke(commands.cli, [])
    assert result.exit_code == 1
    assert "Usage:" in result.output


def test_startup_error_exit_code(runner: CliRunner, monkeypatch, tmp_path: Path):
    def fake_run(settings):
        raise NoLogFilesFoundError("No files ending in .log found")

    monkeypatch.setattr(commands, "run_pipeline", fake_run)
    result = runner.invoke(commands.cli, ["-d", str(tmp_path), "--csv", str(tmp_path / "out")])
    assert result.exit_code == 1
    assert not (tmp_path / "out").exists()


def test_no_options_uses_cached_settings(runner: CliRunner, captured: list, tmp_path: Path, monkeypatch):
    """Without command line overrides the shared settings instance is used."""
    monkeypatch.setenv("PIPELINE_INPUT_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("PIPELINE_OUTPUT_DIR", str(tmp_path / "out"))
    result = runner.invoke(commands.cli, [])
    assert result.exit_code == 0, result.output
    assert captured[0] is get_settings()
    assert captured[0].pipeline.output_dir == tmp_path / "out"
