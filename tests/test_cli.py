"""Tests for the command line interface."""
from __future__ import annotations

import pytest
from typer.testing import CliRunner

from cli import app
from core.config import get_settings
from core.logging_config import shutdown_logging

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_cli(tmp_path, monkeypatch):
    """Keep log files in a temp dir and release handlers bound to the runner's streams."""
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    get_settings.cache_clear()
    yield
    shutdown_logging()
    get_settings.cache_clear()


def test_info_shows_configuration():
    result = runner.invoke(app, ["info"])
    assert result.exit_code == 0
    assert "Poultry POS Configuration" in result.stdout
    assert "DefaultConnection" in result.stdout


def test_check_in_memory_database():
    result = runner.invoke(app, ["check"])
    assert result.exit_code == 0
    assert "Database connection OK" in result.stdout


def test_status_on_blank_database():
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert "Database exists:    False" in result.stdout
    assert "Pending migrations: 2" in result.stdout


def test_init_db_creates_schema(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{(tmp_path / 'pos.db').as_posix()}")

    result = runner.invoke(app, ["init-db"])

    assert result.exit_code == 0, result.output
    assert "Database ready" in result.stdout
    assert "Schema created" in result.stdout
    assert "trucks: 0" in result.stdout
    assert (tmp_path / "pos.db").exists()


def test_init_db_reports_failure(tmp_path, monkeypatch):
    # A directory cannot be opened as a database file
    (tmp_path / "pos.db").mkdir()
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{(tmp_path / 'pos.db').as_posix()}")

    result = runner.invoke(app, ["init-db"])

    assert result.exit_code == 1
