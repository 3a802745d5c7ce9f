"""Test configuration loading."""
from __future__ import annotations

import json

import pytest
from pydantic import ValidationError
from pydantic_settings import SettingsConfigDict

from core.config import (
    PROJECT_ROOT,
    Settings,
    _resolve_database_url,
    get_settings,
    reload_settings,
)
from core.exceptions import ConfigurationError


def _settings_from_file(path, **kwargs) -> Settings:
    class FileSettings(Settings):
        model_config = SettingsConfigDict(json_file=path)

    return FileSettings(**kwargs)


def test_settings_load(settings):
    """Test that settings load correctly."""
    assert settings.environment == "test"
    assert settings.get_connection_string() == "sqlite:///:memory:"
    assert settings.log_level in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    assert settings.log_file_prefix == "pos-log"


def test_settings_are_cached(settings):
    """Test that get_settings returns the same instance until reloaded."""
    assert get_settings() is settings
    assert reload_settings() is not settings


def test_connection_from_json_file(tmp_path, monkeypatch):
    """Test that ConnectionStrings are read from appsettings.json."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    settings_file = tmp_path / "appsettings.json"
    settings_file.write_text(
        json.dumps(
            {
                "ConnectionStrings": {
                    "DefaultConnection": "sqlite:////var/lib/pos/pos.db",
                    "Reporting": "sqlite:///reports.db",
                },
                "LOG_LEVEL": "debug",
            }
        ),
        encoding="utf-8",
    )

    settings = _settings_from_file(settings_file)

    assert settings.get_connection_string() == "sqlite:////var/lib/pos/pos.db"
    # Names match case-insensitively; relative paths resolve against the project root
    assert settings.get_connection_string("reporting") == f"sqlite:///{(PROJECT_ROOT / 'reports.db').as_posix()}"
    assert settings.log_level == "DEBUG"


def test_environment_overrides_json_file(tmp_path, monkeypatch):
    """Test that DATABASE_URL and other env vars win over appsettings.json."""
    monkeypatch.setenv("DATABASE_URL", "sqlite:////tmp/override.db")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    settings_file = tmp_path / "appsettings.json"
    settings_file.write_text(
        json.dumps({"ConnectionStrings": {"DefaultConnection": "sqlite:///file.db"}, "LOG_LEVEL": "DEBUG"}),
        encoding="utf-8",
    )

    settings = _settings_from_file(settings_file)

    assert settings.get_connection_string() == "sqlite:////tmp/override.db"
    assert settings.log_level == "WARNING"


def test_missing_settings_file_uses_defaults(tmp_path, monkeypatch):
    """Test that a missing appsettings.json is not an error."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    settings = _settings_from_file(tmp_path / "absent.json")
    assert settings.get_connection_string().endswith("/poultry_pos.db")


def test_relative_sqlite_path_resolved(monkeypatch):
    """Test that relative SQLite paths become absolute under the project root."""
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./data/pos.db")
    settings = Settings()
    assert settings.get_connection_string() == f"sqlite:///{(PROJECT_ROOT / 'data' / 'pos.db').as_posix()}"


def test_resolve_database_url_leaves_other_urls():
    """Test that absolute, in-memory and server URLs are unchanged."""
    assert _resolve_database_url("sqlite:///:memory:") == "sqlite:///:memory:"
    assert _resolve_database_url("sqlite:////srv/pos.db") == "sqlite:////srv/pos.db"
    assert _resolve_database_url("postgresql://pos@db/pos") == "postgresql://pos@db/pos"


def test_missing_connection_string():
    """Test that an unknown connection name raises ConfigurationError."""
    settings = Settings(connection_name="Reporting")
    with pytest.raises(ConfigurationError) as exc_info:
        settings.get_connection_string()
    assert "Reporting" in str(exc_info.value)


def test_empty_connection_string():
    """Test that an empty connection string raises ConfigurationError."""
    settings = Settings(connection_strings={"Reporting": ""}, connection_name="Reporting")
    with pytest.raises(ConfigurationError):
        settings.get_connection_string()


def test_masked_connection_strings():
    """Test that passwords are hidden for display."""
    settings = Settings(connection_strings={"Server": "postgresql://pos:secret@db/pos"})
    masked = settings.masked_connection_strings()
    assert "secret" not in masked["Server"]
    assert "***" in masked["Server"]


def test_invalid_values_rejected():
    """Test field validation."""
    with pytest.raises(ValidationError):
        Settings(log_level="LOUD")
    with pytest.raises(ValidationError):
        Settings(log_format="xml")
    with pytest.raises(ValidationError):
        Settings(ui_language="fr")


def test_ui_language_normalized():
    """Test that the UI language is case-insensitive."""
    assert Settings(ui_language="AR").ui_language == "ar"


def test_get_settings_wraps_validation_error(monkeypatch):
    """Test that invalid environment values surface as ConfigurationError."""
    monkeypatch.setenv("LOG_LEVEL", "LOUD")
    get_settings.cache_clear()
    try:
        with pytest.raises(ConfigurationError):
            get_settings()
    finally:
        get_settings.cache_clear()
