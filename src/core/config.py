"""Configuration management for the poultry POS application.

Settings are layered, highest priority first:
1. Environment variables
2. .env file in the project root
3. appsettings.json (``ConnectionStrings`` section and plain keys)
4. Default values
"""
from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple, Type

from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .exceptions import ConfigurationError

# Project root detection
PROJECT_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = PROJECT_ROOT / ".env"
SETTINGS_FILE = Path(os.environ.get("POS_SETTINGS_FILE", PROJECT_ROOT / "appsettings.json"))

DEFAULT_CONNECTION_NAME = "DefaultConnection"

# Absolute path to the local database (never changes regardless of CWD)
DATABASE_FILE = PROJECT_ROOT / "poultry_pos.db"
ABSOLUTE_DATABASE_URL = f"sqlite:///{DATABASE_FILE.as_posix()}"


def _resolve_database_url(url: str) -> str:
    """
    Convert relative SQLite paths to absolute paths based on PROJECT_ROOT.

    This prevents issues when the app is started from different working directories.
    """
    if not url.startswith("sqlite:///"):
        return url  # Not SQLite, return as-is

    path_part = url.replace("sqlite:///", "")
    if path_part in ("", ":memory:"):
        return url

    # Relative path (starts with ./ or has no root and no drive letter)
    if path_part.startswith("./") or (not path_part.startswith("/") and ":" not in path_part):
        if path_part.startswith("./"):
            path_part = path_part[2:]

        absolute_path = PROJECT_ROOT / path_part
        return f"sqlite:///{absolute_path.as_posix()}"

    return url  # Already absolute


class Settings(BaseSettings):
    """
    Runtime configuration powered by environment variables, .env and appsettings.json.

    Connection strings live in a named map, mirroring the ``ConnectionStrings``
    section of appsettings.json. ``DATABASE_URL`` overrides the default entry.
    """

    model_config = SettingsConfigDict(
        env_file=ENV_FILE if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        json_file=SETTINGS_FILE,
        json_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # Database
    # -------------------------------------------------------------------------
    connection_strings: Dict[str, str] = Field(
        default_factory=lambda: {DEFAULT_CONNECTION_NAME: ABSOLUTE_DATABASE_URL},
        alias="ConnectionStrings",
        description="Named SQLAlchemy connection strings.",
    )
    database_url: Optional[str] = Field(
        default=None,
        alias="DATABASE_URL",
        description="Overrides the DefaultConnection entry when set.",
    )
    connection_name: str = Field(default=DEFAULT_CONNECTION_NAME, alias="CONNECTION_NAME")
    db_pool_size: int = Field(default=5, alias="DB_POOL_SIZE", ge=1)
    db_max_overflow: int = Field(default=10, alias="DB_MAX_OVERFLOW", ge=0)
    db_pool_timeout: int = Field(default=30, alias="DB_POOL_TIMEOUT", ge=1)
    db_echo: bool = Field(default=False, alias="DB_ECHO", description="Log every SQL statement")

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="text", alias="LOG_FORMAT")  # "text" or "json"
    log_dir: Path = Field(default=PROJECT_ROOT / "logs", alias="LOG_DIR")
    log_file_prefix: str = Field(default="pos-log", alias="LOG_FILE_PREFIX")
    log_retention_days: int = Field(default=31, alias="LOG_RETENTION_DAYS", ge=1)

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    environment: str = Field(default="local", alias="ENVIRONMENT")
    ui_language: str = Field(default="ar", alias="UI_LANGUAGE")
    window_title: str = Field(default="Poultry Slaughter POS", alias="WINDOW_TITLE")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Insert appsettings.json below the environment sources."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Ensure log format is valid."""
        lower = v.lower()
        if lower not in {"text", "json"}:
            raise ValueError("log_format must be 'text' or 'json'")
        return lower

    @field_validator("ui_language")
    @classmethod
    def validate_ui_language(cls, v: str) -> str:
        lower = v.lower()
        if lower not in {"ar", "en"}:
            raise ValueError("ui_language must be 'ar' or 'en'")
        return lower

    @model_validator(mode="after")
    def resolve_connection_strings(self) -> "Settings":
        """Apply DATABASE_URL and convert relative SQLite paths to absolute paths."""
        strings = dict(self.connection_strings)
        if self.database_url:
            strings[DEFAULT_CONNECTION_NAME] = self.database_url
        self.connection_strings = {
            name: _resolve_database_url(url) for name, url in strings.items()
        }
        return self

    def get_connection_string(self, name: Optional[str] = None) -> str:
        """
        Look up a named connection string.

        Names are matched case-insensitively, since environment variables
        are folded to lower case.

        Raises:
            ConfigurationError: If the name is unknown or the value is empty.
        """
        name = name or self.connection_name
        for key, value in self.connection_strings.items():
            if key.lower() == name.lower():
                if not value:
                    raise ConfigurationError(f"Connection string '{name}' is empty.")
                return value
        raise ConfigurationError(
            f"Connection string '{name}' is not configured. "
            f"Add it to ConnectionStrings in {SETTINGS_FILE.name} or set DATABASE_URL."
        )

    def masked_connection_strings(self) -> Dict[str, str]:
        """Connection strings with any password replaced, for display."""
        from sqlalchemy.engine import make_url

        masked = {}
        for name, url in self.connection_strings.items():
            try:
                masked[name] = make_url(url).render_as_string(hide_password=True)
            except Exception:
                masked[name] = "<unparseable>"
        return masked


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once and cached. To reload settings,
    call `get_settings.cache_clear()` first.

    Raises:
        ConfigurationError: If a settings source holds invalid values.
    """
    try:
        return Settings()
    except ValueError as exc:
        # pydantic.ValidationError subclasses ValueError
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def reload_settings() -> Settings:
    """
    Clear settings cache and reload from all sources.

    Used after appsettings.json or .env has been edited.
    """
    get_settings.cache_clear()
    return get_settings()
