"""Core module exports."""
from __future__ import annotations

from core.config import Settings, get_settings, reload_settings
from core.db import (
    Base,
    DatabaseHandle,
    PersistenceFactory,
    SchemaState,
    VERIFIED_TABLES,
    build_engine,
)
from core.exceptions import (
    # Base
    PoultryPOSError,
    # Configuration / Host
    ConfigurationError,
    HostStartError,
    # Database
    DatabaseError,
    ConnectivityError,
    SchemaCreationError,
    MigrationError,
    VerificationError,
    # Bootstrap
    BootstrapCancelledError,
    BootstrapFailedError,
)
from core.logging_config import (
    setup_logging,
    shutdown_logging,
    get_logger,
    JSONFormatter,
    ContextLogger,
    LogSink,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "reload_settings",
    # Database
    "Base",
    "DatabaseHandle",
    "PersistenceFactory",
    "SchemaState",
    "VERIFIED_TABLES",
    "build_engine",
    # Exceptions
    "PoultryPOSError",
    "ConfigurationError",
    "HostStartError",
    "DatabaseError",
    "ConnectivityError",
    "SchemaCreationError",
    "MigrationError",
    "VerificationError",
    "BootstrapCancelledError",
    "BootstrapFailedError",
    # Logging
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "JSONFormatter",
    "ContextLogger",
    "LogSink",
]
