"""Custom exceptions for the poultry POS application."""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from services.readiness import BootstrapOutcome


class PoultryPOSError(Exception):
    """Base exception for all application errors."""

    pass


# =============================================================================
# Configuration / Host Errors
# =============================================================================


class ConfigurationError(PoultryPOSError):
    """Raised when required configuration is missing or invalid."""

    pass


class HostStartError(PoultryPOSError):
    """Raised when the runtime host fails to build or start its services."""

    pass


# =============================================================================
# Database Errors
# =============================================================================


class DatabaseError(PoultryPOSError):
    """Base exception for database-related errors."""

    pass


class ConnectivityError(DatabaseError):
    """Raised when the database is unreachable or rejects the credentials."""

    pass


class SchemaCreationError(DatabaseError):
    """Raised when the database schema cannot be created or confirmed."""

    pass


class MigrationError(DatabaseError):
    """
    Raised when a pending migration fails to apply.

    Revisions applied before the failure stay applied; ``applied`` lists them
    in order and ``revision`` names the one that failed.
    """

    def __init__(
        self,
        message: str,
        revision: Optional[str] = None,
        applied: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.revision = revision
        self.applied: Tuple[str, ...] = tuple(applied)


class VerificationError(DatabaseError):
    """Raised when an expected table cannot be queried."""

    def __init__(self, message: str, table: Optional[str] = None) -> None:
        super().__init__(message)
        self.table = table


# =============================================================================
# Bootstrap Errors
# =============================================================================


class BootstrapCancelledError(PoultryPOSError):
    """Raised when shutdown was requested before a bootstrap stage could start."""

    pass


class BootstrapFailedError(PoultryPOSError):
    """Raised by callers that need an exception for a failed bootstrap outcome."""

    def __init__(self, outcome: "BootstrapOutcome") -> None:
        super().__init__(f"Bootstrap failed at stage {outcome.failed_stage.value}: {outcome.error}")
        self.outcome = outcome


__all__ = [
    # Base
    "PoultryPOSError",
    # Configuration / Host
    "ConfigurationError",
    "HostStartError",
    # Database
    "DatabaseError",
    "ConnectivityError",
    "SchemaCreationError",
    "MigrationError",
    "VerificationError",
    # Bootstrap
    "BootstrapCancelledError",
    "BootstrapFailedError",
]
