"""Database readiness orchestration.

Runs the startup gate that must pass before the main window may open:

1. Connectivity probe (open and close a fresh handle)
2. Schema ensure (create the database schema when it is missing)
3. Migration reconciliation (apply pending revisions in order)
4. Verification (count rows in every known table)

Each stage uses its own handle and starts only after the previous stage
released its handle. The first failing stage ends the run; its error is
logged where it is detected and returned inside a BootstrapOutcome. Nothing
is retried: callers re-run initialize() if they want another attempt.
"""
from __future__ import annotations

import asyncio
import enum
import time
import uuid
from collections.abc import Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Iterator, Optional, Protocol, Tuple

from core.db import VERIFIED_TABLES, DatabaseHandle
from core.exceptions import (
    BootstrapCancelledError,
    BootstrapFailedError,
    ConnectivityError,
    MigrationError,
    SchemaCreationError,
    VerificationError,
)
from core.logging_config import LogSink, get_logger

LOGGER = get_logger(__name__)


class BootstrapStage(str, enum.Enum):
    """Stages of the readiness run, in execution order."""
    CONNECTIVITY = "connectivity"
    SCHEMA_ENSURE = "schema_ensure"
    MIGRATION = "migration"
    VERIFICATION = "verification"
    NONE = "none"


# Error type each stage reports when it fails
STAGE_ERRORS = {
    BootstrapStage.CONNECTIVITY: ConnectivityError,
    BootstrapStage.SCHEMA_ENSURE: SchemaCreationError,
    BootstrapStage.MIGRATION: MigrationError,
    BootstrapStage.VERIFICATION: VerificationError,
}


class HandleFactory(Protocol):
    """Anything that can hand out fresh database handles."""

    async def create_handle(self) -> DatabaseHandle:
        ...


@dataclass(frozen=True)
class ConnectivityProbeResult:
    """Result of one open/close round-trip."""

    ok: bool
    error: Optional[BaseException] = None
    duration_ms: float = 0.0


class VerificationReport(Mapping):
    """
    Read-only mapping of table name to row count.

    Used for logging only. A count of zero is a valid, empty table.
    """

    def __init__(self, counts: Mapping[str, int]) -> None:
        for table, count in counts.items():
            if count < 0:
                raise ValueError(f"Row count for '{table}' must be non-negative, got {count}")
        self._counts: Dict[str, int] = dict(counts)

    def __getitem__(self, table: str) -> int:
        return self._counts[table]

    def __iter__(self) -> Iterator[str]:
        return iter(self._counts)

    def __len__(self) -> int:
        return len(self._counts)

    def __repr__(self) -> str:
        return f"VerificationReport({self._counts!r})"

    @property
    def total_rows(self) -> int:
        return sum(self._counts.values())


@dataclass(frozen=True)
class BootstrapOutcome:
    """Single authoritative result of a readiness run."""

    succeeded: bool
    failed_stage: BootstrapStage = BootstrapStage.NONE
    error: Optional[BaseException] = None
    report: Optional[VerificationReport] = None
    applied_migrations: Tuple[str, ...] = ()
    schema_created: bool = False
    duration_ms: float = 0.0

    @classmethod
    def success(cls, report: VerificationReport, **details) -> "BootstrapOutcome":
        return cls(succeeded=True, report=report, **details)

    @classmethod
    def failure(cls, stage: BootstrapStage, error: BaseException, **details) -> "BootstrapOutcome":
        return cls(succeeded=False, failed_stage=stage, error=error, **details)

    def raise_for_failure(self) -> None:
        """Raise BootstrapFailedError if the run did not succeed."""
        if not self.succeeded:
            raise BootstrapFailedError(self)


@dataclass
class _RunProgress:
    schema_created: bool = False
    applied_migrations: Tuple[str, ...] = ()
    report: Optional[VerificationReport] = None
    started: float = field(default_factory=time.perf_counter)

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000


class ReadinessOrchestrator:
    """
    Drives the database to a usable state and reports one outcome.

    Single-flight: concurrent initialize() calls are serialized, so two runs
    never overlap. A shutdown request lets the running stage finish and
    stops the run before the next stage begins.
    """

    def __init__(
        self,
        factory: HandleFactory,
        log_sink: Optional[LogSink] = None,
        tables: Mapping[str, str] = VERIFIED_TABLES,
    ) -> None:
        """
        Args:
            factory: Source of fresh database handles.
            log_sink: Destination for progress and failure messages.
            tables: Table name -> display label for every table to verify.
        """
        self._factory = factory
        self._sink = log_sink or LogSink(LOGGER)
        self._log = self._sink
        self._tables = dict(tables)
        self._run_lock = asyncio.Lock()
        self._stage_lock = asyncio.Lock()
        self._shutdown_requested = False
        self.last_outcome: Optional[BootstrapOutcome] = None

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def initialize(self) -> BootstrapOutcome:
        """Run all stages in order and return the outcome. Never raises for stage failures."""
        async with self._run_lock:
            # Every record of one run carries the same run_id
            self._log = self._sink.bind(run_id=uuid.uuid4().hex[:12])
            try:
                self._log.info("Starting database initialization...")
                outcome = await self._run_stages()
                self.last_outcome = outcome
                if outcome.succeeded:
                    self._log.info(
                        "Database initialization completed successfully.",
                        duration_ms=round(outcome.duration_ms, 2),
                        applied_migrations=list(outcome.applied_migrations),
                        schema_created=outcome.schema_created,
                    )
                return outcome
            finally:
                self._log = self._sink

    async def probe(self) -> ConnectivityProbeResult:
        """Open and close a fresh handle. Failures are logged and returned, not raised."""
        started = time.perf_counter()
        self._log.info("Testing database connection...")
        try:
            async with self._handle() as handle:
                await handle.open()
                await handle.close()
        except Exception as exc:
            self._log.error("Database connection test failed", exc)
            return ConnectivityProbeResult(
                ok=False, error=exc, duration_ms=(time.perf_counter() - started) * 1000
            )
        return ConnectivityProbeResult(ok=True, duration_ms=(time.perf_counter() - started) * 1000)

    async def probe_connectivity(self) -> bool:
        """True when the database accepts a connection. Never raises."""
        return (await self.probe()).ok

    def request_shutdown(self) -> None:
        """Stop the current run before its next stage starts."""
        self._shutdown_requested = True

    async def wait_idle(self) -> None:
        """Wait until no stage is executing."""
        async with self._stage_lock:
            pass

    # -------------------------------------------------------------------------
    # Stage driver
    # -------------------------------------------------------------------------

    async def _run_stages(self) -> BootstrapOutcome:
        progress = _RunProgress()
        stages = (
            (BootstrapStage.CONNECTIVITY, self._check_connectivity),
            (BootstrapStage.SCHEMA_ENSURE, self._ensure_schema),
            (BootstrapStage.MIGRATION, self._reconcile_migrations),
            (BootstrapStage.VERIFICATION, self._verify_tables),
        )

        for stage, run_stage in stages:
            if self._shutdown_requested:
                error = BootstrapCancelledError(f"Shutdown requested before the {stage.value} stage")
                self._log.error("Database initialization stopped", error, stage=stage.value)
                return self._failure(stage, error, progress)

            try:
                async with self._stage_lock:
                    await run_stage(progress)
            except Exception as exc:
                error = self._as_stage_error(stage, exc)
                self._log.error(
                    f"Database initialization failed at stage {stage.value}",
                    error,
                    stage=stage.value,
                )
                return self._failure(stage, error, progress)

        assert progress.report is not None
        return BootstrapOutcome.success(
            progress.report,
            applied_migrations=progress.applied_migrations,
            schema_created=progress.schema_created,
            duration_ms=progress.elapsed_ms(),
        )

    @staticmethod
    def _failure(
        stage: BootstrapStage, error: BaseException, progress: _RunProgress
    ) -> BootstrapOutcome:
        return BootstrapOutcome.failure(
            stage,
            error,
            applied_migrations=progress.applied_migrations,
            schema_created=progress.schema_created,
            duration_ms=progress.elapsed_ms(),
        )

    @staticmethod
    def _as_stage_error(stage: BootstrapStage, exc: Exception) -> Exception:
        error_type = STAGE_ERRORS[stage]
        if isinstance(exc, error_type):
            return exc
        error = error_type(f"{stage.value} stage failed: {exc}")
        error.__cause__ = exc
        return error

    @asynccontextmanager
    async def _handle(self) -> AsyncIterator[DatabaseHandle]:
        handle = await self._factory.create_handle()
        try:
            yield handle
        finally:
            try:
                await handle.close()
            except Exception as exc:
                self._log.error("Failed to release database handle", exc)

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def _check_connectivity(self, progress: _RunProgress) -> None:
        result = await self.probe()
        if not result.ok:
            raise ConnectivityError(
                "Cannot connect to database. Please verify the database server is "
                f"running and the connection string is correct: {result.error}"
            ) from result.error
        self._log.info("Database connection successful.", duration_ms=round(result.duration_ms, 2))

    async def _ensure_schema(self, progress: _RunProgress) -> None:
        async with self._handle() as handle:
            progress.schema_created = bool(await handle.ensure_schema_created())
        self._log.info("Database created/verified successfully.", created=progress.schema_created)

    async def _reconcile_migrations(self, progress: _RunProgress) -> None:
        async with self._handle() as handle:
            pending = tuple(await handle.pending_migrations())
            if not pending:
                self._log.info("No pending migrations.")
                return

            self._log.info(f"Applying {len(pending)} pending migrations...", pending=list(pending))
            try:
                progress.applied_migrations = tuple(await handle.apply_migrations())
            except MigrationError as exc:
                progress.applied_migrations = exc.applied
                raise

        self._log.info("Migrations applied successfully.", applied=list(progress.applied_migrations))

    async def _verify_tables(self, progress: _RunProgress) -> None:
        counts: Dict[str, int] = {}
        async with self._handle() as handle:
            for table in self._tables:
                try:
                    counts[table] = int(await handle.count(table))
                except VerificationError:
                    raise
                except Exception as exc:
                    raise VerificationError(
                        f"Table '{table}' is not queryable: {exc}", table=table
                    ) from exc

        progress.report = VerificationReport(counts)
        self._log.info("Database verification completed:", tables=len(counts))
        for table, label in self._tables.items():
            self._log.info(f"- {label}: {counts[table]} records", table=table, count=counts[table])
