"""Pytest configuration and fixtures."""
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

# Set test environment BEFORE importing config
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("UI_LANGUAGE", "en")
# Keep a developer's appsettings.json out of the tests
os.environ["POS_SETTINGS_FILE"] = str(Path(__file__).parent / "no-appsettings.json")

from core.config import get_settings
from core.db import PersistenceFactory
from core.exceptions import MigrationError
from core.logging_config import LogSink


# ============================================================================
# Instrumented persistence stubs
# ============================================================================


class StubHandle:
    """Handle that records every call on its factory and fails on demand."""

    def __init__(self, factory: "StubFactory") -> None:
        self.factory = factory
        self.is_open = False

    async def open(self) -> None:
        self.factory.record("open")
        self.factory.maybe_fail("open")
        self.is_open = True

    async def close(self) -> None:
        self.factory.record("close")
        self.is_open = False

    async def ensure_schema_created(self) -> bool:
        self.factory.record("ensure_schema_created")
        self.factory.maybe_fail("ensure_schema_created")
        return self.factory.schema_created

    async def pending_migrations(self) -> Tuple[str, ...]:
        self.factory.record("pending_migrations")
        self.factory.maybe_fail("pending_migrations")
        return tuple(self.factory.pending)

    async def apply_migrations(self) -> Tuple[str, ...]:
        self.factory.record("apply_migrations")
        applied: List[str] = []
        for revision in list(self.factory.pending):
            if revision == self.factory.failing_migration:
                raise MigrationError(
                    f"Migration '{revision}' failed", revision=revision, applied=applied
                )
            applied.append(revision)
            self.factory.applied.append(revision)
            self.factory.pending.remove(revision)
        return tuple(applied)

    async def count(self, table_name: str) -> int:
        self.factory.record(f"count:{table_name}")
        if table_name in self.factory.failing_tables:
            raise RuntimeError(f"no such table: {table_name}")
        return self.factory.counts.get(table_name, 0)


class StubFactory:
    """Persistence factory stand-in that hands out StubHandles."""

    def __init__(
        self,
        fail_on: Optional[Dict[str, Exception]] = None,
        pending: Iterable[str] = (),
        failing_migration: Optional[str] = None,
        failing_tables: Iterable[str] = (),
        counts: Optional[Dict[str, int]] = None,
        schema_created: bool = False,
    ) -> None:
        self.fail_on = fail_on or {}
        self.pending = list(pending)
        self.failing_migration = failing_migration
        self.failing_tables = set(failing_tables)
        self.counts = counts or {}
        self.schema_created = schema_created
        self.applied: List[str] = []
        self.calls: List[str] = []
        self.handles: List[StubHandle] = []

    async def create_handle(self) -> StubHandle:
        handle = StubHandle(self)
        self.handles.append(handle)
        return handle

    def record(self, operation: str) -> None:
        self.calls.append(operation)

    def maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise self.fail_on[operation]

    def called(self, operation: str) -> bool:
        return any(call == operation or call.startswith(f"{operation}:") for call in self.calls)


class RecordingSink(LogSink):
    """LogSink that keeps records in memory."""

    def __init__(self) -> None:
        super().__init__(logging.getLogger("tests"))
        self.records: List[Tuple[int, str, Optional[BaseException], Dict[str, Any]]] = []
        self.flushed = 0

    def _emit(self, level, message, cause, fields) -> None:
        self.records.append((level, message, cause, fields))

    def flush(self) -> None:
        self.flushed += 1

    def messages(self, level: Optional[int] = None) -> List[str]:
        return [message for lvl, message, _, _ in self.records if level is None or lvl == level]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def make_factory():
    """Build an instrumented StubFactory: make_factory(pending=[...], ...)."""
    return StubFactory


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def settings():
    """Fresh settings from the test environment."""
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def sqlite_url(tmp_path) -> str:
    """URL of a database file that does not exist yet."""
    return f"sqlite:///{(tmp_path / 'data' / 'pos.db').as_posix()}"


@pytest.fixture
def sqlite_factory(sqlite_url):
    """Real persistence factory on a temporary SQLite file."""
    factory = PersistenceFactory.from_url(sqlite_url)
    yield factory
    factory.dispose()
