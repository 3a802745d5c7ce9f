"""Database engines, short-lived handles and schema reconciliation."""
from __future__ import annotations

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Generator, Optional, Tuple

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, event, func, inspect, select
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from .config import PROJECT_ROOT
from .exceptions import MigrationError, VerificationError
from .logging_config import get_logger

if TYPE_CHECKING:
    from .config import Settings

LOGGER = get_logger(__name__)

ALEMBIC_DIR = PROJECT_ROOT / "alembic"
ALEMBIC_INI = PROJECT_ROOT / "alembic.ini"
VERSION_TABLE = "alembic_version"

# Tables that MUST be queryable before the UI may open, with display labels
VERIFIED_TABLES: Dict[str, str] = {
    "trucks": "Trucks",
    "customers": "Customers",
    "truck_loads": "Truck Loads",
    "invoices": "Invoices",
    "payments": "Payments",
    "daily_reconciliations": "Daily Reconciliations",
    "audit_logs": "Audit Logs",
}


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


@dataclass(frozen=True)
class SchemaState:
    """Snapshot of the target database taken by a handle."""

    database_exists: bool
    pending_migrations: Tuple[str, ...] = ()

    @property
    def is_current(self) -> bool:
        return self.database_exists and not self.pending_migrations


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_memory_sqlite(url: str) -> bool:
    database = make_url(url).database
    return database in (None, "", ":memory:")


def _use_sqlite_transactions(engine: Engine, file_pragmas: bool) -> None:
    """
    Let SQLAlchemy, not the pysqlite driver, begin transactions.

    The driver's legacy mode never emits BEGIN before DDL, so a failed
    CREATE TABLE could not be rolled back.
    """

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        if file_pragmas:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=30000")  # 30 second timeout
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    @event.listens_for(engine, "begin")
    def begin_sqlite_transaction(connection):
        connection.exec_driver_sql("BEGIN")


def build_engine(
    url: str,
    pooled: bool = True,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    echo: bool = False,
) -> Engine:
    """
    Create an engine for the given connection string.

    SQLite never pools connections (an in-memory database uses a single
    static connection so every handle sees the same data) and runs DDL
    inside real transactions. Server databases use a pre-pinged QueuePool
    in pooled mode and NullPool otherwise.
    """
    if _is_sqlite(url):
        if _is_memory_sqlite(url):
            engine = create_engine(
                url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
            _use_sqlite_transactions(engine, file_pragmas=False)
            return engine

        # The database file itself is created on first connect
        Path(make_url(url).database).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},  # Handles hop between worker threads
            poolclass=NullPool,
        )
        _use_sqlite_transactions(engine, file_pragmas=True)
        return engine

    if not pooled:
        return create_engine(url, echo=echo, poolclass=NullPool)

    return create_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,  # Verify connection before usage
    )


def alembic_config(
    connection: Optional[Connection] = None,
    script_location: Path = ALEMBIC_DIR,
) -> Config:
    """
    Build an Alembic config pointing at the project's migration scripts.

    When a connection is given, env.py runs the migrations on it instead of
    opening its own engine, and leaves logging configuration alone.
    """
    cfg = Config(str(ALEMBIC_INI)) if ALEMBIC_INI.exists() else Config()
    cfg.set_main_option("script_location", str(script_location))
    if connection is not None:
        cfg.attributes["connection"] = connection
        cfg.attributes["configure_logger"] = False
    return cfg


class DatabaseHandle:
    """
    Short-lived, exclusively owned connection to the database.

    Every operation is a coroutine; the blocking SQLAlchemy/Alembic work runs
    in a worker thread. Operations open the connection on demand. A handle
    must not be shared between concurrent operations.

    Usage:
        async with await factory.create_handle() as handle:
            pending = await handle.pending_migrations()
    """

    def __init__(self, engine: Engine, script_location: Path = ALEMBIC_DIR) -> None:
        self._engine = engine
        self._script_location = script_location
        self._connection: Optional[Connection] = None

    @property
    def is_open(self) -> bool:
        return self._connection is not None and not self._connection.closed

    async def __aenter__(self) -> "DatabaseHandle":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.close()
        return False

    # -------------------------------------------------------------------------
    # Public coroutine API
    # -------------------------------------------------------------------------

    async def open(self) -> None:
        await asyncio.to_thread(self._open)

    async def close(self) -> None:
        await asyncio.to_thread(self._close)

    async def ensure_schema_created(self) -> bool:
        """Create the schema if the database holds no tables. True when created."""
        return await asyncio.to_thread(self._ensure_schema_created)

    async def pending_migrations(self) -> Tuple[str, ...]:
        """Revisions not yet applied, oldest first."""
        return await asyncio.to_thread(self._pending_migrations)

    async def apply_migrations(self) -> Tuple[str, ...]:
        """Apply pending revisions one at a time. Returns the revisions applied."""
        return await asyncio.to_thread(self._apply_migrations)

    async def count(self, table_name: str) -> int:
        return await asyncio.to_thread(self._count, table_name)

    async def schema_state(self) -> SchemaState:
        return await asyncio.to_thread(self._schema_state)

    # -------------------------------------------------------------------------
    # Blocking implementations (run in worker threads)
    # -------------------------------------------------------------------------

    def _open(self) -> None:
        if not self.is_open:
            self._connection = self._engine.connect()

    def _close(self) -> None:
        if self._connection is not None:
            try:
                if self._connection.in_transaction():
                    self._connection.rollback()
            finally:
                self._connection.close()
                self._connection = None

    def _require_connection(self) -> Connection:
        self._open()
        assert self._connection is not None
        return self._connection

    def _config(self, connection: Connection) -> Config:
        return alembic_config(connection, script_location=self._script_location)

    def _existing_tables(self, connection: Connection) -> set[str]:
        return set(inspect(connection).get_table_names()) - {VERSION_TABLE}

    def _ensure_schema_created(self) -> bool:
        # Import models to ensure they are registered with Base
        from . import models  # noqa: F401

        connection = self._require_connection()
        if self._existing_tables(connection):
            connection.rollback()
            return False

        try:
            Base.metadata.create_all(bind=connection)
            # A schema built from the models is at the migration head already
            command.stamp(self._config(connection), "heads")
            connection.commit()
        except Exception:
            connection.rollback()
            raise

        LOGGER.debug("Created %d tables from model metadata", len(Base.metadata.tables))
        return True

    def _revision_history(self, connection: Connection) -> list[str]:
        script = ScriptDirectory.from_config(self._config(connection))
        if len(script.get_heads()) > 1:
            raise MigrationError(f"Migration history has multiple heads: {script.get_heads()}")
        history = [revision.revision for revision in script.walk_revisions()]
        history.reverse()  # walk_revisions() goes head -> base
        return history

    def _current_revision(self, connection: Connection) -> Optional[str]:
        heads = MigrationContext.configure(connection).get_current_heads()
        if len(heads) > 1:
            raise MigrationError(f"Database is stamped with multiple heads: {heads}")
        return heads[0] if heads else None

    def _pending_migrations(self) -> Tuple[str, ...]:
        connection = self._require_connection()
        try:
            history = self._revision_history(connection)
            current = self._current_revision(connection)
        finally:
            if connection.in_transaction():
                connection.rollback()

        if current is None:
            return tuple(history)
        if current not in history:
            raise MigrationError(
                f"Database revision '{current}' is not part of the migration history",
                revision=current,
            )
        return tuple(history[history.index(current) + 1:])

    def _apply_migrations(self) -> Tuple[str, ...]:
        pending = self._pending_migrations()
        connection = self._require_connection()
        applied: list[str] = []

        for revision in pending:
            if connection.in_transaction():
                connection.commit()
            try:
                command.upgrade(self._config(connection), revision)
                if connection.in_transaction():
                    connection.commit()
            except Exception as exc:
                if connection.in_transaction():
                    connection.rollback()
                raise MigrationError(
                    f"Migration '{revision}' failed after {len(applied)} of "
                    f"{len(pending)} applied: {exc}",
                    revision=revision,
                    applied=applied,
                ) from exc
            applied.append(revision)
            LOGGER.debug("Applied migration %s", revision)

        return tuple(applied)

    def _count(self, table_name: str) -> int:
        from . import models  # noqa: F401

        table = Base.metadata.tables.get(table_name)
        if table is None:
            raise VerificationError(f"Unknown table '{table_name}'", table=table_name)

        connection = self._require_connection()
        try:
            return connection.execute(select(func.count()).select_from(table)).scalar_one()
        finally:
            connection.rollback()

    def _schema_state(self) -> SchemaState:
        connection = self._require_connection()
        try:
            exists = bool(self._existing_tables(connection))
        finally:
            connection.rollback()
        return SchemaState(database_exists=exists, pending_migrations=self._pending_migrations())


class PersistenceFactory:
    """
    Hands out independent database handles and sessions.

    The factory is safe to use concurrently; it owns the engine (and with it
    the connection pool) and nothing else. Each handle or session it creates
    belongs to exactly one caller.
    """

    def __init__(self, engine: Engine, script_location: Path = ALEMBIC_DIR) -> None:
        self.engine = engine
        self.script_location = script_location
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    @classmethod
    def from_url(cls, url: str, pooled: bool = True, **engine_options) -> "PersistenceFactory":
        return cls(build_engine(url, pooled=pooled, **engine_options))

    @classmethod
    def from_settings(cls, settings: "Settings", pooled: bool = True) -> "PersistenceFactory":
        """
        Build a factory from the configured connection string.

        Raises:
            ConfigurationError: If the connection string is missing.
        """
        return cls.from_url(
            settings.get_connection_string(),
            pooled=pooled,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            echo=settings.db_echo,
        )

    @property
    def url(self) -> str:
        """Connection URL with the password hidden."""
        return self.engine.url.render_as_string(hide_password=True)

    async def create_handle(self) -> DatabaseHandle:
        return DatabaseHandle(self.engine, script_location=self.script_location)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for ORM sessions used by business operations.

        Yields:
            SQLAlchemy Session object, committed on success.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        """Close pooled connections. Safe to call more than once."""
        self.engine.dispose()
