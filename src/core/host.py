"""Runtime host: owns the application's services and their lifetimes.

Lifetimes:
- singleton: one instance per host (persistence factories, main window)
- scoped: one instance per ``host.scope()`` block (readiness orchestrator)
- transient: a new instance per request (database handles, sessions)

Services are released in reverse construction order when the host stops.
"""
from __future__ import annotations

import asyncio
import enum
import inspect
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, List, Optional, Set, Tuple

from .config import Settings
from .db import PersistenceFactory
from .exceptions import ConfigurationError, HostStartError
from .logging_config import LogSink, get_logger

if TYPE_CHECKING:
    from services.readiness import ReadinessOrchestrator
    from ui.main_window import MainWindow

LOGGER = get_logger(__name__)

FactoryBuilder = Callable[[Settings, bool], PersistenceFactory]
WindowFactory = Callable[["RuntimeHost"], Any]


class HostState(str, enum.Enum):
    """Host lifecycle states."""
    CREATED = "created"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


def _default_window_factory(host: "RuntimeHost") -> "MainWindow":
    from ui.main_window import MainWindow

    return MainWindow(host.settings, host.persistence())


class ServiceScope:
    """Services that live for one logical operation."""

    def __init__(self, host: "RuntimeHost") -> None:
        self._host = host
        self._orchestrator: Optional["ReadinessOrchestrator"] = None

    def readiness(self) -> "ReadinessOrchestrator":
        """The scope's readiness orchestrator (created on first use)."""
        if self._orchestrator is None:
            from services.readiness import ReadinessOrchestrator

            self._orchestrator = ReadinessOrchestrator(
                self._host.bootstrap_persistence(), log_sink=self._host.log_sink
            )
            self._host._track(self._orchestrator)
        return self._orchestrator

    def close(self) -> None:
        if self._orchestrator is not None:
            self._host._untrack(self._orchestrator)
            self._orchestrator = None


class RuntimeHost:
    """
    Owns construction and lifetime of the application services.

    ``start()`` must complete before anything is resolved. ``stop()`` is
    idempotent and may be called on a host that never started. A start
    failure is fatal: the host releases what it built and raises
    HostStartError (or ConfigurationError for a missing setting).
    """

    def __init__(
        self,
        settings: Settings,
        log_sink: Optional[LogSink] = None,
        window_factory: WindowFactory = _default_window_factory,
        factory_builder: FactoryBuilder = PersistenceFactory.from_settings,
    ) -> None:
        self.settings = settings
        self.log_sink = log_sink or LogSink(LOGGER)
        self._window_factory = window_factory
        self._factory_builder = factory_builder
        self._state = HostState.CREATED
        self._lifecycle_lock = asyncio.Lock()
        # (name, release callable) in construction order
        self._resources: List[Tuple[str, Callable[[], Any]]] = []
        self._persistence: Optional[PersistenceFactory] = None
        self._bootstrap_persistence: Optional[PersistenceFactory] = None
        self._main_window: Any = None
        self._orchestrators: Set["ReadinessOrchestrator"] = set()

    @property
    def state(self) -> HostState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == HostState.RUNNING

    async def __aenter__(self) -> "RuntimeHost":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.stop()
        return False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        async with self._lifecycle_lock:
            if self._state == HostState.RUNNING:
                return
            if self._state != HostState.CREATED:
                raise HostStartError(f"Runtime host cannot start from state '{self._state.value}'")

            self._state = HostState.STARTING
            self.log_sink.info("Starting runtime host...")
            try:
                # Pooled factory for business operations
                self._persistence = await asyncio.to_thread(self._factory_builder, self.settings, True)
                self._register("persistence", self._persistence.dispose)
                # Non-pooled factory for bootstrap, so each stage really releases its connection
                self._bootstrap_persistence = await asyncio.to_thread(
                    self._factory_builder, self.settings, False
                )
                self._register("bootstrap persistence", self._bootstrap_persistence.dispose)
            except Exception as exc:
                await self._release_all()
                self._state = HostState.STOPPED
                if isinstance(exc, (ConfigurationError, HostStartError)):
                    raise
                raise HostStartError(f"Runtime host failed to start: {exc}") from exc

            self._state = HostState.RUNNING
            self.log_sink.info("Runtime host started.", database=self._persistence.url)

    async def stop(self) -> None:
        """Release every service in reverse order. Safe to call repeatedly."""
        async with self._lifecycle_lock:
            if self._state in (HostState.CREATED, HostState.STOPPED):
                return

            self._state = HostState.STOPPING
            self.log_sink.info("Stopping runtime host...")

            # Let an in-flight bootstrap stage finish before tearing down
            for orchestrator in list(self._orchestrators):
                orchestrator.request_shutdown()
                await orchestrator.wait_idle()

            await self._release_all()
            self._state = HostState.STOPPED
            self.log_sink.info("Runtime host stopped.")

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def persistence(self) -> PersistenceFactory:
        """Shared factory; every handle or session it creates is independent."""
        self._require_running()
        assert self._persistence is not None
        return self._persistence

    def bootstrap_persistence(self) -> PersistenceFactory:
        self._require_running()
        assert self._bootstrap_persistence is not None
        return self._bootstrap_persistence

    def main_window(self) -> Any:
        """The single main window instance for this host."""
        self._require_running()
        if self._main_window is None:
            self._main_window = self._window_factory(self)
            close = getattr(self._main_window, "close", None)
            if close is not None:
                self._register("main window", close)
        return self._main_window

    @asynccontextmanager
    async def scope(self) -> AsyncIterator[ServiceScope]:
        self._require_running()
        scope = ServiceScope(self)
        try:
            yield scope
        finally:
            scope.close()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_running(self) -> None:
        if self._state != HostState.RUNNING:
            raise RuntimeError(f"Runtime host is not running (state: {self._state.value})")

    def _register(self, name: str, release: Callable[[], Any]) -> None:
        self._resources.append((name, release))

    def _track(self, orchestrator: "ReadinessOrchestrator") -> None:
        self._orchestrators.add(orchestrator)

    def _untrack(self, orchestrator: "ReadinessOrchestrator") -> None:
        self._orchestrators.discard(orchestrator)

    async def _release_all(self) -> None:
        while self._resources:
            name, release = self._resources.pop()
            try:
                result = release()
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                self.log_sink.error(f"Failed to release {name}", exc)
        self._orchestrators.clear()
        self._persistence = None
        self._bootstrap_persistence = None
        self._main_window = None
