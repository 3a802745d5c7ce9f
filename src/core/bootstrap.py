"""Application shell: startup sequencing and terminal failure handling.

Sequence:
    logging -> configuration -> host start -> readiness run (scoped)
    -> main window on success, failure notice otherwise.

The host is stopped and the logs flushed on every exit path, including
exceptions raised after the main window opened.
"""
from __future__ import annotations

import asyncio
import enum
from typing import Callable, List, Optional

from .config import Settings, get_settings
from .exceptions import ConfigurationError
from .host import RuntimeHost
from .logging_config import LogSink, get_logger, setup_logging

LOGGER = get_logger(__name__)


class ShellState(str, enum.Enum):
    """Application shell lifecycle."""
    NOT_STARTED = "not_started"
    STARTING = "starting"
    BOOTSTRAP_RUNNING = "bootstrap_running"
    READY = "ready"
    FAILED = "failed"
    STOPPING = "stopping"
    STOPPED = "stopped"


# FAILED and STOPPED are terminal
ALLOWED_TRANSITIONS = {
    ShellState.NOT_STARTED: {ShellState.STARTING},
    ShellState.STARTING: {ShellState.BOOTSTRAP_RUNNING, ShellState.FAILED},
    ShellState.BOOTSTRAP_RUNNING: {ShellState.READY, ShellState.FAILED},
    ShellState.READY: {ShellState.STOPPING},
    ShellState.FAILED: set(),
    ShellState.STOPPING: {ShellState.STOPPED},
    ShellState.STOPPED: set(),
}


class ExitCode(enum.IntEnum):
    """Process exit codes."""
    OK = 0
    BOOTSTRAP_FAILED = 1
    STARTUP_ERROR = 2
    CONFIGURATION_ERROR = 3


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Console + daily rolling file logging, from settings once they are loaded."""
    if settings is None:
        setup_logging(level="INFO")
        return
    setup_logging(
        level=settings.log_level,
        log_dir=settings.log_dir,
        json_format=settings.log_format == "json",
        file_prefix=settings.log_file_prefix,
        retention_days=settings.log_retention_days,
    )


class ApplicationShell:
    """
    Top-level process sequencing.

    Usage:
        exit_code = asyncio.run(ApplicationShell().run())
    """

    def __init__(
        self,
        settings_loader: Callable[[], Settings] = get_settings,
        host_factory: Callable[[Settings, LogSink], RuntimeHost] = RuntimeHost,
        notifier: Optional[Callable[[object, str], None]] = None,
        logging_setup: Callable[[Optional[Settings]], None] = configure_logging,
        log_sink: Optional[LogSink] = None,
    ) -> None:
        if notifier is None:
            from ui.notice import show_failure_notice

            notifier = show_failure_notice
        self._settings_loader = settings_loader
        self._host_factory = host_factory
        self._notifier = notifier
        self._logging_setup = logging_setup
        self._log = log_sink or LogSink(LOGGER)
        self._language = "ar"
        self.state = ShellState.NOT_STARTED
        self.history: List[ShellState] = [ShellState.NOT_STARTED]
        self.host: Optional[RuntimeHost] = None
        self.outcome = None

    def _transition(self, new_state: ShellState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal shell transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    async def run(self, show_ui: bool = True) -> int:
        """Run the whole application and return the process exit code."""
        self._transition(ShellState.STARTING)
        try:
            self._logging_setup(None)
            return await self._start(show_ui)
        except ConfigurationError as exc:
            return self._abort("Application configuration is invalid", exc, ExitCode.CONFIGURATION_ERROR)
        except Exception as exc:
            return self._abort("Application startup failed", exc, ExitCode.STARTUP_ERROR)
        finally:
            await self._shutdown()

    async def _start(self, show_ui: bool) -> int:
        settings = self._settings_loader()
        self._language = settings.ui_language
        self._logging_setup(settings)
        # A missing connection string fails here, before any database contact
        settings.get_connection_string()
        self._log.info("Configuration loaded.", environment=settings.environment)

        self.host = self._host_factory(settings, self._log)
        await self.host.start()

        self._transition(ShellState.BOOTSTRAP_RUNNING)
        async with self.host.scope() as scope:
            self.outcome = await scope.readiness().initialize()

        if not self.outcome.succeeded:
            return self._abort(
                f"Database initialization failed at stage {self.outcome.failed_stage.value}",
                self.outcome.error,
                ExitCode.BOOTSTRAP_FAILED,
            )

        self._transition(ShellState.READY)
        if show_ui:
            self.host.main_window().show()
        return ExitCode.OK

    def _abort(self, message: str, cause: Optional[BaseException], code: ExitCode) -> int:
        self._log.fatal(message, cause)
        if self.state != ShellState.READY:
            self._transition(ShellState.FAILED)
        try:
            self._notifier(cause if cause is not None else message, self._language)
        except Exception as exc:
            self._log.error("Could not show the failure notice", exc)
        return code

    async def _shutdown(self) -> None:
        if self.state == ShellState.READY:
            self._transition(ShellState.STOPPING)
        try:
            if self.host is not None:
                await self.host.stop()
        except Exception as exc:
            self._log.error("Runtime host did not stop cleanly", exc)
        finally:
            if self.state == ShellState.STOPPING:
                self._transition(ShellState.STOPPED)
            self._log.flush()


def main(show_ui: bool = True) -> int:
    """Process entry point."""
    return asyncio.run(ApplicationShell().run(show_ui=show_ui))
