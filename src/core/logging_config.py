"""Centralized logging configuration with JSON structured logging support."""
from __future__ import annotations

import copy
import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


# Default format for text logs
TEXT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Handlers installed by setup_logging(), closed again by shutdown_logging()
_INSTALLED_HANDLERS: List[logging.Handler] = []


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.

    One JSON object per line, suitable for shipping the daily log files
    to a log aggregation system.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        # Common context fields
        if hasattr(record, "stage"):
            log_data["stage"] = record.stage
        if hasattr(record, "run_id"):
            log_data["run_id"] = record.run_id

        return json.dumps(log_data, default=str)


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that allows adding context to log messages.

    Usage:
        logger = ContextLogger(logging.getLogger(__name__), {"run_id": "abc123"})
        logger.info("Bootstrap started")  # Will include run_id in output
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple[str, Dict[str, Any]]:
        """Add context to log record."""
        extra = dict(kwargs.get("extra") or {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def _daily_file_namer(default_name: str) -> str:
    # pos-log.txt.2026-10-18 -> pos-log-2026-10-18.txt
    path = Path(default_name)
    stem, _, date = path.name.partition(".txt.")
    if not date:
        return default_name
    return str(path.with_name(f"{stem}-{date}.txt"))


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Union[str, Path]] = None,
    json_format: bool = False,
    file_prefix: str = "pos-log",
    retention_days: int = 31,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_dir: Optional directory for the daily rolling log file.
        json_format: If True, use JSON structured logging.
        file_prefix: Base name of the log file inside log_dir.
        retention_days: Number of rotated daily files to keep.
    """
    shutdown_logging()
    handlers: list[logging.Handler] = []

    if json_format:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(TEXT_LOG_FORMAT, DATE_FORMAT)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    # Daily rolling file handler (optional)
    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            directory / f"{file_prefix}.txt",
            when="midnight",
            backupCount=retention_days,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y-%m-%d"
        file_handler.namer = _daily_file_namer
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True,  # Overwrite any existing configuration
    )
    _INSTALLED_HANDLERS.extend(handlers)

    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("alembic").setLevel(logging.INFO)


def shutdown_logging() -> None:
    """Flush and close the handlers installed by setup_logging()."""
    root = logging.getLogger()
    while _INSTALLED_HANDLERS:
        handler = _INSTALLED_HANDLERS.pop()
        root.removeHandler(handler)
        try:
            handler.flush()
        except (OSError, ValueError) as exc:
            # Stream already closed by its owner
            sys.stderr.write(f"[LOG ERROR] could not flush {handler!r}: {exc}\n")
        handler.close()


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Name of the logger (usually __name__).

    Returns:
        Configured logger instance.
    """
    return logging.getLogger(name)


class LogSink:
    """
    Narrow logging surface handed to the startup components.

    Wraps a standard logger so callers pass structured fields as keyword
    arguments. A failure inside logging is reported on stderr and never
    propagates to the caller.
    """

    def __init__(self, logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None) -> None:
        self.logger = logger or logging.getLogger("poultry_pos")

    def info(self, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, message, None, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, message, None, fields)

    def error(self, message: str, cause: Optional[BaseException] = None, **fields: Any) -> None:
        self._emit(logging.ERROR, message, cause, fields)

    def fatal(self, message: str, cause: Optional[BaseException] = None) -> None:
        self._emit(logging.CRITICAL, message, cause, {})

    def bind(self, **context: Any) -> "LogSink":
        """
        Return a sink whose records all carry the given context.

        Example:
            run_log = sink.bind(run_id="3f9c2a1b")
        """
        bound = copy.copy(self)
        if isinstance(self.logger, ContextLogger):
            bound.logger = ContextLogger(self.logger.logger, {**self.logger.extra, **context})
        else:
            bound.logger = ContextLogger(self.logger, context)
        return bound

    def flush(self) -> None:
        """Flush and close the process log handlers. Called once at exit."""
        try:
            shutdown_logging()
        except Exception as exc:  # noqa: BLE001
            sys.stderr.write(f"[LOG ERROR] flush failed: {exc}\n")

    def _emit(
        self,
        level: int,
        message: str,
        cause: Optional[BaseException],
        fields: Dict[str, Any],
    ) -> None:
        if cause is not None:
            message = f"{message}: {cause}"
        extra: Dict[str, Any] = {}
        if fields:
            extra["extra_data"] = fields
            if "stage" in fields:
                extra["stage"] = fields["stage"]
        exc_info = (type(cause), cause, cause.__traceback__) if cause is not None else None
        try:
            self.logger.log(level, message, exc_info=exc_info, extra=extra or None)
        except Exception as exc:  # noqa: BLE001
            sys.stderr.write(f"[LOG ERROR] could not write log record ({exc}): {message}\n")


__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "JSONFormatter",
    "ContextLogger",
    "LogSink",
]
