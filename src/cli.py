#!/usr/bin/env python3
"""Command Line Interface for the Poultry POS desktop application.

Usage:
    poultry-pos run        # Start the application (readiness checks, then main window)
    poultry-pos init-db    # Run the readiness checks without opening the window
    poultry-pos check      # Test the database connection only
    poultry-pos status     # Show schema state and pending migrations
    poultry-pos info       # Show configuration
"""
from __future__ import annotations

import asyncio

import typer

from core.bootstrap import ApplicationShell, ExitCode
from core.config import get_settings
from core.exceptions import PoultryPOSError
from core.host import RuntimeHost
from core.logging_config import LogSink, get_logger, setup_logging

LOGGER = get_logger(__name__)

app = typer.Typer(help="Poultry POS CLI")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
) -> None:
    """Poultry Slaughter POS - startup and database maintenance commands."""
    setup_logging(level="DEBUG" if verbose else "INFO")


def _exit(code: int) -> None:
    if code != ExitCode.OK:
        raise typer.Exit(code=int(code))


# =============================================================================
# Application
# =============================================================================


@app.command("run")
def run_app() -> None:
    """Start the application: readiness checks, then the main window."""
    _exit(asyncio.run(ApplicationShell().run(show_ui=True)))


@app.command("init-db")
def init_db() -> None:
    """Bring the database to a usable state without opening the window."""
    shell = ApplicationShell(notifier=lambda cause, language: typer.echo(f"Error: {cause}", err=True))
    code = asyncio.run(shell.run(show_ui=False))
    outcome = shell.outcome
    if outcome is not None and outcome.succeeded:
        typer.echo(f"Database ready ({outcome.duration_ms:.0f} ms)")
        if outcome.schema_created:
            typer.echo("Schema created")
        for revision in outcome.applied_migrations:
            typer.echo(f"Applied migration: {revision}")
        for table, count in outcome.report.items():
            typer.echo(f"  {table}: {count}")
    _exit(code)


# =============================================================================
# Diagnostics
# =============================================================================


async def _check() -> bool:
    async with RuntimeHost(get_settings(), LogSink(LOGGER)) as host:
        async with host.scope() as scope:
            result = await scope.readiness().probe()
    if result.ok:
        typer.echo(f"Database connection OK ({result.duration_ms:.0f} ms)")
    else:
        typer.echo(f"Database connection FAILED: {result.error}", err=True)
    return result.ok


@app.command("check")
def check() -> None:
    """Test the database connection."""
    try:
        ok = asyncio.run(_check())
    except PoultryPOSError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=int(ExitCode.STARTUP_ERROR))
    if not ok:
        raise typer.Exit(code=int(ExitCode.BOOTSTRAP_FAILED))


async def _status() -> None:
    async with RuntimeHost(get_settings(), LogSink(LOGGER)) as host:
        async with await host.persistence().create_handle() as handle:
            state = await handle.schema_state()
    typer.echo(f"Database exists:    {state.database_exists}")
    typer.echo(f"Pending migrations: {len(state.pending_migrations)}")
    for revision in state.pending_migrations:
        typer.echo(f"  - {revision}")


@app.command("status")
def status() -> None:
    """Show schema state and pending migrations."""
    try:
        asyncio.run(_status())
    except Exception as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=int(ExitCode.STARTUP_ERROR))


@app.command("info")
def info() -> None:
    """Show current configuration."""
    settings = get_settings()
    typer.echo("Poultry POS Configuration")
    typer.echo("=" * 40)
    typer.echo(f"Environment: {settings.environment}")
    typer.echo(f"Connection: {settings.connection_name}")
    for name, url in settings.masked_connection_strings().items():
        typer.echo(f"  {name}: {url}")
    typer.echo(f"Log Level: {settings.log_level}")
    typer.echo(f"Log Directory: {settings.log_dir}")
    typer.echo(f"UI Language: {settings.ui_language}")


if __name__ == "__main__":
    app()
