"""UnpackAI CLI - Main application entry point.

Registers the job queue commands and the global options.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from unpackai.cli.console import set_verbose_mode
from unpackai.cli.jobs import (
    cleanup_command,
    serve_command,
    stats_command,
    status_command,
    submit_command,
    worker_command,
)
from unpackai.core.logging import configure_logging

# Create main Typer application
app = typer.Typer(
    name="unpackai",
    help="Background job queue for the UnpackAI news refresh pipeline",
    add_completion=False,
    pretty_exceptions_enable=False,
)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V", help="Show version and exit"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Debug logging and full tracebacks"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config-file", help="YAML configuration file"
    ),
) -> None:
    """UnpackAI - queue, run and inspect content refresh jobs."""
    if version:
        from unpackai import __version__

        typer.echo(f"UnpackAI {__version__}")
        raise typer.Exit()

    if verbose:
        configure_logging(level="DEBUG")
        set_verbose_mode(True)

    ctx.obj = {"config_path": config_file}

    # If no command provided, show help
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


app.command("submit", rich_help_panel="Jobs")(submit_command)
app.command("status", rich_help_panel="Jobs")(status_command)
app.command("stats", rich_help_panel="Jobs")(stats_command)
app.command("cleanup", rich_help_panel="Maintenance")(cleanup_command)
app.command("worker", rich_help_panel="Processes")(worker_command)
app.command("serve", rich_help_panel="Processes")(serve_command)


def cli_main() -> None:
    """Entry point for console_scripts."""
    app()


if __name__ == "__main__":
    cli_main()
