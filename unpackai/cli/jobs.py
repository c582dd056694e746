"""Job queue commands.

Submit jobs, inspect them, run maintenance and run the worker process.

Examples:
    unpackai submit --owner user-1 --config '{"maxResults": 5}'
    unpackai status job_1718000000000_ab12cd34ef56
    unpackai stats
    unpackai cleanup --retention-hours 12
    unpackai worker --workers 4
    unpackai serve --port 8000
"""

from __future__ import annotations

import asyncio
import json
import os
from datetime import timedelta
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer

from unpackai.cli.console import (
    get_console,
    is_verbose_mode,
    job_table,
    render_error,
    stats_table,
    tip,
)
from unpackai.core.config import Config
from unpackai.core.config_loaders import CONFIG_PATH_ENV, load_config
from unpackai.core.exceptions import UnpackAIError
from unpackai.core.jobs import JobQueueService, create_job_queue, create_runtime
from unpackai.core.logging import configure_logging
from unpackai.pipeline.config import DEFAULT_REFRESH_CONFIG

T = TypeVar("T")


def _load(ctx: typer.Context) -> Config:
    config_path: Optional[Path] = (ctx.obj or {}).get("config_path")
    try:
        config = load_config(config_path)
    except UnpackAIError as e:
        render_error(e, context="While loading configuration")
        raise typer.Exit(code=1)
    if not is_verbose_mode():
        configure_logging(level=config.logging.level, log_file=config.log_path)
    return config


def _run(coro: Awaitable[T], context: str) -> T:
    """Run a coroutine, rendering UnpackAI errors and exiting with 1."""
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except UnpackAIError as e:
        render_error(e, context=context)
        raise typer.Exit(code=1)


async def _with_queue(
    config: Config, action: Callable[[JobQueueService], Awaitable[T]]
) -> T:
    """Run action against a queue built from config, then close the store."""
    queue = create_job_queue(config)
    try:
        return await action(queue)
    finally:
        await queue.store.close()


def submit_command(
    ctx: typer.Context,
    owner: str = typer.Option(..., "--owner", "-o", help="Owning user id"),
    config_json: Optional[str] = typer.Option(
        None, "--config", "-c", help="Refresh config as JSON (defaults if omitted)"
    ),
) -> None:
    """Queue a refresh job."""
    if config_json:
        try:
            payload = json.loads(config_json)
        except json.JSONDecodeError as e:
            raise typer.BadParameter(f"Invalid JSON: {e}", param_hint="--config")
    else:
        payload = dict(DEFAULT_REFRESH_CONFIG)

    config = _load(ctx)
    job_id = _run(
        _with_queue(config, lambda q: q.submit(owner, payload)),
        "While submitting job",
    )
    console = get_console()
    console.print(f"[green]Queued job[/green] {job_id}")
    if config.store.backend == "memory":
        tip("The memory backend is per-process; run a worker with store.backend: redis")


def status_command(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="Job id returned by submit"),
) -> None:
    """Show a job's status, result or error."""
    config = _load(ctx)
    job = _run(_with_queue(config, lambda q: q.get_status(job_id)), "While reading job")
    console = get_console()
    if job is None:
        console.print(f"[red]Job not found:[/red] {job_id}")
        raise typer.Exit(code=1)
    console.print(job_table(job))


def stats_command(ctx: typer.Context) -> None:
    """Show queue length and health."""
    config = _load(ctx)
    stats = _run(_with_queue(config, lambda q: q.stats()), "While reading queue stats")
    get_console().print(stats_table(stats, config.api.overload_threshold))


def cleanup_command(
    ctx: typer.Context,
    retention_hours: Optional[float] = typer.Option(
        None, "--retention-hours", help="Override the retention window"
    ),
) -> None:
    """Delete terminal jobs older than the retention window."""
    if retention_hours is not None and retention_hours <= 0:
        raise typer.BadParameter("must be > 0", param_hint="--retention-hours")
    config = _load(ctx)
    retention = timedelta(hours=retention_hours) if retention_hours else None
    deleted = _run(
        _with_queue(config, lambda q: q.cleanup(retention)), "While cleaning up"
    )
    get_console().print(f"Deleted {deleted} expired job(s)")


async def _run_worker(config: Config) -> None:
    runtime = create_runtime(config)
    runtime.start()
    try:
        await runtime.pool.wait()
    finally:
        await runtime.stop()


def worker_command(
    ctx: typer.Context,
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", min=1, help="Override queue.max_workers"
    ),
) -> None:
    """Run the worker pool and maintenance until interrupted."""
    config = _load(ctx)
    if workers is not None:
        config.queue.max_workers = workers

    console = get_console()
    console.print("\n[cyan]Starting UnpackAI workers[/cyan]")
    console.print(f"  Store: {config.store.backend}")
    console.print(f"  Workers: {config.queue.max_workers}")
    console.print(f"  Job timeout: {config.queue.job_timeout_seconds:g}s")
    console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

    try:
        _run(_run_worker(config), "While running workers")
    except KeyboardInterrupt:
        console.print("\n[yellow]Workers stopped[/yellow]")


def serve_command(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port number"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server (workers run inside it)."""
    config = _load(ctx)
    host = host or config.api.host
    port = port or config.api.port

    console = get_console()
    console.print("\n[cyan]Starting UnpackAI API Server[/cyan]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Reload: {reload}")
    console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

    config_path = (ctx.obj or {}).get("config_path")
    if config_path:
        # The server process builds its app through load_config().
        os.environ[CONFIG_PATH_ENV] = str(config_path)

    from unpackai.api.main import run_server

    try:
        run_server(host=host, port=port, reload=reload)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped[/yellow]")
