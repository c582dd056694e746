"""Console output for the UnpackAI CLI.

One rich Console is shared by every command. Errors derived from
UnpackAIError are shown as a panel with their code, cause and fixes; job
records and queue statistics are shown as tables.
"""

from __future__ import annotations

import json
import traceback
from typing import Iterable, Optional

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from unpackai.core.exceptions import get_root_cause
from unpackai.core.jobs import Job, JobStatus, QueueStats

STATUS_STYLES = {
    JobStatus.PENDING: "yellow",
    JobStatus.PROCESSING: "cyan",
    JobStatus.COMPLETED: "green",
    JobStatus.FAILED: "red",
}
MAX_RESULT_CHARS = 2000

_console: Optional[Console] = None
_verbose = False


def get_console() -> Console:
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_verbose_mode(enabled: bool) -> None:
    """Show tracebacks under error panels (--verbose)."""
    global _verbose
    _verbose = enabled


def is_verbose_mode() -> bool:
    return _verbose


def tip(message: str) -> None:
    get_console().print(f"  [dim]Tip: {message}[/dim]")


def status_markup(status: JobStatus) -> str:
    style = STATUS_STYLES[status]
    return f"[{style}]{status.value}[/{style}]"


def job_table(job: Job) -> Table:
    """Key/value table of a job record."""
    table = Table(title=f"Job {job.id}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    def stamp(value) -> str:
        return value.isoformat() if value else "-"

    table.add_row("Status", status_markup(job.status))
    table.add_row("Owner", job.owner_id)
    table.add_row("Created", stamp(job.created_at))
    table.add_row("Started", stamp(job.started_at))
    table.add_row("Completed", stamp(job.completed_at))
    table.add_row("Worker", job.worker_id or "-")
    if job.result is not None:
        table.add_row("Result", json.dumps(job.result, indent=2)[:MAX_RESULT_CHARS])
    if job.error is not None:
        table.add_row("Error", Text(job.error, style="red"))
    return table


def stats_table(stats: QueueStats, overload_threshold: int) -> Table:
    health = stats.health(overload_threshold)
    style = "green" if health == "healthy" else "red"

    table = Table(title="Queue Statistics", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Pending jobs", str(stats.pending_count))
    table.add_row("Max concurrent jobs", str(stats.max_concurrency))
    table.add_row("Overload threshold", str(overload_threshold))
    table.add_row("Health", f"[{style}]{health}[/{style}]")
    return table


def _fix_list(fixes: Iterable[str]) -> Text:
    text = Text()
    for fix in fixes:
        text.append(f"  - {fix}\n", style="green")
    return text


def render_error(exc: BaseException, context: str = "") -> None:
    """
    Print an error panel for exc.

    UnpackAIError subclasses contribute error_code, why_it_happened and
    how_to_fix; other exceptions get generic text. In verbose mode the
    traceback follows the panel.
    """
    code = getattr(exc, "error_code", "UA-ERR-999")
    why = getattr(exc, "why_it_happened", "An unexpected error occurred")
    fixes = getattr(exc, "how_to_fix", ["Re-run with --verbose for details"])

    parts = []
    if context:
        parts.append(Text(context, style="dim"))
    parts.append(Text(str(exc), style="bold red"))
    root = get_root_cause(exc)
    if root is not exc and str(root) != str(exc):
        parts.append(Text.assemble(("Caused by: ", "bold yellow"), (str(root), "yellow")))
    parts.append(Text.assemble(("Why: ", "bold cyan"), (why, "cyan")))
    parts.append(Text("How to fix:", style="bold green"))
    parts.append(_fix_list(fixes))

    console = get_console()
    console.print(
        Panel(
            Group(*parts),
            title=f"[bold red]{code}[/bold red]",
            border_style="red",
            padding=(1, 2),
        )
    )
    if _verbose:
        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        console.print(trace, style="dim", markup=False, highlight=False)
