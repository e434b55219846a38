"""Console rendering and progress helpers for the docupload CLI."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from .models import ResolveFailure, UploadOutcome

console = Console()


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]docupload[/bold green]",
        subtitle="[dim]batch upload[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_dropped(failures: List[ResolveFailure]) -> None:
    for failure in failures:
        console.print(f"[yellow]Skipped:[/yellow] {failure.name} ({failure.error})")


def describe_outcome(outcome: UploadOutcome) -> str:
    if outcome.success:
        message = "Uploaded"
        if outcome.dropped:
            message += f" ({len(outcome.dropped)} file(s) skipped)"
        return message
    kind = outcome.error_kind.value if outcome.error_kind else "error"
    message = f"Upload failed [{kind}]: {outcome.detail}"
    if outcome.body:
        message += f"\n{outcome.body.strip()}"
    return message


class BatchUploadProgress:
    """
    Batch upload progress renderer.

    Progress arrives as a fraction of the encoded body; the bar shows it
    against the batch's byte size.
    """

    def __init__(self, file_count: int, total_bytes: int):
        self.file_count = file_count
        self.total_bytes = max(total_bytes, 1)
        self._started = False
        self._task_id: Optional[TaskID] = None
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            expand=False,
            console=console,
        )

    def start(self) -> None:
        if self._started:
            return
        self._progress.start()
        self._task_id = self._progress.add_task(
            "upload",
            label=f"{self.file_count} file(s), {_human_size(self.total_bytes)}",
            total=self.total_bytes,
        )
        self._started = True

    def update(self, fraction: float) -> None:
        if not self._started:
            self.start()
        self._progress.update(self._task_id, completed=int(fraction * self.total_bytes))

    def complete(self, outcome: UploadOutcome) -> None:
        if self._started:
            self._progress.stop()
        if outcome.success:
            console.print(f"[green]{describe_outcome(outcome)}[/green]")
        elif outcome.cancelled:
            console.print(f"[yellow]{describe_outcome(outcome)}[/yellow]")
        else:
            console.print(f"[red]{describe_outcome(outcome)}[/red]")
