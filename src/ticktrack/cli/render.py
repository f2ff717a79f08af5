"""Rich and JSON rendering for tick command output."""

import json
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ticktrack.core.constants import Severity, TaskStatus
from ticktrack.doctor.report import DiagnosticReport
from ticktrack.graph.queries import TaskDetail, TaskRow, TaskStats

console = Console()
err_console = Console(stderr=True)

STATUS_STYLES = {
    TaskStatus.OPEN: "cyan",
    TaskStatus.IN_PROGRESS: "yellow",
    TaskStatus.DONE: "green",
    TaskStatus.CANCELLED: "dim",
}


def print_json(data: Any) -> None:
    """Write JSON to stdout without Rich wrapping."""
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


def print_error(message: str) -> None:
    """Write an error line to stderr."""
    err_console.print(f"Error: {message}", style="red", markup=False, highlight=False)


def status_text(status: TaskStatus) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.value}[/{style}]"


def task_table(rows: list[TaskRow], title: str | None = None) -> Table:
    """Build a table of tasks."""
    table = Table(title=title)
    table.add_column("ID", style="bold", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Pri", justify="right")
    table.add_column("Title")
    for row in rows:
        table.add_row(row.id, status_text(row.status), str(row.priority), escape(row.title))
    return table


def print_tasks(rows: list[TaskRow], title: str, quiet: bool = False) -> None:
    """Print a task listing, or only IDs when quiet."""
    if quiet:
        for row in rows:
            typer.echo(row.id)
        return
    if not rows:
        console.print("[dim]No tasks found.[/dim]")
        return
    console.print(task_table(rows, title=title))


def print_detail(detail: TaskDetail) -> None:
    """Print one task with its relationships."""
    task = detail.task
    console.print(f"[bold]{task.id}[/bold] {escape(task.title)}")
    console.print(f"Status:   {status_text(task.status)}")
    console.print(f"Priority: {task.priority}")
    if task.parent:
        parent_label = f"{task.parent} {escape(detail.parent_title)}" if detail.parent_title else task.parent
        console.print(f"Parent:   {parent_label}")
    console.print(f"Created:  {task.created}")
    console.print(f"Updated:  {task.updated}")
    if task.closed:
        console.print(f"Closed:   {task.closed}")

    if detail.blockers:
        console.print("\n[bold]Blocked by:[/bold]")
        for blocker in detail.blockers:
            console.print(f"  {blocker.id} {escape(blocker.title)} ({status_text(blocker.status)})")
    if detail.children:
        console.print("\n[bold]Children:[/bold]")
        for child in detail.children:
            console.print(f"  {child.id} {escape(child.title)} ({status_text(child.status)})")
    if task.description:
        console.print("\n[bold]Description:[/bold]")
        console.print(task.description, markup=False)


def print_stats(stats: TaskStats) -> None:
    """Print statistics as two small tables."""
    console.print(f"[bold]Total:[/bold] {stats.total}")

    status_table = Table(title="Status")
    status_table.add_column("Status")
    status_table.add_column("Count", justify="right")
    for status in TaskStatus:
        status_table.add_row(status_text(status), str(getattr(stats, status.value)))
    status_table.add_row("[bold]ready[/bold]", str(stats.ready))
    status_table.add_row("[bold]blocked[/bold]", str(stats.blocked))
    console.print(status_table)

    priority_table = Table(title="Priority")
    priority_table.add_column("Priority")
    priority_table.add_column("Count", justify="right")
    for level, count in sorted(stats.by_priority.items()):
        priority_table.add_row(f"P{level}", str(count))
    console.print(priority_table)


def print_report(report: DiagnosticReport) -> None:
    """Print doctor results, one line per check result."""
    for result in report.results:
        if result.passed:
            console.print(f"[green]✓[/green] {result.name}: OK")
            continue
        mark = "[red]✗[/red]" if result.severity == Severity.ERROR else "[yellow]![/yellow]"
        console.print(f"{mark} {result.name}: ", end="")
        console.print(result.details, markup=False, highlight=False)
        if result.suggestion:
            console.print(f"    {result.suggestion}", style="dim", markup=False)

    summary = f"{report.error_count} error(s), {report.warning_count} warning(s)"
    style = "red" if report.has_errors else "yellow" if report.warning_count else "green"
    console.print(f"\n[{style}]{summary}[/{style}]")
