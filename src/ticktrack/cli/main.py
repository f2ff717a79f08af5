"""Main CLI entrypoint for tick."""

from pathlib import Path
from typing import Annotated, Optional

import typer

from ticktrack import __version__
from ticktrack.cli import dep
from ticktrack.cli.common import handle_errors, split_ids, state, store_session
from ticktrack.cli.render import (
    console,
    print_detail,
    print_json,
    print_report,
    print_stats,
    print_tasks,
)
from ticktrack.core.config import TickConfig
from ticktrack.core.constants import DEFAULT_LOG_LEVEL, TaskStatus
from ticktrack.core.exceptions import TickError
from ticktrack.doctor import run_diagnostics
from ticktrack.graph.queries import (
    blocked_tasks,
    compute_stats,
    get_task,
    list_tasks,
    ready_tasks,
)
from ticktrack.logging_setup import setup_logging
from ticktrack.storage.coordinator import discover_tick_dir, init_project
from ticktrack.tasks.operations import (
    create_task,
    remove_task,
    resolve_id,
    transition_task,
    update_task,
)

app = typer.Typer(
    name="tick",
    help="tick - a local task tracker with dependency-aware ready queues",
    no_args_is_help=True,
)

app.add_typer(dep.app, name="dep")


def _configured_log_level() -> str:
    try:
        return TickConfig.load(discover_tick_dir()).logging.level
    except TickError:
        return DEFAULT_LOG_LEVEL


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"tick {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show debug logging on stderr")
    ] = False,
    quiet: Annotated[
        bool, typer.Option("--quiet", "-q", help="Print only essential output")
    ] = False,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version"),
    ] = None,
) -> None:
    """Track tasks in a .tick directory."""
    state.verbose = verbose
    state.quiet = quiet
    setup_logging(level=_configured_log_level(), verbose=verbose)


@app.command("init")
def init_command() -> None:
    """Initialize a tick project in the current directory."""
    with handle_errors():
        tick_dir = init_project(Path.cwd())
    if not state.quiet:
        console.print(f"[green]Initialized tick in {tick_dir}[/green]")


@app.command("create")
def create_command(
    title: Annotated[str, typer.Argument(help="Task title")],
    priority: Annotated[
        Optional[int], typer.Option("--priority", "-p", help="Priority 0-4 (0 = critical)")
    ] = None,
    description: Annotated[
        str, typer.Option("--description", "-d", help="Task description")
    ] = "",
    blocked_by: Annotated[
        Optional[str], typer.Option("--blocked-by", help="Comma-separated blocker IDs")
    ] = None,
    blocks: Annotated[
        Optional[str], typer.Option("--blocks", help="Comma-separated IDs this task blocks")
    ] = None,
    parent: Annotated[Optional[str], typer.Option("--parent", help="Parent task ID")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Create a new task."""
    with store_session() as store:
        record = create_task(
            store,
            title,
            priority=priority,
            description=description,
            blocked_by=split_ids(blocked_by),
            blocks=split_ids(blocks),
            parent=parent,
        )
    if json_output:
        print_json(record.to_dict())
    elif state.quiet:
        typer.echo(record.id)
    else:
        console.print(f"Created [bold]{record.id}[/bold]: ", end="")
        console.print(record.title, markup=False, highlight=False)


@app.command("show")
def show_command(
    task_id: Annotated[str, typer.Argument(help="Task ID (full or partial)")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Show a task with its blockers and children."""
    with store_session() as store:
        resolved = resolve_id(store, task_id)
        detail = store.query(lambda cache: get_task(cache, resolved))
    if json_output:
        print_json(detail.to_dict())
    else:
        print_detail(detail)


@app.command("list")
def list_command(
    status: Annotated[
        Optional[TaskStatus], typer.Option("--status", "-s", help="Filter by status")
    ] = None,
    priority: Annotated[
        Optional[int], typer.Option("--priority", "-p", help="Filter by priority")
    ] = None,
    parent: Annotated[
        Optional[str], typer.Option("--parent", help="Only descendants of this task")
    ] = None,
    ready: Annotated[bool, typer.Option("--ready", help="Only ready tasks")] = False,
    blocked: Annotated[bool, typer.Option("--blocked", help="Only blocked tasks")] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List tasks."""
    if ready and blocked:
        with handle_errors():
            raise TickError("--ready and --blocked are mutually exclusive")

    with store_session() as store:
        parent_id = resolve_id(store, parent) if parent else None
        rows = store.query(
            lambda cache: list_tasks(
                cache,
                status=status,
                priority=priority,
                parent=parent_id,
                ready=ready,
                blocked=blocked,
            )
        )
    if json_output:
        print_json([row.to_dict() for row in rows])
    else:
        print_tasks(rows, title="Tasks", quiet=state.quiet)


@app.command("ready")
def ready_command(
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List tasks that can be worked on now."""
    with store_session() as store:
        rows = store.query(ready_tasks)
    if json_output:
        print_json([row.to_dict() for row in rows])
    else:
        print_tasks(rows, title="Ready", quiet=state.quiet)


@app.command("blocked")
def blocked_command(
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List open tasks that are waiting on blockers or children."""
    with store_session() as store:
        rows = store.query(blocked_tasks)
    if json_output:
        print_json([row.to_dict() for row in rows])
    else:
        print_tasks(rows, title="Blocked", quiet=state.quiet)


@app.command("update")
def update_command(
    task_id: Annotated[str, typer.Argument(help="Task ID (full or partial)")],
    title: Annotated[Optional[str], typer.Option("--title", help="New title")] = None,
    description: Annotated[
        Optional[str], typer.Option("--description", "-d", help="New description (empty clears)")
    ] = None,
    priority: Annotated[
        Optional[int], typer.Option("--priority", "-p", help="New priority 0-4")
    ] = None,
    parent: Annotated[
        Optional[str], typer.Option("--parent", help="New parent ID (empty clears)")
    ] = None,
    blocks: Annotated[
        Optional[str], typer.Option("--blocks", help="Comma-separated IDs this task blocks")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Update a task's fields."""
    with store_session() as store:
        record = update_task(
            store,
            task_id,
            title=title,
            description=description,
            priority=priority,
            parent=parent,
            blocks=split_ids(blocks),
        )
    if json_output:
        print_json(record.to_dict())
    elif state.quiet:
        typer.echo(record.id)
    else:
        console.print(f"Updated [bold]{record.id}[/bold]")


def _transition(task_id: str, command: str) -> None:
    with store_session() as store:
        record, result = transition_task(store, task_id, command)
    if not state.quiet:
        console.print(
            f"{record.id}: {result.old_status.value} → {result.new_status.value}",
            highlight=False,
        )


@app.command("start")
def start_command(task_id: Annotated[str, typer.Argument(help="Task ID")]) -> None:
    """Mark a task in progress."""
    _transition(task_id, "start")


@app.command("done")
def done_command(task_id: Annotated[str, typer.Argument(help="Task ID")]) -> None:
    """Mark a task done."""
    _transition(task_id, "done")


@app.command("cancel")
def cancel_command(task_id: Annotated[str, typer.Argument(help="Task ID")]) -> None:
    """Cancel a task."""
    _transition(task_id, "cancel")


@app.command("reopen")
def reopen_command(task_id: Annotated[str, typer.Argument(help="Task ID")]) -> None:
    """Reopen a done or cancelled task."""
    _transition(task_id, "reopen")


@app.command("remove")
def remove_command(
    task_ids: Annotated[list[str], typer.Argument(help="Task IDs to remove")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
) -> None:
    """Remove tasks and clean up dependencies on them."""
    with store_session() as store:
        if not force:
            resolved = [resolve_id(store, task_id) for task_id in task_ids]
            if not typer.confirm(f"Remove {', '.join(resolved)}?", default=False):
                console.print("Aborted.")
                raise typer.Exit(1)
        result = remove_task(store, task_ids)
    if state.quiet:
        return
    for task_id, title in result.removed:
        console.print(f"Removed {task_id}: ", end="")
        console.print(title, markup=False, highlight=False)
    if result.deps_updated:
        console.print(f"Updated dependencies on: {', '.join(result.deps_updated)}")


@app.command("stats")
def stats_command(
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Show task counts by status, priority and workflow."""
    with store_session() as store:
        stats = store.query(compute_stats)
    if json_output:
        print_json(stats.to_dict())
    else:
        print_stats(stats)


@app.command("rebuild")
def rebuild_command() -> None:
    """Rebuild the cache from the task log."""
    with store_session() as store:
        count = store.rebuild()
    if not state.quiet:
        console.print(f"Cache rebuilt: {count} tasks")


@app.command("doctor")
def doctor_command(
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Check the tick directory for problems."""
    with handle_errors():
        report = run_diagnostics(discover_tick_dir())
    if json_output:
        print_json(report.to_dict())
    else:
        print_report(report)
    if report.has_errors:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
