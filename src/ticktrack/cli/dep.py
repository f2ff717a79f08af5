"""Dependency commands: tick dep add / tick dep rm."""

from typing import Annotated

import typer

from ticktrack.cli.common import state, store_session
from ticktrack.cli.render import console
from ticktrack.tasks.operations import add_dependency, remove_dependency

app = typer.Typer(
    name="dep",
    help="Manage task dependencies",
    no_args_is_help=True,
)


@app.command("add")
def add_command(
    task_id: Annotated[str, typer.Argument(help="Task that is blocked")],
    blocker_id: Annotated[str, typer.Argument(help="Task that blocks it")],
) -> None:
    """Mark TASK_ID as blocked by BLOCKER_ID."""
    with store_session() as store:
        record = add_dependency(store, task_id, blocker_id)
    if not state.quiet:
        console.print(f"Dependency added: {record.id} blocked by {record.blocked_by[-1]}")


@app.command("rm")
def remove_command(
    task_id: Annotated[str, typer.Argument(help="Task that is blocked")],
    blocker_id: Annotated[str, typer.Argument(help="Blocker to remove")],
) -> None:
    """Remove BLOCKER_ID from TASK_ID's blockers."""
    with store_session() as store:
        record = remove_dependency(store, task_id, blocker_id)
    if not state.quiet:
        console.print(f"Dependency removed from {record.id}")
