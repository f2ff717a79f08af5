"""Task operations for tick."""

from ticktrack.tasks.operations import (
    RemovalResult,
    add_dependency,
    create_task,
    remove_dependency,
    remove_task,
    resolve_id,
    resolve_ids,
    transition_task,
    update_task,
)

__all__ = [
    "RemovalResult",
    "resolve_id",
    "resolve_ids",
    "create_task",
    "update_task",
    "transition_task",
    "add_dependency",
    "remove_dependency",
    "remove_task",
]
