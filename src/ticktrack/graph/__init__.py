"""Dependency graph queries for tick."""

from ticktrack.graph.queries import (
    TaskDetail,
    TaskRow,
    TaskStats,
    blocked_count,
    blocked_tasks,
    compute_stats,
    get_task,
    list_tasks,
    ready_count,
    ready_tasks,
)

__all__ = [
    "TaskRow",
    "TaskStats",
    "TaskDetail",
    "ready_tasks",
    "blocked_tasks",
    "ready_count",
    "blocked_count",
    "compute_stats",
    "list_tasks",
    "get_task",
]
