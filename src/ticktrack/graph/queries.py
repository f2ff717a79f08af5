"""Dependency graph queries over the task cache.

These functions are the read side of the tracker. Each takes a
TaskCache and is meant to be passed to ``Store.query``, which
guarantees the cache matches the task log:

- Ready and blocked work selection
- Statistics across status and priority
- Filtered listing, optionally scoped to a parent's descendants
- Single-task detail with blockers and children

Cycles are never detected here; a task caught in one is simply not ready.
"""

import sqlite3
from dataclasses import dataclass, field
from typing import Any

from ticktrack.core.constants import PRIORITY_LEVELS, TaskStatus
from ticktrack.core.exceptions import TaskNotFoundError
from ticktrack.models.task import normalize_id
from ticktrack.storage.cache import TaskCache

# An open task is ready when every blocker is closed and it has no open
# or in-progress children.
READY_CONDITION = """
    t.status = 'open'
    AND NOT EXISTS (
        SELECT 1 FROM dependencies d
        JOIN tasks blocker ON blocker.id = d.blocked_by
        WHERE d.task_id = t.id
          AND blocker.status NOT IN ('done', 'cancelled')
    )
    AND NOT EXISTS (
        SELECT 1 FROM tasks child
        WHERE child.parent = t.id
          AND child.status IN ('open', 'in_progress')
    )
"""

BLOCKED_CONDITION = f"t.status = 'open' AND NOT ({READY_CONDITION})"

TASK_COLUMNS = (
    "t.id, t.title, t.status, t.priority, t.description, t.parent, "
    "t.created, t.updated, t.closed"
)

ORDER_BY = "ORDER BY t.priority ASC, t.created ASC, t.id ASC"

DESCENDANTS_CTE = """
WITH RECURSIVE descendants(id) AS (
    SELECT id FROM tasks WHERE parent = ?
    UNION
    SELECT c.id FROM tasks c JOIN descendants d ON c.parent = d.id
)
"""


@dataclass
class TaskRow:
    """A task as read from the cache.

    Attributes:
        id: Task ID.
        title: Task title.
        status: Lifecycle status.
        priority: Priority 0-4, lower is more urgent.
        description: Free-text description, empty when unset.
        parent: Parent task ID, empty when unset.
        created: Creation timestamp string.
        updated: Last update timestamp string.
        closed: Close timestamp string, None while open.
    """

    id: str
    title: str
    status: TaskStatus
    priority: int
    description: str = ""
    parent: str = ""
    created: str = ""
    updated: str = ""
    closed: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "TaskRow":
        """Create from a cache row selected with TASK_COLUMNS."""
        return cls(
            id=row["id"],
            title=row["title"],
            status=TaskStatus(row["status"]),
            priority=row["priority"],
            description=row["description"] or "",
            parent=row["parent"] or "",
            created=row["created"],
            updated=row["updated"],
            closed=row["closed"],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "priority": self.priority,
            "description": self.description,
            "parent": self.parent,
            "created": self.created,
            "updated": self.updated,
            "closed": self.closed,
        }


@dataclass
class TaskStats:
    """Aggregate counts across the task set."""

    total: int = 0
    open: int = 0
    in_progress: int = 0
    done: int = 0
    cancelled: int = 0
    ready: int = 0
    blocked: int = 0
    by_priority: dict[int, int] = field(
        default_factory=lambda: {level: 0 for level in PRIORITY_LEVELS}
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "total": self.total,
            "by_status": {
                "open": self.open,
                "in_progress": self.in_progress,
                "done": self.done,
                "cancelled": self.cancelled,
            },
            "workflow": {"ready": self.ready, "blocked": self.blocked},
            "by_priority": [
                {"priority": level, "count": count}
                for level, count in sorted(self.by_priority.items())
            ],
        }


@dataclass
class TaskDetail:
    """A task with its blockers, children and parent title."""

    task: TaskRow
    blockers: list[TaskRow] = field(default_factory=list)
    children: list[TaskRow] = field(default_factory=list)
    parent_title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data = self.task.to_dict()
        data["parent_title"] = self.parent_title
        data["blocked_by"] = [
            {"id": b.id, "title": b.title, "status": b.status.value} for b in self.blockers
        ]
        data["children"] = [
            {"id": c.id, "title": c.title, "status": c.status.value} for c in self.children
        ]
        return data


def _select(cache: TaskCache, where: str, params: tuple[Any, ...] = ()) -> list[TaskRow]:
    sql = f"SELECT {TASK_COLUMNS} FROM tasks t WHERE {where} {ORDER_BY}"
    return [TaskRow.from_row(row) for row in cache.run_query(sql, params)]


def ready_tasks(cache: TaskCache) -> list[TaskRow]:
    """Get tasks that can be worked on now, most urgent first."""
    return _select(cache, READY_CONDITION)


def blocked_tasks(cache: TaskCache) -> list[TaskRow]:
    """Get open tasks that are not ready, most urgent first."""
    return _select(cache, BLOCKED_CONDITION)


def ready_count(cache: TaskCache) -> int:
    """Count ready tasks."""
    rows = cache.run_query(f"SELECT COUNT(*) AS count FROM tasks t WHERE {READY_CONDITION}")
    return int(rows[0]["count"])


def blocked_count(cache: TaskCache) -> int:
    """Count blocked tasks: open tasks that are not ready."""
    rows = cache.run_query(
        "SELECT (SELECT COUNT(*) FROM tasks WHERE status = 'open') - "
        f"(SELECT COUNT(*) FROM tasks t WHERE {READY_CONDITION}) AS count"
    )
    return int(rows[0]["count"])


def compute_stats(cache: TaskCache) -> TaskStats:
    """Compute status, priority and workflow counts.

    Everything is read in one statement so the counts come from a single
    consistent view of the cache.
    """
    status_columns = ", ".join(
        f"(SELECT COUNT(*) FROM tasks WHERE status = '{status.value}') AS {status.value}"
        for status in TaskStatus
    )
    priority_columns = ", ".join(
        f"(SELECT COUNT(*) FROM tasks WHERE priority = {level}) AS p{level}"
        for level in PRIORITY_LEVELS
    )
    sql = (
        "SELECT (SELECT COUNT(*) FROM tasks) AS total, "
        f"{status_columns}, {priority_columns}, "
        f"(SELECT COUNT(*) FROM tasks t WHERE {READY_CONDITION}) AS ready"
    )
    row = cache.run_query(sql)[0]

    stats = TaskStats(
        total=row["total"],
        open=row["open"],
        in_progress=row["in_progress"],
        done=row["done"],
        cancelled=row["cancelled"],
        ready=row["ready"],
        by_priority={level: row[f"p{level}"] for level in PRIORITY_LEVELS},
    )
    stats.blocked = stats.open - stats.ready
    return stats


def list_tasks(
    cache: TaskCache,
    status: TaskStatus | str | None = None,
    priority: int | None = None,
    parent: str | None = None,
    ready: bool = False,
    blocked: bool = False,
) -> list[TaskRow]:
    """List tasks matching every given filter.

    Args:
        cache: Fresh task cache.
        status: Only tasks in this status.
        priority: Only tasks at this priority.
        parent: Only descendants of this task, at any depth.
        ready: Only ready tasks.
        blocked: Only blocked tasks.

    Raises:
        ValueError: If both ready and blocked are requested.
    """
    if ready and blocked:
        raise ValueError("ready and blocked filters are mutually exclusive")

    conditions: list[str] = []
    params: list[Any] = []
    prefix = ""

    if parent:
        prefix = DESCENDANTS_CTE
        params.append(normalize_id(parent))
        conditions.append("t.id IN (SELECT id FROM descendants)")
    if ready:
        conditions.append(f"({READY_CONDITION})")
    if blocked:
        conditions.append(f"({BLOCKED_CONDITION})")
    if status is not None:
        conditions.append("t.status = ?")
        params.append(TaskStatus(status).value)
    if priority is not None:
        conditions.append("t.priority = ?")
        params.append(priority)

    where = " AND ".join(conditions) if conditions else "1 = 1"
    sql = f"{prefix} SELECT {TASK_COLUMNS} FROM tasks t WHERE {where} {ORDER_BY}"
    return [TaskRow.from_row(row) for row in cache.run_query(sql, tuple(params))]


def get_task(cache: TaskCache, task_id: str) -> TaskDetail:
    """Get one task with its blockers and children.

    Raises:
        TaskNotFoundError: If no task has this ID.
    """
    task_id = normalize_id(task_id)
    rows = _select(cache, "t.id = ?", (task_id,))
    if not rows:
        raise TaskNotFoundError(f"Task '{task_id}' not found", task_id=task_id)
    task = rows[0]

    blocker_sql = (
        f"SELECT {TASK_COLUMNS} FROM dependencies d "
        "JOIN tasks t ON t.id = d.blocked_by "
        "WHERE d.task_id = ? ORDER BY t.id"
    )
    blockers = [TaskRow.from_row(row) for row in cache.run_query(blocker_sql, (task_id,))]
    children = _select(cache, "t.parent = ?", (task_id,))

    parent_title = None
    if task.parent:
        parent_rows = _select(cache, "t.id = ?", (task.parent,))
        if parent_rows:
            parent_title = parent_rows[0].title

    return TaskDetail(task=task, blockers=blockers, children=children, parent_title=parent_title)
