"""
Cross-record validation of a proposed task set.

Record-local checks live on TaskRecord. This module checks what only the
whole set can answer: unique IDs, references that resolve, and whether
newly introduced dependency edges close a cycle.
"""

from collections import deque
from typing import Iterable, Sequence

from ticktrack.core.exceptions import (
    DependencyCycleError,
    ReferentialViolationError,
    TaskValidationError,
)
from ticktrack.models.task import TaskRecord

Edge = tuple[str, str]


def dependency_edges(records: Iterable[TaskRecord]) -> set[Edge]:
    """Get every (task, blocker) pair in a record set."""
    return {(record.id, blocker) for record in records for blocker in record.blocked_by}


def parent_edges(records: Iterable[TaskRecord]) -> set[Edge]:
    """Get every (child, parent) pair in a record set."""
    return {(record.id, record.parent) for record in records if record.parent}


def find_path(graph: dict[str, list[str]], start: str, target: str) -> list[str] | None:
    """Breadth-first search for a path from ``start`` to ``target``."""
    queue: deque[list[str]] = deque([[start]])
    visited = {start}
    while queue:
        path = queue.popleft()
        node = path[-1]
        if node == target:
            return path
        for nxt in graph.get(node, []):
            if nxt not in visited:
                visited.add(nxt)
                queue.append(path + [nxt])
    return None


def find_cycles(graph: dict[str, list[str]]) -> list[list[str]]:
    """
    Find cycles in a task -> blockers graph.

    Returns one entry per cycle, each a closed path such as
    ``[a, b, a]``. Edges to unknown tasks are ignored.
    """
    white, gray, black = 0, 1, 2
    color = {task_id: white for task_id in graph}
    cycles: list[list[str]] = []

    def visit(node: str, stack: list[str]) -> None:
        color[node] = gray
        stack.append(node)
        for nxt in graph[node]:
            if nxt not in color:
                continue
            if color[nxt] == gray:
                start = stack.index(nxt)
                cycles.append(stack[start:] + [nxt])
            elif color[nxt] == white:
                visit(nxt, stack)
        stack.pop()
        color[node] = black

    for task_id in sorted(graph):
        if color[task_id] == white:
            visit(task_id, [])
    return cycles


def format_cycle(cycle: Sequence[str]) -> str:
    """Render a cycle path for messages."""
    return " → ".join(cycle)


def validate_records(
    records: Sequence[TaskRecord],
    previous: Sequence[TaskRecord] | None = None,
    reject_cycles: bool = True,
) -> None:
    """
    Validate a full proposed record set before it is written.

    ``previous`` is the set the proposal was derived from. Relationship
    rules that concern graph shape are only enforced for edges the
    proposal introduces, so a log edited by hand into a cyclic state can
    still be mutated. Pass None to treat every edge as new.

    IDs, parents and blockers of ``records`` are normalized in place
    first, so references edited after construction compare correctly.

    Raises TaskValidationError (or its ReferentialViolationError and
    DependencyCycleError subclasses) on the first problem found.
    """
    for record in records:
        record.normalize()

    ids: set[str] = set()
    for record in records:
        errors = record.validate()
        if errors:
            raise TaskValidationError(
                f"invalid task {record.id or '<no id>'}: {'; '.join(errors)}",
                task_id=record.id,
            )
        if record.id in ids:
            raise ReferentialViolationError(
                f"duplicate task ID {record.id}", task_id=record.id, field="id"
            )
        ids.add(record.id)

    for record in records:
        if record.parent == record.id:
            raise ReferentialViolationError(
                f"task {record.id} cannot be its own parent",
                task_id=record.id,
                reference=record.parent,
                field="parent",
            )
        if record.parent and record.parent not in ids:
            raise ReferentialViolationError(
                f"parent task not found: {record.parent}",
                task_id=record.id,
                reference=record.parent,
                field="parent",
            )
        for blocker in record.blocked_by:
            if blocker == record.id:
                raise ReferentialViolationError(
                    f"task {record.id} cannot be blocked by itself",
                    task_id=record.id,
                    reference=blocker,
                    field="blocked_by",
                )
            if blocker not in ids:
                raise ReferentialViolationError(
                    f"blocking task not found: {blocker}",
                    task_id=record.id,
                    reference=blocker,
                    field="blocked_by",
                )

    old_deps = dependency_edges(previous) if previous is not None else set()
    old_parents = parent_edges(previous) if previous is not None else set()
    by_id = {record.id: record for record in records}

    for task_id, parent in sorted(parent_edges(records) - old_parents):
        if parent in by_id[task_id].blocked_by:
            _raise_child_blocked_by_parent(task_id, parent)

    new_deps = sorted(dependency_edges(records) - old_deps)
    for task_id, blocker in new_deps:
        if by_id[task_id].parent == blocker:
            _raise_child_blocked_by_parent(task_id, blocker)

    if not reject_cycles:
        return

    graph = {record.id: list(record.blocked_by) for record in records}
    for task_id, blocker in new_deps:
        path = find_path(graph, blocker, task_id)
        if path is not None:
            cycle = [task_id] + path
            raise DependencyCycleError(
                f"cannot add dependency - creates cycle: {format_cycle(cycle)}",
                cycle=cycle,
                task_id=task_id,
            )


def _raise_child_blocked_by_parent(task_id: str, parent: str) -> None:
    raise ReferentialViolationError(
        f"cannot add dependency - {task_id} cannot be blocked by its parent {parent} "
        "(would create unworkable task due to leaf-only ready rule)",
        task_id=task_id,
        reference=parent,
        field="blocked_by",
    )
