"""
Task operations built on Store.mutate.

Each operation resolves user-supplied IDs, then expresses its change as a
whole-collection transform so validation and persistence share one path.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from ticktrack.core.constants import TASK_ID_PREFIX
from ticktrack.core.exceptions import (
    AmbiguousIDError,
    ReferentialViolationError,
    TaskNotFoundError,
    TaskValidationError,
)
from ticktrack.models.task import (
    TaskRecord,
    TransitionResult,
    new_task,
    transition,
    utc_now,
    validate_priority,
    validate_title,
)
from ticktrack.storage.cache import TaskCache
from ticktrack.storage.coordinator import Store

logger = logging.getLogger(__name__)

MIN_PARTIAL_ID_LENGTH = 3


# =============================================================================
# ID resolution
# =============================================================================

def resolve_id(store: Store, raw_id: str) -> str:
    """
    Resolve a full or partial task ID to a stored ID.

    Accepts the full ID, or at least three leading hex characters with or
    without the ``tick-`` prefix. An exact full-length match wins without
    an ambiguity check.
    """
    hex_part = raw_id.strip().lower()
    if hex_part.startswith(TASK_ID_PREFIX):
        hex_part = hex_part[len(TASK_ID_PREFIX):]
    if len(hex_part) < MIN_PARTIAL_ID_LENGTH:
        raise TaskValidationError(
            f"partial ID must be at least {MIN_PARTIAL_ID_LENGTH} hex characters",
            field="id",
        )
    prefix = TASK_ID_PREFIX + hex_part

    def lookup(cache: TaskCache) -> list[str]:
        exact = cache.run_query("SELECT id FROM tasks WHERE id = ?", (prefix,))
        if exact:
            return [exact[0]["id"]]
        rows = cache.run_query(
            "SELECT id FROM tasks WHERE substr(id, 1, ?) = ? ORDER BY id",
            (len(prefix), prefix),
        )
        return [row["id"] for row in rows]

    matches = store.query(lookup)
    if not matches:
        raise TaskNotFoundError(f"task '{raw_id}' not found", task_id=raw_id)
    if len(matches) > 1:
        raise AmbiguousIDError(
            f"ambiguous ID '{raw_id}' matches {len(matches)} tasks: {', '.join(matches)}",
            prefix=raw_id,
            matches=matches,
        )
    return matches[0]


def resolve_ids(store: Store, raw_ids: Iterable[str]) -> list[str]:
    """Resolve several IDs, dropping duplicates and keeping order."""
    resolved: list[str] = []
    for raw in raw_ids:
        task_id = resolve_id(store, raw)
        if task_id not in resolved:
            resolved.append(task_id)
    return resolved


def _find(records: list[TaskRecord], task_id: str) -> TaskRecord:
    for record in records:
        if record.id == task_id:
            return record
    raise TaskNotFoundError(f"task '{task_id}' not found", task_id=task_id)


def _apply_blocks(records: list[TaskRecord], source_id: str, targets: Iterable[str]) -> None:
    """Make ``source_id`` a blocker of every target task."""
    now = utc_now()
    for target_id in targets:
        target = _find(records, target_id)
        if source_id not in target.blocked_by:
            target.blocked_by.append(source_id)
            target.updated = now


# =============================================================================
# Create / update
# =============================================================================

def create_task(
    store: Store,
    title: str,
    priority: int | None = None,
    description: str = "",
    blocked_by: Iterable[str] = (),
    blocks: Iterable[str] = (),
    parent: str | None = None,
) -> TaskRecord:
    """Create a task, optionally wiring it into the dependency graph."""
    clean_title = validate_title(title)
    if priority is not None:
        validate_priority(priority)
    blocker_ids = resolve_ids(store, blocked_by)
    block_ids = resolve_ids(store, blocks)
    parent_id = resolve_id(store, parent) if parent else ""

    created: list[TaskRecord] = []

    def transform(records: list[TaskRecord]) -> list[TaskRecord]:
        existing = {record.id for record in records}
        task = new_task(
            clean_title,
            exists=existing.__contains__,
            priority=priority,
            description=description,
            blocked_by=blocker_ids,
            parent=parent_id,
        )
        _apply_blocks(records, task.id, block_ids)
        created.append(task)
        return records + [task]

    store.mutate(transform)
    logger.info("Created task %s", created[0].id)
    return created[0]


def update_task(
    store: Store,
    task_id: str,
    title: str | None = None,
    description: str | None = None,
    priority: int | None = None,
    parent: str | None = None,
    blocks: Iterable[str] = (),
) -> TaskRecord:
    """
    Update fields of an existing task.

    ``None`` leaves a field unchanged; an empty ``parent`` or
    ``description`` clears it. At least one change is required.
    """
    block_targets = list(blocks)
    if title is None and description is None and priority is None and parent is None and not block_targets:
        raise TaskValidationError(
            "at least one change is required: title, description, priority, parent or blocks"
        )

    clean_title = validate_title(title) if title is not None else None
    if priority is not None:
        validate_priority(priority)
    target_id = resolve_id(store, task_id)
    parent_id = None
    if parent is not None:
        parent_id = resolve_id(store, parent) if parent.strip() else ""
    block_ids = resolve_ids(store, block_targets)

    updated: list[TaskRecord] = []

    def transform(records: list[TaskRecord]) -> list[TaskRecord]:
        record = _find(records, target_id)
        if parent_id == record.id:
            raise ReferentialViolationError(
                f"task {record.id} cannot be its own parent",
                task_id=record.id,
                reference=parent_id,
                field="parent",
            )
        if clean_title is not None:
            record.title = clean_title
        if description is not None:
            record.description = description.strip()
        if priority is not None:
            record.priority = priority
        if parent_id is not None:
            record.parent = parent_id
        record.updated = utc_now()
        _apply_blocks(records, record.id, block_ids)
        updated.append(record)
        return records

    store.mutate(transform)
    return updated[0]


# =============================================================================
# Status transitions
# =============================================================================

def transition_task(store: Store, task_id: str, command: str) -> tuple[TaskRecord, TransitionResult]:
    """Apply a start/done/cancel/reopen command to a task."""
    target_id = resolve_id(store, task_id)
    outcome: list[tuple[TaskRecord, TransitionResult]] = []

    def transform(records: list[TaskRecord]) -> list[TaskRecord]:
        record = _find(records, target_id)
        outcome.append((record, transition(record, command)))
        return records

    store.mutate(transform)
    record, result = outcome[0]
    logger.info("Task %s: %s -> %s", record.id, result.old_status.value, result.new_status.value)
    return record, result


# =============================================================================
# Dependencies
# =============================================================================

def add_dependency(store: Store, task_id: str, blocker_id: str) -> TaskRecord:
    """Record that ``task_id`` is blocked by ``blocker_id``."""
    target_id = resolve_id(store, task_id)
    blocker = resolve_id(store, blocker_id)
    updated: list[TaskRecord] = []

    def transform(records: list[TaskRecord]) -> list[TaskRecord]:
        record = _find(records, target_id)
        if blocker == record.id:
            raise ReferentialViolationError(
                f"cannot add dependency - {record.id} cannot be blocked by itself",
                task_id=record.id,
                reference=blocker,
                field="blocked_by",
            )
        if blocker in record.blocked_by:
            raise TaskValidationError(
                f"{record.id} is already blocked by {blocker}",
                task_id=record.id,
                field="blocked_by",
            )
        record.blocked_by.append(blocker)
        record.updated = utc_now()
        updated.append(record)
        return records

    store.mutate(transform)
    return updated[0]


def remove_dependency(store: Store, task_id: str, blocker_id: str) -> TaskRecord:
    """Remove ``blocker_id`` from the blockers of ``task_id``."""
    target_id = resolve_id(store, task_id)
    blocker = TASK_ID_PREFIX + blocker_id.strip().lower().removeprefix(TASK_ID_PREFIX)
    updated: list[TaskRecord] = []

    def transform(records: list[TaskRecord]) -> list[TaskRecord]:
        record = _find(records, target_id)
        if blocker in record.blocked_by:
            matches = [blocker]
        else:
            matches = [b for b in record.blocked_by if b.startswith(blocker)]
        if len(matches) != 1:
            raise TaskValidationError(
                f"{blocker_id} is not a dependency of {record.id}",
                task_id=record.id,
                field="blocked_by",
            )
        record.blocked_by.remove(matches[0])
        record.updated = utc_now()
        updated.append(record)
        return records

    store.mutate(transform)
    return updated[0]


# =============================================================================
# Removal
# =============================================================================

@dataclass
class RemovalResult:
    """Tasks removed and tasks whose blockers were cleaned up."""

    removed: list[tuple[str, str]] = field(default_factory=list)
    deps_updated: list[str] = field(default_factory=list)


def remove_task(store: Store, task_ids: Iterable[str]) -> RemovalResult:
    """
    Remove tasks and strip them from every remaining blocked_by list.

    Refuses to remove a task whose children would be left without a
    parent.
    """
    target_ids = resolve_ids(store, task_ids)
    if not target_ids:
        raise TaskValidationError("at least one task ID is required")
    result = RemovalResult()

    def transform(records: list[TaskRecord]) -> list[TaskRecord]:
        targets = set(target_ids)
        for target_id in target_ids:
            record = _find(records, target_id)
            result.removed.append((record.id, record.title))

        remaining = [record for record in records if record.id not in targets]
        orphans = [record.id for record in remaining if record.parent in targets]
        if orphans:
            raise ReferentialViolationError(
                f"cannot remove - tasks still have children: {', '.join(orphans)}",
                reference=", ".join(orphans),
                field="parent",
            )

        now = utc_now()
        for record in remaining:
            cleaned = [b for b in record.blocked_by if b not in targets]
            if len(cleaned) != len(record.blocked_by):
                record.blocked_by = cleaned
                record.updated = now
                result.deps_updated.append(record.id)
        return remaining

    store.mutate(transform)
    logger.info("Removed %d task(s)", len(result.removed))
    return result
