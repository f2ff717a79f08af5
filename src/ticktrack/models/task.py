"""
Task data model.

This module defines TaskRecord, the in-memory form of one line of the
task log, together with ID generation and normalization, field
validation, JSONL (de)serialization and status transitions.
"""

import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from ticktrack.core.constants import (
    DEFAULT_PRIORITY,
    MAX_ID_RETRIES,
    MAX_PRIORITY,
    MAX_TITLE_LENGTH,
    MIN_PRIORITY,
    TASK_ID_PATTERN,
    TASK_ID_PREFIX,
    TASK_ID_RANDOM_BYTES,
    TIMESTAMP_FORMAT,
    TaskStatus,
)
from ticktrack.core.exceptions import (
    IDGenerationError,
    TaskValidationError,
    TransitionError,
)

_BARE_ID_PATTERN = re.compile(r"^[0-9a-f]{6}$")


# =============================================================================
# Timestamps
# =============================================================================

def utc_now() -> datetime:
    """Current UTC time truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an ISO 8601 UTC string."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 UTC string produced by format_timestamp."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


# =============================================================================
# IDs
# =============================================================================

def normalize_id(task_id: str) -> str:
    """Normalize a task ID for comparison and storage.

    IDs are matched case-insensitively, and a bare six-character hex code
    is accepted as shorthand for the prefixed form.
    """
    normalized = task_id.strip().lower()
    if _BARE_ID_PATTERN.match(normalized):
        return TASK_ID_PREFIX + normalized
    return normalized


def validate_task_id(task_id: str) -> bool:
    """Validate a task ID format."""
    return bool(re.match(TASK_ID_PATTERN, task_id))


def generate_task_id(exists: Callable[[str], bool]) -> str:
    """Generate a new task ID that ``exists`` does not already know."""
    for _ in range(MAX_ID_RETRIES):
        candidate = TASK_ID_PREFIX + secrets.token_hex(TASK_ID_RANDOM_BYTES)
        if not exists(candidate):
            return candidate
    raise IDGenerationError(
        f"Failed to generate unique ID after {MAX_ID_RETRIES} attempts - "
        "task list may be too large"
    )


def dedupe_ids(ids: Iterable[str]) -> list[str]:
    """Normalize IDs, drop empties and duplicates, keep first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for raw in ids:
        normalized = normalize_id(raw)
        if normalized and normalized not in seen:
            seen.add(normalized)
            result.append(normalized)
    return result


# =============================================================================
# Field validation
# =============================================================================

def validate_title(title: str) -> str:
    """Trim and validate a title, returning the cleaned value."""
    trimmed = title.strip()
    if not trimmed:
        raise TaskValidationError("title is required and cannot be empty", field="title")
    if "\n" in trimmed or "\r" in trimmed:
        raise TaskValidationError("title cannot contain newlines", field="title")
    if len(trimmed) > MAX_TITLE_LENGTH:
        raise TaskValidationError(
            f"title exceeds maximum length of {MAX_TITLE_LENGTH} characters",
            field="title",
        )
    return trimmed


def validate_priority(priority: int) -> int:
    """Check that priority is an integer within 0-4."""
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise TaskValidationError(
            f"priority must be an integer, got {priority!r}", field="priority"
        )
    if priority < MIN_PRIORITY or priority > MAX_PRIORITY:
        raise TaskValidationError(
            f"priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}, got {priority}",
            field="priority",
        )
    return priority


# =============================================================================
# TaskRecord
# =============================================================================

@dataclass
class TaskRecord:
    """One task and its relationships, as stored in the task log."""

    id: str
    title: str
    status: TaskStatus = TaskStatus.OPEN
    priority: int = DEFAULT_PRIORITY
    description: str = ""
    blocked_by: list[str] = field(default_factory=list)
    parent: str = ""
    created: datetime = field(default_factory=utc_now)
    updated: datetime = field(default_factory=utc_now)
    closed: datetime | None = None

    def __post_init__(self) -> None:
        if isinstance(self.status, str):
            self.status = TaskStatus(self.status)
        self.normalize()

    def normalize(self) -> None:
        """Normalize the ID, parent and blockers in place."""
        self.id = normalize_id(self.id)
        self.parent = normalize_id(self.parent) if self.parent else ""
        self.blocked_by = dedupe_ids(self.blocked_by)

    @property
    def is_closed(self) -> bool:
        """Check if the task is done or cancelled."""
        return self.status.is_closed()

    def validate(self) -> list[str]:
        """
        Validate record-local invariants.

        Returns a list of validation errors (empty if valid). Cross-record
        references are checked by the storage layer.
        """
        errors = []

        if not self.id:
            errors.append("Task ID is required")

        try:
            validate_title(self.title)
        except TaskValidationError as e:
            errors.append(e.message)

        try:
            validate_priority(self.priority)
        except TaskValidationError as e:
            errors.append(e.message)

        if self.is_closed and self.closed is None:
            errors.append(f"closed timestamp is required when status is '{self.status.value}'")
        if not self.is_closed and self.closed is not None:
            errors.append(f"closed timestamp must be empty when status is '{self.status.value}'")

        return errors

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSONL line shape, omitting empty optional fields."""
        data: dict[str, Any] = {
            "id": normalize_id(self.id),
            "title": self.title,
            "status": self.status.value,
            "priority": self.priority,
        }
        if self.description:
            data["description"] = self.description
        blocked_by = dedupe_ids(self.blocked_by)
        if blocked_by:
            data["blocked_by"] = blocked_by
        if self.parent:
            data["parent"] = normalize_id(self.parent)
        data["created"] = format_timestamp(self.created)
        data["updated"] = format_timestamp(self.updated)
        if self.closed is not None:
            data["closed"] = format_timestamp(self.closed)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskRecord":
        """Create a record from a parsed JSONL line.

        Unknown keys are ignored. Raises ValueError when a required field is
        missing, has the wrong shape, or breaks a record-local invariant
        (title, priority range, closed timestamp).
        """
        for required in ("id", "title", "status", "created", "updated"):
            if required not in data:
                raise ValueError(f"missing required field '{required}'")
            if not isinstance(data[required], str):
                raise ValueError(f"field '{required}' must be a string")

        priority = data.get("priority", DEFAULT_PRIORITY)
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise ValueError("field 'priority' must be an integer")

        blocked_by = data.get("blocked_by") or []
        if not isinstance(blocked_by, list) or not all(isinstance(b, str) for b in blocked_by):
            raise ValueError("field 'blocked_by' must be a list of strings")

        closed_raw = data.get("closed") or ""
        record = cls(
            id=data["id"],
            title=data["title"],
            status=TaskStatus(data["status"]),
            priority=priority,
            description=str(data.get("description") or ""),
            blocked_by=blocked_by,
            parent=str(data.get("parent") or ""),
            created=parse_timestamp(data["created"]),
            updated=parse_timestamp(data["updated"]),
            closed=parse_timestamp(closed_raw) if closed_raw else None,
        )
        errors = record.validate()
        if errors:
            raise ValueError("; ".join(errors))
        return record


def new_task(
    title: str,
    exists: Callable[[str], bool],
    priority: int | None = None,
    description: str = "",
    blocked_by: Iterable[str] = (),
    parent: str = "",
) -> TaskRecord:
    """Create a new open task with a fresh ID and validated fields."""
    clean_title = validate_title(title)
    task_priority = validate_priority(DEFAULT_PRIORITY if priority is None else priority)
    task_id = generate_task_id(exists)
    now = utc_now()
    return TaskRecord(
        id=task_id,
        title=clean_title,
        status=TaskStatus.OPEN,
        priority=task_priority,
        description=description.strip(),
        blocked_by=list(blocked_by),
        parent=parent,
        created=now,
        updated=now,
    )


# =============================================================================
# Status transitions
# =============================================================================

@dataclass(frozen=True)
class TransitionResult:
    """Old and new status after a successful transition."""

    old_status: TaskStatus
    new_status: TaskStatus


TRANSITIONS: dict[str, tuple[tuple[TaskStatus, ...], TaskStatus]] = {
    "start": ((TaskStatus.OPEN,), TaskStatus.IN_PROGRESS),
    "done": ((TaskStatus.OPEN, TaskStatus.IN_PROGRESS), TaskStatus.DONE),
    "cancel": ((TaskStatus.OPEN, TaskStatus.IN_PROGRESS), TaskStatus.CANCELLED),
    "reopen": ((TaskStatus.DONE, TaskStatus.CANCELLED), TaskStatus.OPEN),
}


def transition(record: TaskRecord, command: str, now: datetime | None = None) -> TransitionResult:
    """
    Apply a status transition command to a record in place.

    Sets ``updated``; sets ``closed`` on done/cancel and clears it on
    reopen. On failure the record is left untouched.
    """
    if command not in TRANSITIONS:
        raise TransitionError(f"unknown command: {command}", task_id=record.id)

    allowed_from, target = TRANSITIONS[command]
    old_status = record.status
    if old_status not in allowed_from:
        raise TransitionError(
            f"cannot {command} task {record.id} - status is '{old_status.value}'",
            task_id=record.id,
            status=old_status.value,
        )

    timestamp = now or utc_now()
    record.status = target
    record.updated = timestamp
    if target.is_closed():
        record.closed = timestamp
    elif command == "reopen":
        record.closed = None

    return TransitionResult(old_status=old_status, new_status=target)
