"""Data models for tick."""

from ticktrack.models.task import (
    TaskRecord,
    TransitionResult,
    dedupe_ids,
    format_timestamp,
    generate_task_id,
    new_task,
    normalize_id,
    parse_timestamp,
    transition,
    utc_now,
    validate_priority,
    validate_task_id,
    validate_title,
)

__all__ = [
    "TaskRecord",
    "TransitionResult",
    "dedupe_ids",
    "format_timestamp",
    "generate_task_id",
    "new_task",
    "normalize_id",
    "parse_timestamp",
    "transition",
    "utc_now",
    "validate_priority",
    "validate_task_id",
    "validate_title",
]
