"""Tick custom exception hierarchy."""

from pathlib import Path
from typing import Any


class TickError(Exception):
    """Base exception for all tick errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class ConfigurationError(TickError):
    """Raised when configuration is invalid."""

    pass


class NotInitializedError(TickError):
    """Raised when no tick directory can be found or it is incomplete."""

    def __init__(
        self, message: str, path: Path | None = None, details: dict[str, Any] | None = None
    ) -> None:
        details = details or {}
        if path:
            details["path"] = str(path)
        super().__init__(message, details)
        self.path = path


class AlreadyInitializedError(TickError):
    """Raised when initializing a directory that already holds a tick project."""

    def __init__(
        self, message: str, path: Path | None = None, details: dict[str, Any] | None = None
    ) -> None:
        details = details or {}
        if path:
            details["path"] = str(path)
        super().__init__(message, details)
        self.path = path


# =============================================================================
# Storage
# =============================================================================


class StorageError(TickError):
    """Base exception for log and cache operations."""

    pass


class CorruptLogError(StorageError):
    """Raised when a line of the task log is not a valid record."""

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        line: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if path:
            details["path"] = str(path)
        if line is not None:
            details["line"] = line
        super().__init__(message, details)
        self.path = path
        self.line = line


class CacheRebuildError(StorageError):
    """Raised when the cache could not be rebuilt after the log was written.

    The log is authoritative and already persisted; the cache has been
    invalidated so the next access rebuilds it.
    """

    pass


class QueryFailureError(StorageError):
    """Raised when a query against the cache fails."""

    def __init__(
        self,
        message: str,
        sql: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if sql:
            details["sql"] = " ".join(sql.split())
        super().__init__(message, details)
        self.sql = sql


class LockTimeoutError(TickError):
    """Raised when the tick directory lock cannot be acquired in time."""

    def __init__(
        self,
        message: str,
        lock_path: Path | None = None,
        timeout: float | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if lock_path:
            details["lock_path"] = str(lock_path)
        if timeout is not None:
            details["timeout"] = timeout
        super().__init__(message, details)
        self.lock_path = lock_path
        self.timeout = timeout


# =============================================================================
# Task validation
# =============================================================================


class TaskValidationError(TickError):
    """Raised when a task field is invalid."""

    def __init__(
        self,
        message: str,
        task_id: str | None = None,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if task_id:
            details["task_id"] = task_id
        if field:
            details["field"] = field
        super().__init__(message, details)
        self.task_id = task_id
        self.field = field


class ReferentialViolationError(TaskValidationError):
    """Raised when a mutation leaves a dangling, duplicate or self reference."""

    def __init__(
        self,
        message: str,
        task_id: str | None = None,
        reference: str | None = None,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if reference:
            details["reference"] = reference
        super().__init__(message, task_id=task_id, field=field, details=details)
        self.reference = reference


class DependencyCycleError(ReferentialViolationError):
    """Raised when a new blocked_by edge would close a dependency cycle."""

    def __init__(
        self,
        message: str,
        cycle: list[str] | None = None,
        task_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, task_id=task_id, field="blocked_by", details=details)
        self.cycle = cycle or []


class TransitionError(TaskValidationError):
    """Raised when a status transition is not allowed."""

    def __init__(
        self,
        message: str,
        task_id: str | None = None,
        status: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if status:
            details["status"] = status
        super().__init__(message, task_id=task_id, field="status", details=details)
        self.status = status


class TaskNotFoundError(TickError):
    """Raised when a task ID does not resolve to any task."""

    def __init__(self, message: str, task_id: str | None = None) -> None:
        details = {"task_id": task_id} if task_id else None
        super().__init__(message, details)
        self.task_id = task_id


class AmbiguousIDError(TickError):
    """Raised when a partial ID matches more than one task."""

    def __init__(self, message: str, prefix: str, matches: list[str]) -> None:
        super().__init__(message, {"prefix": prefix, "matches": ", ".join(matches)})
        self.prefix = prefix
        self.matches = matches


class IDGenerationError(TickError):
    """Raised when no unused task ID could be generated."""

    pass
