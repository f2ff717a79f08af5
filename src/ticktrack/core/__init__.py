"""Core constants, configuration and exceptions for tick."""

from ticktrack.core.config import LockConfig, LoggingConfig, TickConfig, ValidationConfig
from ticktrack.core.constants import Severity, TaskStatus
from ticktrack.core.exceptions import (
    AlreadyInitializedError,
    AmbiguousIDError,
    CacheRebuildError,
    ConfigurationError,
    CorruptLogError,
    DependencyCycleError,
    IDGenerationError,
    LockTimeoutError,
    NotInitializedError,
    QueryFailureError,
    ReferentialViolationError,
    StorageError,
    TaskNotFoundError,
    TaskValidationError,
    TickError,
    TransitionError,
)

__all__ = [
    # Enums
    "TaskStatus",
    "Severity",
    # Config
    "TickConfig",
    "LockConfig",
    "ValidationConfig",
    "LoggingConfig",
    # Exceptions
    "TickError",
    "ConfigurationError",
    "NotInitializedError",
    "AlreadyInitializedError",
    "StorageError",
    "CorruptLogError",
    "CacheRebuildError",
    "QueryFailureError",
    "LockTimeoutError",
    "TaskValidationError",
    "ReferentialViolationError",
    "DependencyCycleError",
    "TransitionError",
    "TaskNotFoundError",
    "AmbiguousIDError",
    "IDGenerationError",
]
