"""Tick system constants and default values."""

from enum import Enum
from pathlib import Path
from typing import Final


class TaskStatus(str, Enum):
    """Lifecycle status of a task."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"

    @classmethod
    def closed_states(cls) -> tuple["TaskStatus", ...]:
        """Return states that count as resolved."""
        return (cls.DONE, cls.CANCELLED)

    @classmethod
    def active_states(cls) -> tuple["TaskStatus", ...]:
        """Return states that still need work."""
        return (cls.OPEN, cls.IN_PROGRESS)

    def is_closed(self) -> bool:
        """Check if this status is done or cancelled."""
        return self in self.closed_states()


class Severity(str, Enum):
    """Severity of a diagnostic finding."""

    ERROR = "error"
    WARNING = "warning"


# Directory structure
TICK_DIR: Final[str] = ".tick"
TASKS_FILE: Final[str] = "tasks.jsonl"
CACHE_FILE: Final[str] = "cache.db"
LOCK_FILE: Final[str] = "lock"
CONFIG_FILE: Final[str] = "config.json"

# Task IDs
TASK_ID_PREFIX: Final[str] = "tick-"
TASK_ID_RANDOM_BYTES: Final[int] = 3
TASK_ID_PATTERN: Final[str] = r"^tick-[0-9a-f]{6}$"
MAX_ID_RETRIES: Final[int] = 5

# Field limits
MAX_TITLE_LENGTH: Final[int] = 500
MIN_PRIORITY: Final[int] = 0
MAX_PRIORITY: Final[int] = 4
DEFAULT_PRIORITY: Final[int] = 2
PRIORITY_LEVELS: Final[tuple[int, ...]] = tuple(range(MIN_PRIORITY, MAX_PRIORITY + 1))

# Timestamps are UTC with second precision
TIMESTAMP_FORMAT: Final[str] = "%Y-%m-%dT%H:%M:%SZ"

# Locking
DEFAULT_LOCK_TIMEOUT_MS: Final[int] = 5000
DEFAULT_LOCK_POLL_INTERVAL_MS: Final[int] = 50
LOCK_TIMEOUT_ENV: Final[str] = "TICK_LOCK_TIMEOUT_MS"

# Cache metadata
FINGERPRINT_KEY: Final[str] = "jsonl_hash"

DEFAULT_LOG_LEVEL: Final[str] = "warning"


def get_tick_root(base_path: Path | None = None) -> Path:
    """Get the .tick directory path."""
    if base_path is None:
        base_path = Path.cwd()
    return base_path / TICK_DIR


def get_tasks_path(tick_dir: Path) -> Path:
    """Get the JSONL log path inside a tick directory."""
    return tick_dir / TASKS_FILE


def get_cache_path(tick_dir: Path) -> Path:
    """Get the SQLite cache path inside a tick directory."""
    return tick_dir / CACHE_FILE


def get_lock_path(tick_dir: Path) -> Path:
    """Get the lock file path inside a tick directory."""
    return tick_dir / LOCK_FILE


def get_config_path(tick_dir: Path) -> Path:
    """Get the config file path inside a tick directory."""
    return tick_dir / CONFIG_FILE
