"""Log, cache, lock and coordinator for the tick store."""

from ticktrack.storage.cache import TaskCache
from ticktrack.storage.coordinator import Store, discover_tick_dir, init_project, open_store
from ticktrack.storage.lock import LockManager
from ticktrack.storage.log_store import LogSnapshot, LogStore, compute_fingerprint
from ticktrack.storage.validation import find_cycles, validate_records

__all__ = [
    "Store",
    "TaskCache",
    "LockManager",
    "LogStore",
    "LogSnapshot",
    "compute_fingerprint",
    "validate_records",
    "find_cycles",
    "init_project",
    "discover_tick_dir",
    "open_store",
]
