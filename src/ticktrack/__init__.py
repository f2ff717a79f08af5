"""ticktrack - a local task tracker built on a JSONL log and a SQLite cache."""

__version__ = "0.1.0"

from ticktrack.core.config import TickConfig
from ticktrack.core.constants import TaskStatus
from ticktrack.models.task import TaskRecord
from ticktrack.storage.coordinator import Store, discover_tick_dir, init_project, open_store

__all__ = [
    "__version__",
    "Store",
    "TaskRecord",
    "TaskStatus",
    "TickConfig",
    "discover_tick_dir",
    "init_project",
    "open_store",
]
