"""
Store coordinator: the only entry point to the task log and its cache.

Writes go log-first through ``Store.mutate``; reads go through
``Store.query``, which rebuilds the cache first whenever its recorded
fingerprint no longer matches the log.
"""

import copy
import logging
from pathlib import Path
from typing import Callable, Self, TypeVar

from ticktrack.core.config import TickConfig
from ticktrack.core.constants import (
    TICK_DIR,
    get_cache_path,
    get_lock_path,
    get_tasks_path,
    get_tick_root,
)
from ticktrack.core.exceptions import (
    AlreadyInitializedError,
    CacheRebuildError,
    NotInitializedError,
    StorageError,
)
from ticktrack.models.task import TaskRecord
from ticktrack.storage.cache import TaskCache
from ticktrack.storage.lock import LockManager
from ticktrack.storage.log_store import LogSnapshot, LogStore
from ticktrack.storage.validation import validate_records

logger = logging.getLogger(__name__)

T = TypeVar("T")

Transform = Callable[[list[TaskRecord]], list[TaskRecord]]


class Store:
    """
    Coordinates the JSONL log, the SQLite cache and the directory lock.

    Example:
        with open_store() as store:
            store.mutate(lambda records: records + [task])
            ready = store.query(ready_tasks)
    """

    def __init__(self, tick_dir: Path, config: TickConfig | None = None) -> None:
        self._tick_dir = Path(tick_dir)
        if not self._tick_dir.is_dir():
            raise NotInitializedError(
                "Not a tick project (no .tick directory found)", path=self._tick_dir
            )
        self._config = config or TickConfig.load(self._tick_dir)
        self._log = LogStore(get_tasks_path(self._tick_dir))
        if not self._log.exists():
            raise NotInitializedError(
                "Tick directory has no task log - run 'tick init'",
                path=self._log.path,
            )
        self._cache = TaskCache(get_cache_path(self._tick_dir))
        self._lock = LockManager(
            get_lock_path(self._tick_dir),
            timeout=self._config.lock.timeout,
            poll_interval=self._config.lock.poll_interval,
        )

    @property
    def tick_dir(self) -> Path:
        """Get the tick directory this store manages."""
        return self._tick_dir

    @property
    def config(self) -> TickConfig:
        """Get the active configuration."""
        return self._config

    @property
    def log(self) -> LogStore:
        """Get the underlying log store."""
        return self._log

    @property
    def cache(self) -> TaskCache:
        """Get the underlying cache."""
        return self._cache

    def mutate(self, transform: Transform) -> list[TaskRecord]:
        """
        Apply ``transform`` to the full record set and persist the result.

        The transform receives a copy of every record and returns the
        complete replacement set. Errors raised by the transform or by
        validation leave the log untouched. Returns the persisted records.
        """
        with self._lock.acquire_exclusive():
            snapshot = self._log.read_snapshot()
            new_records = list(transform(copy.deepcopy(snapshot.records)))

            validate_records(
                new_records,
                previous=snapshot.records,
                reject_cycles=self._config.validation.reject_dependency_cycles,
            )

            fingerprint = self._log.replace_all(new_records)
            try:
                self._cache.rebuild(new_records, fingerprint)
            except (StorageError, OSError) as e:
                logger.warning("Cache rebuild failed after log write, invalidating: %s", e)
                self._cache.invalidate()
                raise CacheRebuildError(
                    f"task log saved but cache rebuild failed: {e}",
                    details={"path": str(self._cache.path)},
                ) from e

            logger.debug("Mutation persisted %d tasks", len(new_records))
            return new_records

    def query(self, fn: Callable[[TaskCache], T]) -> T:
        """
        Run ``fn`` against a cache that matches the current log.

        When the cache is already fresh ``fn`` runs without the lock, inside
        the same read transaction that confirmed freshness, so a concurrent
        rebuild cannot change or remove the rows it reads. Otherwise the
        cache is rebuilt under the lock and ``fn`` runs before the lock is
        released.
        """
        fingerprint = self._log.fingerprint()
        with self._cache.snapshot() as cached:
            if cached == fingerprint:
                logger.debug("Cache fresh (fingerprint %s)", fingerprint[:12])
                return fn(self._cache)

        with self._lock.acquire_exclusive():
            self._ensure_fresh(self._log.read_snapshot())
            return fn(self._cache)

    def rebuild(self) -> int:
        """
        Rebuild the cache from the log regardless of freshness.

        Rows are replaced in one transaction on the existing file rather
        than by deleting it, so lock-free readers keep a consistent view.
        A corrupt file is recreated by the cache. Returns the task count.
        """
        with self._lock.acquire_exclusive():
            snapshot = self._log.read_snapshot()
            count = self._cache.rebuild(snapshot.records, snapshot.fingerprint)
            logger.info("Rebuilt cache from %d tasks", count)
            return count

    def close(self) -> None:
        """Release the cache connection."""
        self._cache.close()

    def _ensure_fresh(self, snapshot: LogSnapshot) -> None:
        # Another process may have rebuilt while we waited for the lock.
        if self._cache.current_fingerprint() == snapshot.fingerprint:
            logger.debug("Cache rebuilt by another process, skipping")
            return
        logger.debug("Cache stale, rebuilding (fingerprint %s)", snapshot.fingerprint[:12])
        self._cache.rebuild(snapshot.records, snapshot.fingerprint)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def init_project(base_path: Path | None = None) -> Path:
    """Create a ``.tick`` directory with an empty task log."""
    tick_dir = get_tick_root(base_path)
    if tick_dir.exists():
        raise AlreadyInitializedError("Tick already initialized", path=tick_dir)

    tick_dir.mkdir(parents=True)
    get_tasks_path(tick_dir).touch()
    logger.info("Initialized tick project at %s", tick_dir)
    return tick_dir


def discover_tick_dir(start: Path | None = None) -> Path:
    """Walk up from ``start`` looking for a ``.tick`` directory."""
    origin = (start or Path.cwd()).resolve()
    for candidate in (origin, *origin.parents):
        tick_dir = candidate / TICK_DIR
        if tick_dir.is_dir():
            return tick_dir
    raise NotInitializedError(
        "Not a tick project (no .tick directory found)", path=origin
    )


def open_store(start: Path | None = None, config: TickConfig | None = None) -> Store:
    """Discover the enclosing tick directory and open a store over it."""
    return Store(discover_tick_dir(start), config=config)
