"""Pytest configuration and fixtures for tick tests."""

import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Generator

import pytest

from ticktrack.core.config import LockConfig, TickConfig
from ticktrack.core.constants import TaskStatus, get_tasks_path
from ticktrack.models.task import TaskRecord
from ticktrack.storage.coordinator import Store, init_project
from ticktrack.storage.log_store import LogStore

BASE_TIME = datetime(2026, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def tick_dir(temp_dir: Path) -> Path:
    """Create an initialized .tick directory with an empty log."""
    return init_project(temp_dir)


@pytest.fixture
def config() -> TickConfig:
    """Create a configuration with a short lock timeout."""
    return TickConfig(lock=LockConfig(timeout_ms=2000, poll_interval_ms=10))


@pytest.fixture
def store(tick_dir: Path, config: TickConfig) -> Generator[Store, None, None]:
    """Create a store over the temporary tick directory."""
    store = Store(tick_dir, config=config)
    yield store
    store.close()


@pytest.fixture
def log_store(tick_dir: Path) -> LogStore:
    """Create a log store over the temporary task log."""
    return LogStore(get_tasks_path(tick_dir))


@pytest.fixture
def make_task() -> Callable[..., TaskRecord]:
    """Factory for records with deterministic IDs and timestamps.

    Each call advances ``created`` by one minute so ordering by creation
    time follows call order.
    """
    counter = {"n": 0}

    def _make(
        task_id: str | None = None,
        title: str | None = None,
        status: TaskStatus = TaskStatus.OPEN,
        priority: int = 2,
        blocked_by: list[str] | None = None,
        parent: str = "",
        description: str = "",
    ) -> TaskRecord:
        counter["n"] += 1
        n = counter["n"]
        created = BASE_TIME + timedelta(minutes=n)
        return TaskRecord(
            id=task_id or f"tick-{n:06x}",
            title=title or f"Task {n}",
            status=status,
            priority=priority,
            description=description,
            blocked_by=blocked_by or [],
            parent=parent,
            created=created,
            updated=created,
            closed=created if status.is_closed() else None,
        )

    return _make


@pytest.fixture
def seed(store: Store) -> Callable[[list[TaskRecord]], list[TaskRecord]]:
    """Write records into the store through mutate."""

    def _seed(records: list[TaskRecord]) -> list[TaskRecord]:
        return store.mutate(lambda existing: existing + records)

    return _seed
