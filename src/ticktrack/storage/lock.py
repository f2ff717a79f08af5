"""Cross-process exclusive lock over a tick directory."""

import fcntl
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from ticktrack.core.constants import DEFAULT_LOCK_POLL_INTERVAL_MS, DEFAULT_LOCK_TIMEOUT_MS
from ticktrack.core.exceptions import LockTimeoutError

logger = logging.getLogger(__name__)


class LockManager:
    """
    Advisory file lock guarding the task log and cache.

    Uses ``flock`` on a dedicated lock file. Each acquisition opens its own
    file description, so two holders in the same process contend just like
    two processes do. The lock is released by the kernel if the holder dies.
    """

    def __init__(
        self,
        lock_path: Path,
        timeout: float = DEFAULT_LOCK_TIMEOUT_MS / 1000.0,
        poll_interval: float = DEFAULT_LOCK_POLL_INTERVAL_MS / 1000.0,
    ) -> None:
        self._lock_path = Path(lock_path)
        self._timeout = timeout
        self._poll_interval = poll_interval

    @property
    def lock_path(self) -> Path:
        """Get the lock file path."""
        return self._lock_path

    @property
    def timeout(self) -> float:
        """Get the acquisition timeout in seconds."""
        return self._timeout

    @contextmanager
    def acquire_exclusive(self) -> Generator[None, None, None]:
        """
        Hold the exclusive lock for the duration of the block.

        Polls until the lock is free or the timeout elapses, then raises
        LockTimeoutError. The lock is released on every exit path.
        """
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self._lock_path, "a+")
        try:
            self._wait_for_lock(handle)
            logger.debug("Acquired lock %s", self._lock_path)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
                logger.debug("Released lock %s", self._lock_path)
        finally:
            handle.close()

    def _wait_for_lock(self, handle) -> None:
        deadline = time.monotonic() + self._timeout
        while True:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    raise LockTimeoutError(
                        "could not acquire lock - another process is using tick",
                        lock_path=self._lock_path,
                        timeout=self._timeout,
                    ) from None
                time.sleep(self._poll_interval)
