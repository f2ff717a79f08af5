"""SQLite cache derived from the task log."""

import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Iterable, Sequence

from ticktrack.core.constants import FINGERPRINT_KEY
from ticktrack.core.exceptions import QueryFailureError, StorageError
from ticktrack.models.task import TaskRecord, format_timestamp

logger = logging.getLogger(__name__)

# SQL Schema
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'open',
    priority INTEGER NOT NULL DEFAULT 2,
    description TEXT,
    parent TEXT,
    created TEXT NOT NULL,
    updated TEXT NOT NULL,
    closed TEXT
);

CREATE TABLE IF NOT EXISTS dependencies (
    task_id TEXT NOT NULL,
    blocked_by TEXT NOT NULL,
    PRIMARY KEY (task_id, blocked_by)
);

CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT
);

CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);
CREATE INDEX IF NOT EXISTS idx_tasks_priority ON tasks(priority);
CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent);
CREATE INDEX IF NOT EXISTS idx_dependencies_blocked_by ON dependencies(blocked_by);
"""

INSERT_TASK_SQL = """
INSERT OR REPLACE INTO tasks (
    id, title, status, priority, description, parent, created, updated, closed
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

INSERT_DEPENDENCY_SQL = "INSERT OR IGNORE INTO dependencies (task_id, blocked_by) VALUES (?, ?)"

CORRUPTION_ERROR_NAMES = ("SQLITE_CORRUPT", "SQLITE_NOTADB")


def _task_row(record: TaskRecord) -> tuple[Any, ...]:
    return (
        record.id,
        record.title,
        record.status.value,
        record.priority,
        record.description,
        record.parent or None,
        format_timestamp(record.created),
        format_timestamp(record.updated),
        format_timestamp(record.closed) if record.closed is not None else None,
    )


def _is_corruption(error: sqlite3.Error) -> bool:
    """Check whether an error means the file is not a usable database.

    Busy, locked and constraint errors are not corruption and never
    justify discarding the cache file.
    """
    name = getattr(error, "sqlite_errorname", None) or ""
    return name.startswith(CORRUPTION_ERROR_NAMES)


class TaskCache:
    """
    Queryable SQLite index over the task log.

    The cache is never authoritative. Its rows are replaced wholesale on
    every rebuild, and the metadata table records the fingerprint of the
    log bytes the rows were built from.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize cache with database path."""
        self._db_path = Path(db_path)
        self._connection: sqlite3.Connection | None = None
        self._inode: int | None = None
        self._pinned = False

    @property
    def path(self) -> Path:
        """Get the cache database path."""
        return self._db_path

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection bound to the current cache file."""
        if (
            self._connection is not None
            and not self._pinned
            and not self._connection_is_current()
        ):
            logger.debug("Cache file %s was replaced, reconnecting", self._db_path)
            self.close()
        if self._connection is None:
            self._connection = self._create_connection()
        yield self._connection

    def _connection_is_current(self) -> bool:
        """Check the open connection still points at the file on disk."""
        try:
            return os.stat(self._db_path).st_ino == self._inode
        except OSError:
            return False

    def _create_connection(self) -> sqlite3.Connection:
        """Create and configure a database connection."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self._db_path), check_same_thread=False, isolation_level=None
        )
        conn.row_factory = sqlite3.Row
        self._inode = os.stat(self._db_path).st_ino
        return conn

    @contextmanager
    def _transaction(self) -> Generator[sqlite3.Cursor, None, None]:
        """Run a block inside one write transaction."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            try:
                yield cursor
                cursor.execute("COMMIT")
            except BaseException:
                cursor.execute("ROLLBACK")
                raise
            finally:
                cursor.close()

    def initialize(self) -> None:
        """Create tables if they don't exist, replacing a corrupt file."""
        try:
            with self._get_connection() as conn:
                conn.executescript(SCHEMA_SQL)
        except sqlite3.Error as e:
            if not _is_corruption(e):
                raise StorageError(
                    f"Failed to initialize cache: {e}",
                    details={"path": str(self._db_path)},
                ) from e
            logger.warning("Cache %s is corrupt (%s), recreating", self._db_path, e)
            self.delete()
            try:
                with self._get_connection() as conn:
                    conn.executescript(SCHEMA_SQL)
            except sqlite3.Error as retry_error:
                raise StorageError(
                    f"Failed to initialize cache: {retry_error}",
                    details={"path": str(self._db_path)},
                ) from retry_error

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            self._inode = None

    def delete(self) -> None:
        """Close the connection and remove the cache file."""
        self.close()
        for suffix in ("", "-journal"):
            Path(f"{self._db_path}{suffix}").unlink(missing_ok=True)

    def current_fingerprint(self) -> str | None:
        """
        Get the fingerprint recorded by the last rebuild.

        Returns None when the cache has never been built, the file is
        missing, or it cannot be read as a cache database.
        """
        if not self._db_path.exists():
            self.close()
            return None
        with self._get_connection() as conn:
            return self._read_fingerprint(conn)

    def _read_fingerprint(self, conn: sqlite3.Connection) -> str | None:
        try:
            row = conn.execute(
                "SELECT value FROM metadata WHERE key = ?", (FINGERPRINT_KEY,)
            ).fetchone()
        except sqlite3.Error as e:
            logger.debug("Cache fingerprint unreadable: %s", e)
            return None
        if row is None or not row["value"]:
            return None
        return str(row["value"])

    @contextmanager
    def snapshot(self) -> Generator[str | None, None, None]:
        """
        Hold one read transaction for the duration of the block.

        Yields the fingerprint that transaction sees, or None when the
        cache is missing or unreadable. Queries inside the block read the
        same committed state, and the connection is kept even if another
        process replaces or removes the file meanwhile.
        """
        if not self._db_path.exists():
            self.close()
            yield None
            return

        with self._get_connection() as conn:
            conn.execute("BEGIN")
            self._pinned = True
            try:
                yield self._read_fingerprint(conn)
            finally:
                self._pinned = False
                if conn.in_transaction:
                    conn.execute("COMMIT")

    def is_fresh(self, fingerprint: str) -> bool:
        """Check whether the cache was built from the given log fingerprint."""
        return self.current_fingerprint() == fingerprint

    def rebuild(self, records: Iterable[TaskRecord], fingerprint: str) -> int:
        """
        Replace every row with ``records`` and record ``fingerprint``.

        Runs as a single transaction on the existing file, so a failure
        leaves the previous rows and fingerprint in place and readers see
        either the old or the new state. A file found to be corrupt is
        discarded and built once more from scratch. Returns the number of
        tasks indexed.
        """
        self.initialize()
        records = list(records)
        try:
            self._replace_rows(records, fingerprint)
        except sqlite3.Error as e:
            if not _is_corruption(e):
                raise StorageError(
                    f"Failed to rebuild cache: {e}",
                    details={"path": str(self._db_path)},
                ) from e
            logger.warning("Cache %s is corrupt (%s), recreating", self._db_path, e)
            self.delete()
            self.initialize()
            try:
                self._replace_rows(records, fingerprint)
            except sqlite3.Error as retry_error:
                raise StorageError(
                    f"Failed to rebuild cache: {retry_error}",
                    details={"path": str(self._db_path)},
                ) from retry_error

        logger.debug("Rebuilt cache with %d tasks (fingerprint %s)", len(records), fingerprint[:12])
        return len(records)

    def _replace_rows(self, records: list[TaskRecord], fingerprint: str) -> None:
        with self._transaction() as cursor:
            cursor.execute("DELETE FROM tasks")
            cursor.execute("DELETE FROM dependencies")
            cursor.executemany(INSERT_TASK_SQL, [_task_row(r) for r in records])
            cursor.executemany(
                INSERT_DEPENDENCY_SQL,
                [(r.id, blocker) for r in records for blocker in r.blocked_by],
            )
            cursor.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                (FINGERPRINT_KEY, fingerprint),
            )

    def invalidate(self) -> None:
        """Forget the stored fingerprint so the next access rebuilds."""
        try:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM metadata WHERE key = ?", (FINGERPRINT_KEY,))
        except sqlite3.Error as e:
            logger.warning("Could not clear cache fingerprint (%s), deleting %s", e, self._db_path)
            self.delete()

    def run_query(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        """Execute a read-only query and return all rows."""
        try:
            with self._get_connection() as conn:
                conn.execute("PRAGMA query_only = ON")
                try:
                    return conn.execute(sql, params).fetchall()
                finally:
                    conn.execute("PRAGMA query_only = OFF")
        except sqlite3.Error as e:
            raise QueryFailureError(f"Cache query failed: {e}", sql=sql) from e

    def task_count(self) -> int:
        """Get the number of indexed tasks."""
        rows = self.run_query("SELECT COUNT(*) AS count FROM tasks")
        return int(rows[0]["count"])
