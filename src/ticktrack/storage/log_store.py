"""JSONL task log: the authoritative store."""

import hashlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from ticktrack.core.exceptions import CorruptLogError, StorageError
from ticktrack.models.task import TaskRecord

logger = logging.getLogger(__name__)


def compute_fingerprint(content: bytes) -> str:
    """Compute the content fingerprint of raw log bytes."""
    return hashlib.sha256(content).hexdigest()


def serialize_records(records: Iterable[TaskRecord]) -> bytes:
    """Serialize records to JSONL bytes, one compact object per line."""
    lines = [
        json.dumps(record.to_dict(), ensure_ascii=False, separators=(",", ":"))
        for record in records
    ]
    return "".join(f"{line}\n" for line in lines).encode("utf-8")


def parse_records(content: bytes, path: Path | None = None) -> list[TaskRecord]:
    """Parse JSONL bytes into records.

    Blank lines are skipped. Any other line that is not a valid record
    raises CorruptLogError with its 1-based line number.
    """
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CorruptLogError(f"task log is not valid UTF-8: {e}", path=path) from e

    records: list[TaskRecord] = []
    for line_num, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise CorruptLogError(
                f"line {line_num}: invalid JSON: {e.msg}", path=path, line=line_num
            ) from e
        if not isinstance(data, dict):
            raise CorruptLogError(
                f"line {line_num}: expected a JSON object", path=path, line=line_num
            )
        try:
            records.append(TaskRecord.from_dict(data))
        except ValueError as e:
            raise CorruptLogError(f"line {line_num}: {e}", path=path, line=line_num) from e
    return records


@dataclass(frozen=True)
class LogSnapshot:
    """Records parsed from one read of the log, with that read's fingerprint."""

    records: list[TaskRecord]
    fingerprint: str


class LogStore:
    """Reads and atomically rewrites the JSONL task log."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """Get the log file path."""
        return self._path

    def exists(self) -> bool:
        """Check if the log file exists."""
        return self._path.is_file()

    def read_bytes(self) -> bytes:
        """Read the raw log content."""
        try:
            return self._path.read_bytes()
        except OSError as e:
            raise StorageError(
                f"Failed to read task log: {e}", details={"path": str(self._path)}
            ) from e

    def read_snapshot(self) -> LogSnapshot:
        """Read the log once, returning both records and fingerprint."""
        content = self.read_bytes()
        return LogSnapshot(
            records=parse_records(content, self._path),
            fingerprint=compute_fingerprint(content),
        )

    def load_all(self) -> list[TaskRecord]:
        """Load every record from the log."""
        return parse_records(self.read_bytes(), self._path)

    def fingerprint(self) -> str:
        """Fingerprint the log's current bytes."""
        return compute_fingerprint(self.read_bytes())

    def replace_all(self, records: Iterable[TaskRecord]) -> str:
        """
        Rewrite the whole log with ``records``.

        Writes to a temporary file in the same directory, fsyncs, then
        renames it over the log, so readers see either the old or the new
        file. Returns the fingerprint of the written bytes.
        """
        content = serialize_records(records)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._path.parent),
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "wb") as tmp_handle:
                tmp_handle.write(content)
                tmp_handle.flush()
                os.fsync(tmp_handle.fileno())
            os.replace(tmp_path, str(self._path))
        except BaseException as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            if isinstance(e, OSError):
                raise StorageError(
                    f"Failed to write task log: {e}", details={"path": str(self._path)}
                ) from e
            raise

        fingerprint = compute_fingerprint(content)
        logger.debug("Wrote %d bytes to %s (fingerprint %s)", len(content), self._path, fingerprint[:12])
        return fingerprint
