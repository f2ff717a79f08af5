"""
Read-only health checks over a tick directory.

Checks read the raw log leniently, so a malformed line is reported rather
than stopping the run. No lock is taken and nothing is written.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from ticktrack.core.constants import Severity, TaskStatus, get_cache_path, get_tasks_path
from ticktrack.doctor.report import CheckResult, DiagnosticReport
from ticktrack.models.task import normalize_id, validate_task_id
from ticktrack.storage.cache import TaskCache
from ticktrack.storage.log_store import compute_fingerprint
from ticktrack.storage.validation import find_cycles, format_cycle

logger = logging.getLogger(__name__)

MISSING_LOG_DETAILS = "tasks.jsonl not found"
MISSING_LOG_SUGGESTION = "Run tick init or verify .tick directory"
MANUAL_FIX = "Manual fix required"
REBUILD_SUGGESTION = "Run `tick rebuild` to refresh cache"


@dataclass
class JSONLine:
    """One non-blank log line and its parsed object, if it parsed."""

    line_num: int
    raw: str
    parsed: dict[str, Any] | None


@dataclass
class TaskRelation:
    """The relationship fields of a parseable log line."""

    id: str
    status: str
    parent: str
    blocked_by: list[str]


def scan_lines(tasks_path: Path) -> list[JSONLine] | None:
    """Read every non-blank line of the log; None if the log is missing."""
    try:
        text = tasks_path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None

    lines = []
    for line_num, raw in enumerate(text.splitlines(), start=1):
        if not raw.strip():
            continue
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        lines.append(
            JSONLine(line_num=line_num, raw=raw, parsed=parsed if isinstance(parsed, dict) else None)
        )
    return lines


def task_relations(lines: list[JSONLine]) -> list[TaskRelation]:
    """Extract relationship fields from lines that parsed and carry a string id."""
    relations = []
    for line in lines:
        data = line.parsed
        if data is None or not isinstance(data.get("id"), str) or not data["id"].strip():
            continue
        parent = data.get("parent")
        blocked_by = data.get("blocked_by")
        relations.append(
            TaskRelation(
                id=normalize_id(data["id"]),
                status=str(data.get("status", "")),
                parent=normalize_id(parent) if isinstance(parent, str) and parent.strip() else "",
                blocked_by=[
                    normalize_id(b) for b in blocked_by if isinstance(b, str) and b.strip()
                ]
                if isinstance(blocked_by, list)
                else [],
            )
        )
    return relations


def _missing_log(name: str, severity: Severity = Severity.ERROR) -> list[CheckResult]:
    return [
        CheckResult(
            name=name,
            passed=False,
            severity=severity,
            details=MISSING_LOG_DETAILS,
            suggestion=MISSING_LOG_SUGGESTION,
        )
    ]


def _failures_or_pass(name: str, failures: list[CheckResult], severity: Severity = Severity.ERROR) -> list[CheckResult]:
    return failures or [CheckResult(name=name, passed=True, severity=severity)]


# =============================================================================
# Checks
# =============================================================================

def check_cache(tick_dir: Path, lines: list[JSONLine] | None) -> list[CheckResult]:
    """Compare the cache's stored fingerprint with the log's bytes."""
    name = "Cache"
    try:
        content = get_tasks_path(tick_dir).read_bytes()
    except OSError as e:
        return [
            CheckResult(
                name=name,
                passed=False,
                details=f"tasks.jsonl not found or unreadable: {e}",
                suggestion=MISSING_LOG_SUGGESTION,
            )
        ]

    cache_path = get_cache_path(tick_dir)
    if not cache_path.exists():
        return [
            CheckResult(
                name=name,
                passed=False,
                details="cache.db not found - cache has not been built",
                suggestion=REBUILD_SUGGESTION,
            )
        ]

    cache = TaskCache(cache_path)
    try:
        stored = cache.current_fingerprint()
    finally:
        cache.close()

    if stored != compute_fingerprint(content):
        return [
            CheckResult(
                name=name,
                passed=False,
                details="cache.db is stale - hash mismatch between tasks.jsonl and cache",
                suggestion=REBUILD_SUGGESTION,
            )
        ]
    return [CheckResult(name=name, passed=True)]


def check_jsonl_syntax(tick_dir: Path, lines: list[JSONLine] | None) -> list[CheckResult]:
    """Report every line that is not a JSON object."""
    name = "JSONL syntax"
    if lines is None:
        return _missing_log(name)
    failures = []
    for line in lines:
        if line.parsed is None:
            preview = line.raw if len(line.raw) <= 80 else line.raw[:77] + "..."
            failures.append(
                CheckResult(
                    name=name,
                    passed=False,
                    details=f"Line {line.line_num}: invalid JSON - {preview}",
                    suggestion=MANUAL_FIX,
                )
            )
    return _failures_or_pass(name, failures)


def check_id_format(tick_dir: Path, lines: list[JSONLine] | None) -> list[CheckResult]:
    """Report missing IDs and IDs not of the form tick-{6 hex}."""
    name = "ID format"
    if lines is None:
        return _missing_log(name)
    failures = []
    for line in lines:
        if line.parsed is None:
            continue
        raw_id = line.parsed.get("id")
        if raw_id is None or (isinstance(raw_id, str) and not raw_id.strip()):
            details = f"Line {line.line_num}: missing id field"
        elif not isinstance(raw_id, str) or not validate_task_id(raw_id):
            details = (
                f"Line {line.line_num}: invalid ID '{raw_id}' - expected format tick-{{6 hex}}"
            )
        else:
            continue
        failures.append(CheckResult(name=name, passed=False, details=details, suggestion=MANUAL_FIX))
    return _failures_or_pass(name, failures)


def check_id_uniqueness(tick_dir: Path, lines: list[JSONLine] | None) -> list[CheckResult]:
    """Report IDs that appear on more than one line, ignoring case."""
    name = "ID uniqueness"
    if lines is None:
        return _missing_log(name)
    seen: dict[str, list[tuple[int, str]]] = {}
    for line in lines:
        if line.parsed is None or not isinstance(line.parsed.get("id"), str):
            continue
        raw_id = line.parsed["id"]
        seen.setdefault(normalize_id(raw_id), []).append((line.line_num, raw_id))

    failures = []
    for task_id, occurrences in sorted(seen.items()):
        if task_id and len(occurrences) > 1:
            where = ", ".join(f"{raw} (line {num})" for num, raw in occurrences)
            failures.append(
                CheckResult(
                    name=name,
                    passed=False,
                    details=f"Duplicate ID {task_id}: {where}",
                    suggestion=MANUAL_FIX,
                )
            )
    return _failures_or_pass(name, failures)


def check_orphaned_parents(tick_dir: Path, lines: list[JSONLine] | None) -> list[CheckResult]:
    """Report tasks whose parent does not exist."""
    name = "Orphaned parents"
    if lines is None:
        return _missing_log(name)
    relations = task_relations(lines)
    ids = {r.id for r in relations}
    failures = [
        CheckResult(
            name=name,
            passed=False,
            details=f"{r.id} references non-existent parent {r.parent}",
            suggestion=MANUAL_FIX,
        )
        for r in relations
        if r.parent and r.parent not in ids
    ]
    return _failures_or_pass(name, failures)


def check_orphaned_dependencies(tick_dir: Path, lines: list[JSONLine] | None) -> list[CheckResult]:
    """Report blockers that do not exist."""
    name = "Orphaned dependencies"
    if lines is None:
        return _missing_log(name)
    relations = task_relations(lines)
    ids = {r.id for r in relations}
    failures = [
        CheckResult(
            name=name,
            passed=False,
            details=f"{r.id} depends on non-existent task {dep}",
            suggestion=MANUAL_FIX,
        )
        for r in relations
        for dep in r.blocked_by
        if dep not in ids
    ]
    return _failures_or_pass(name, failures)


def check_self_referential(tick_dir: Path, lines: list[JSONLine] | None) -> list[CheckResult]:
    """Report tasks that list themselves as a blocker."""
    name = "Self-referential dependencies"
    if lines is None:
        return _missing_log(name)
    failures = [
        CheckResult(
            name=name,
            passed=False,
            details=f"{r.id} depends on itself",
            suggestion=MANUAL_FIX,
        )
        for r in task_relations(lines)
        if r.id in r.blocked_by
    ]
    return _failures_or_pass(name, failures)


def check_dependency_cycles(tick_dir: Path, lines: list[JSONLine] | None) -> list[CheckResult]:
    """Report each distinct blocked_by cycle once."""
    name = "Dependency cycles"
    if lines is None:
        return _missing_log(name)
    graph: dict[str, list[str]] = {}
    for r in task_relations(lines):
        # Self-references are reported by their own check.
        graph.setdefault(r.id, []).extend(dep for dep in r.blocked_by if dep != r.id)
    failures = [
        CheckResult(
            name=name,
            passed=False,
            details=f"Dependency cycle: {format_cycle(cycle)}",
            suggestion=MANUAL_FIX,
        )
        for cycle in find_cycles(graph)
    ]
    return _failures_or_pass(name, failures)


def check_child_blocked_by_parent(tick_dir: Path, lines: list[JSONLine] | None) -> list[CheckResult]:
    """Report children that list their own parent as a blocker."""
    name = "Child blocked by parent"
    if lines is None:
        return _missing_log(name)
    failures = [
        CheckResult(
            name=name,
            passed=False,
            details=f"{r.id} is blocked by its parent {r.parent}",
            suggestion=(
                "Manual fix required - child blocked by parent creates deadlock "
                "with leaf-only ready rule"
            ),
        )
        for r in task_relations(lines)
        if r.parent and r.parent in r.blocked_by
    ]
    return _failures_or_pass(name, failures)


def check_parent_done_open_children(tick_dir: Path, lines: list[JSONLine] | None) -> list[CheckResult]:
    """Warn about closed parents that still have open children."""
    name = "Parent done with open children"
    if lines is None:
        return _missing_log(name, Severity.WARNING)
    relations = task_relations(lines)
    status_by_id = {r.id: r.status for r in relations}
    active = {status.value for status in TaskStatus.active_states()}
    failures = [
        CheckResult(
            name=name,
            passed=False,
            severity=Severity.WARNING,
            details=f"{r.parent} is {status_by_id[r.parent]} but has open child {r.id}",
            suggestion="Review whether parent was completed prematurely",
        )
        for r in relations
        if r.parent
        and r.status in active
        and status_by_id.get(r.parent) == TaskStatus.DONE.value
    ]
    return _failures_or_pass(name, failures, Severity.WARNING)


Check = Callable[[Path, list[JSONLine] | None], list[CheckResult]]

ALL_CHECKS: tuple[Check, ...] = (
    check_cache,
    check_jsonl_syntax,
    check_id_format,
    check_id_uniqueness,
    check_orphaned_parents,
    check_orphaned_dependencies,
    check_self_referential,
    check_dependency_cycles,
    check_child_blocked_by_parent,
    check_parent_done_open_children,
)


def run_diagnostics(tick_dir: Path) -> DiagnosticReport:
    """Run every check against a tick directory and collect the results."""
    tick_dir = Path(tick_dir)
    lines = scan_lines(get_tasks_path(tick_dir))
    report = DiagnosticReport()
    for check in ALL_CHECKS:
        report.add(check(tick_dir, lines))
    logger.debug(
        "Diagnostics finished: %d errors, %d warnings", report.error_count, report.warning_count
    )
    return report
