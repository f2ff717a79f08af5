"""Tests for doctor diagnostics."""

import json
from pathlib import Path

import pytest

from ticktrack.core.constants import Severity, TaskStatus, get_tasks_path
from ticktrack.doctor import run_diagnostics
from ticktrack.doctor.checks import (
    check_cache,
    check_child_blocked_by_parent,
    check_dependency_cycles,
    check_id_format,
    check_id_uniqueness,
    check_jsonl_syntax,
    check_orphaned_dependencies,
    check_orphaned_parents,
    check_parent_done_open_children,
    check_self_referential,
    scan_lines,
)
from ticktrack.storage.coordinator import Store


def _write_lines(tick_dir: Path, lines: list) -> None:
    text = "".join(
        (line if isinstance(line, str) else json.dumps(line)) + "\n" for line in lines
    )
    get_tasks_path(tick_dir).write_text(text, encoding="utf-8")


def _run(check, tick_dir: Path):
    return check(tick_dir, scan_lines(get_tasks_path(tick_dir)))


def _failures(results):
    return [r for r in results if not r.passed]


class TestCacheCheck:
    """Tests for the cache freshness check."""

    def test_missing_cache(self, tick_dir: Path) -> None:
        """Test an unbuilt cache fails with a rebuild suggestion."""
        results = _run(check_cache, tick_dir)
        assert not results[0].passed
        assert "not found" in results[0].details
        assert "tick rebuild" in results[0].suggestion

    def test_fresh_cache(self, store: Store, seed, make_task) -> None:
        """Test a cache built from the current log passes."""
        seed([make_task()])
        assert _run(check_cache, store.tick_dir)[0].passed

    def test_stale_cache(self, store: Store, seed, make_task) -> None:
        """Test a cache built from older bytes fails as stale."""
        seed([make_task()])
        store.log.replace_all([make_task(), make_task()])
        results = _run(check_cache, store.tick_dir)
        assert "stale" in results[0].details

    def test_missing_log(self, temp_dir: Path) -> None:
        """Test a missing log fails every check."""
        tick_dir = temp_dir / ".tick"
        tick_dir.mkdir()
        report = run_diagnostics(tick_dir)
        assert all(not r.passed for r in report.results)
        assert report.error_count == len(report.results) - 1
        assert report.warning_count == 1


class TestLogChecks:
    """Tests for checks over the raw log."""

    def test_clean_log_passes(self, store: Store, seed, make_task) -> None:
        """Test a valid project reports no problems."""
        parent = make_task(task_id="tick-aaaaaa")
        seed([parent, make_task(parent="tick-aaaaaa"), make_task(blocked_by=["tick-aaaaaa"])])
        report = run_diagnostics(store.tick_dir)
        assert report.failures == []
        assert not report.has_errors

    def test_jsonl_syntax(self, tick_dir: Path) -> None:
        """Test each malformed line is reported with its number."""
        _write_lines(tick_dir, [{"id": "tick-aaaaaa"}, "{oops", "", "nope"])
        failures = _failures(_run(check_jsonl_syntax, tick_dir))
        assert [f.details.split(":")[0] for f in failures] == ["Line 2", "Line 4"]

    def test_id_format(self, tick_dir: Path) -> None:
        """Test missing and malformed IDs are reported."""
        _write_lines(tick_dir, [{"id": "tick-aaaaaa"}, {"title": "no id"}, {"id": "task-1"}])
        details = [f.details for f in _failures(_run(check_id_format, tick_dir))]
        assert details[0] == "Line 2: missing id field"
        assert "invalid ID 'task-1'" in details[1]

    def test_id_uniqueness(self, tick_dir: Path) -> None:
        """Test case-insensitive duplicates are reported once per ID."""
        _write_lines(tick_dir, [{"id": "tick-aaaaaa"}, {"id": "TICK-AAAAAA"}, {"id": "tick-bbbbbb"}])
        failures = _failures(_run(check_id_uniqueness, tick_dir))
        assert len(failures) == 1
        assert "tick-aaaaaa" in failures[0].details

    def test_orphans(self, tick_dir: Path) -> None:
        """Test dangling parents and blockers are reported."""
        _write_lines(tick_dir, [
            {"id": "tick-aaaaaa", "parent": "tick-ffffff"},
            {"id": "tick-bbbbbb", "blocked_by": ["tick-aaaaaa", "tick-eeeeee"]},
        ])
        parents = _failures(_run(check_orphaned_parents, tick_dir))
        deps = _failures(_run(check_orphaned_dependencies, tick_dir))
        assert parents[0].details == "tick-aaaaaa references non-existent parent tick-ffffff"
        assert deps[0].details == "tick-bbbbbb depends on non-existent task tick-eeeeee"
        assert len(deps) == 1

    def test_self_reference(self, tick_dir: Path) -> None:
        """Test a task blocking itself is reported."""
        _write_lines(tick_dir, [{"id": "tick-aaaaaa", "blocked_by": ["tick-aaaaaa"]}])
        failures = _failures(_run(check_self_referential, tick_dir))
        assert failures[0].details == "tick-aaaaaa depends on itself"
        assert _run(check_dependency_cycles, tick_dir)[0].passed

    def test_cycles_reported_once(self, tick_dir: Path) -> None:
        """Test each distinct cycle yields one result."""
        _write_lines(tick_dir, [
            {"id": "tick-aaaaaa", "blocked_by": ["tick-bbbbbb"]},
            {"id": "tick-bbbbbb", "blocked_by": ["tick-aaaaaa"]},
            {"id": "tick-cccccc", "blocked_by": ["tick-dddddd"]},
            {"id": "tick-dddddd", "blocked_by": ["tick-eeeeee"]},
            {"id": "tick-eeeeee", "blocked_by": ["tick-cccccc"]},
        ])
        failures = _failures(_run(check_dependency_cycles, tick_dir))
        assert [f.details for f in failures] == [
            "Dependency cycle: tick-aaaaaa → tick-bbbbbb → tick-aaaaaa",
            "Dependency cycle: tick-cccccc → tick-dddddd → tick-eeeeee → tick-cccccc",
        ]

    def test_child_blocked_by_parent(self, tick_dir: Path) -> None:
        """Test a child blocked by its parent is an error."""
        _write_lines(tick_dir, [
            {"id": "tick-aaaaaa"},
            {"id": "tick-bbbbbb", "parent": "tick-aaaaaa", "blocked_by": ["tick-aaaaaa"]},
        ])
        failures = _failures(_run(check_child_blocked_by_parent, tick_dir))
        assert failures[0].severity == Severity.ERROR
        assert failures[0].details == "tick-bbbbbb is blocked by its parent tick-aaaaaa"

    def test_parent_done_open_children_is_warning(self, tick_dir: Path) -> None:
        """Test a done parent with an open child is only a warning."""
        _write_lines(tick_dir, [
            {"id": "tick-aaaaaa", "status": TaskStatus.DONE.value},
            {"id": "tick-bbbbbb", "status": "open", "parent": "tick-aaaaaa"},
            {"id": "tick-cccccc", "status": "done", "parent": "tick-aaaaaa"},
        ])
        failures = _failures(_run(check_parent_done_open_children, tick_dir))
        assert len(failures) == 1
        assert failures[0].severity == Severity.WARNING
        assert "open child tick-bbbbbb" in failures[0].details


class TestReport:
    """Tests for the aggregated report."""

    def test_counts_and_json(self, tick_dir: Path) -> None:
        """Test error and warning counts and JSON shape."""
        _write_lines(tick_dir, [
            {"id": "tick-aaaaaa", "status": "done"},
            {"id": "tick-bbbbbb", "status": "open", "parent": "tick-aaaaaa"},
            "{bad",
        ])
        report = run_diagnostics(tick_dir)
        # cache missing + bad JSON line
        assert report.error_count == 2
        assert report.warning_count == 1
        assert report.has_errors
        data = report.to_dict()
        assert data["errors"] == 2
        assert len(data["results"]) == len(report.results)

    def test_diagnostics_do_not_write(self, tick_dir: Path) -> None:
        """Test diagnostics leave the directory untouched."""
        _write_lines(tick_dir, [{"id": "tick-aaaaaa"}])
        before = sorted(p.name for p in tick_dir.iterdir())
        content = get_tasks_path(tick_dir).read_bytes()
        run_diagnostics(tick_dir)
        assert sorted(p.name for p in tick_dir.iterdir()) == before
        assert get_tasks_path(tick_dir).read_bytes() == content


@pytest.mark.parametrize(
    "check",
    [check_jsonl_syntax, check_id_format, check_orphaned_parents, check_dependency_cycles],
)
def test_checks_pass_on_empty_log(tick_dir: Path, check) -> None:
    """Test an empty log passes structural checks."""
    assert _run(check, tick_dir)[0].passed
