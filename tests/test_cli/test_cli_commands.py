"""Tests for the tick command line."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ticktrack import __version__
from ticktrack.cli.main import app

runner = CliRunner()


@pytest.fixture
def project(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Initialize a project and run commands from inside it."""
    monkeypatch.chdir(temp_dir)
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0
    return temp_dir


def _create(title: str, *args: str) -> str:
    result = runner.invoke(app, ["create", title, "--json", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)["id"]


class TestSetupCommands:
    """Tests for init, version and error reporting."""

    def test_version(self) -> None:
        """Test --version prints the package version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_init(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test init creates the tick directory."""
        monkeypatch.chdir(temp_dir)
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0
        assert (temp_dir / ".tick" / "tasks.jsonl").exists()

    def test_init_twice(self, project: Path) -> None:
        """Test a second init fails."""
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 1
        assert "Error: Tick already initialized" in result.output

    def test_outside_project(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test commands outside a project fail cleanly."""
        monkeypatch.chdir(temp_dir)
        result = runner.invoke(app, ["ready"])
        assert result.exit_code == 1
        assert "Error: Not a tick project" in result.output


class TestTaskCommands:
    """Tests for create, show, update and transitions."""

    def test_create_and_show(self, project: Path) -> None:
        """Test a created task can be shown by partial ID."""
        task_id = _create("Write docs", "-p", "1", "-d", "Explain the log")
        result = runner.invoke(app, ["show", task_id[5:9], "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["id"] == task_id
        assert data["priority"] == 1
        assert data["description"] == "Explain the log"

    def test_create_quiet_prints_id(self, project: Path) -> None:
        """Test quiet create prints only the new ID."""
        result = runner.invoke(app, ["-q", "create", "Quiet"])
        assert result.exit_code == 0
        assert result.stdout.strip().startswith("tick-")
        assert len(result.stdout.strip()) == 11

    def test_create_invalid_priority(self, project: Path) -> None:
        """Test validation errors are reported."""
        result = runner.invoke(app, ["create", "Bad", "-p", "7"])
        assert result.exit_code == 1
        assert "Error: priority must be between 0 and 4" in result.output

    def test_update(self, project: Path) -> None:
        """Test update changes the title."""
        task_id = _create("Old")
        result = runner.invoke(app, ["update", task_id, "--title", "New", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["title"] == "New"

    def test_transitions(self, project: Path) -> None:
        """Test start and done move a task through its lifecycle."""
        task_id = _create("Work")
        result = runner.invoke(app, ["start", task_id])
        assert result.exit_code == 0
        assert "open → in_progress" in result.stdout

        result = runner.invoke(app, ["done", task_id])
        assert "in_progress → done" in result.stdout

        result = runner.invoke(app, ["done", task_id])
        assert result.exit_code == 1
        assert "Error: cannot done" in result.output

    def test_reopen_and_cancel(self, project: Path) -> None:
        """Test cancel then reopen returns a task to open."""
        task_id = _create("Maybe")
        assert runner.invoke(app, ["cancel", task_id]).exit_code == 0
        result = runner.invoke(app, ["reopen", task_id])
        assert result.exit_code == 0
        assert "cancelled → open" in result.stdout


class TestQueryCommands:
    """Tests for ready, blocked, list and stats."""

    def test_ready_and_blocked(self, project: Path) -> None:
        """Test a blocked task moves to ready when its blocker is done."""
        a = _create("A")
        b = _create("B", "--blocked-by", a)

        ready = json.loads(runner.invoke(app, ["ready", "--json"]).stdout)
        blocked = json.loads(runner.invoke(app, ["blocked", "--json"]).stdout)
        assert [t["id"] for t in ready] == [a]
        assert [t["id"] for t in blocked] == [b]

        runner.invoke(app, ["done", a])
        ready = json.loads(runner.invoke(app, ["ready", "--json"]).stdout)
        assert [t["id"] for t in ready] == [b]

    def test_ready_table(self, project: Path) -> None:
        """Test the default rendering shows task IDs."""
        task_id = _create("Shown")
        result = runner.invoke(app, ["ready"])
        assert result.exit_code == 0
        assert task_id in result.stdout

    def test_ready_quiet(self, project: Path) -> None:
        """Test quiet listings print one ID per line."""
        a = _create("A")
        b = _create("B")
        result = runner.invoke(app, ["-q", "ready"])
        assert sorted(result.stdout.split()) == sorted([a, b])

    def test_list_filters(self, project: Path) -> None:
        """Test list filters by status and parent."""
        epic = _create("Epic")
        child = _create("Child", "--parent", epic)
        _create("Other")
        runner.invoke(app, ["start", child])

        result = runner.invoke(app, ["list", "--status", "in_progress", "--json"])
        assert [t["id"] for t in json.loads(result.stdout)] == [child]

        result = runner.invoke(app, ["list", "--parent", epic, "--json"])
        assert [t["id"] for t in json.loads(result.stdout)] == [child]

    def test_list_ready_and_blocked_exclusive(self, project: Path) -> None:
        """Test --ready and --blocked together are rejected."""
        result = runner.invoke(app, ["list", "--ready", "--blocked"])
        assert result.exit_code == 1
        assert "mutually exclusive" in result.output

    def test_stats(self, project: Path) -> None:
        """Test stats JSON reports totals and workflow counts."""
        a = _create("A", "-p", "0")
        _create("B", "--blocked-by", a)
        data = json.loads(runner.invoke(app, ["stats", "--json"]).stdout)
        assert data["total"] == 2
        assert data["workflow"] == {"ready": 1, "blocked": 1}
        assert data["by_priority"][0] == {"priority": 0, "count": 1}


class TestMaintenanceCommands:
    """Tests for dep, remove, rebuild and doctor."""

    def test_dep_add_and_rm(self, project: Path) -> None:
        """Test dependencies can be added and removed."""
        a = _create("A")
        b = _create("B")
        result = runner.invoke(app, ["dep", "add", b, a])
        assert result.exit_code == 0
        result = runner.invoke(app, ["dep", "add", a, b])
        assert result.exit_code == 1
        assert "creates cycle" in result.output

        result = runner.invoke(app, ["dep", "rm", b, a])
        assert result.exit_code == 0
        blocked = json.loads(runner.invoke(app, ["blocked", "--json"]).stdout)
        assert blocked == []

    def test_remove_force(self, project: Path) -> None:
        """Test remove --force deletes without prompting."""
        a = _create("A")
        b = _create("B", "--blocked-by", a)
        result = runner.invoke(app, ["remove", a, "--force"])
        assert result.exit_code == 0
        assert f"Updated dependencies on: {b}" in result.stdout

    def test_remove_prompt(self, project: Path) -> None:
        """Test remove asks for confirmation and honours the answer."""
        a = _create("A")
        result = runner.invoke(app, ["remove", a], input="n\n")
        assert result.exit_code == 1
        assert "Aborted." in result.stdout

        result = runner.invoke(app, ["remove", a], input="y\n")
        assert result.exit_code == 0
        stats = json.loads(runner.invoke(app, ["stats", "--json"]).stdout)
        assert stats["total"] == 0

    def test_rebuild(self, project: Path) -> None:
        """Test rebuild reports the task count."""
        _create("A")
        _create("B")
        (project / ".tick" / "cache.db").unlink()
        result = runner.invoke(app, ["rebuild"])
        assert result.exit_code == 0
        assert "2 tasks" in result.stdout

    def test_doctor_clean(self, project: Path) -> None:
        """Test doctor passes on a healthy project."""
        _create("A")
        result = runner.invoke(app, ["doctor", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["errors"] == 0

    def test_doctor_reports_errors(self, project: Path) -> None:
        """Test doctor exits 1 when the log is damaged."""
        _create("A")
        with open(project / ".tick" / "tasks.jsonl", "a", encoding="utf-8") as f:
            f.write("{not json\n")
        result = runner.invoke(app, ["doctor"])
        assert result.exit_code == 1
        assert "JSONL syntax" in result.stdout
