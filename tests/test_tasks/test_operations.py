"""Tests for task operations."""

import pytest

from ticktrack.core.constants import TaskStatus
from ticktrack.core.exceptions import (
    AmbiguousIDError,
    DependencyCycleError,
    ReferentialViolationError,
    TaskNotFoundError,
    TaskValidationError,
    TransitionError,
)
from ticktrack.graph.queries import ready_tasks
from ticktrack.storage.coordinator import Store
from ticktrack.tasks.operations import (
    add_dependency,
    create_task,
    remove_dependency,
    remove_task,
    resolve_id,
    transition_task,
    update_task,
)


def _by_id(store: Store) -> dict:
    return {record.id: record for record in store.log.load_all()}


class TestResolveID:
    """Tests for partial ID resolution."""

    @pytest.fixture
    def seeded(self, seed, make_task):
        seed([
            make_task(task_id="tick-a3f1b2"),
            make_task(task_id="tick-a3f1b3"),
            make_task(task_id="tick-c00ffe"),
        ])

    def test_full_id(self, store: Store, seeded) -> None:
        """Test a full ID resolves to itself even when it prefixes nothing else."""
        assert resolve_id(store, "tick-a3f1b2") == "tick-a3f1b2"

    def test_unique_prefix(self, store: Store, seeded) -> None:
        """Test a unique three-character prefix resolves."""
        assert resolve_id(store, "c00") == "tick-c00ffe"
        assert resolve_id(store, "TICK-C00F") == "tick-c00ffe"

    def test_ambiguous_prefix(self, store: Store, seeded) -> None:
        """Test a prefix matching several tasks lists them."""
        with pytest.raises(AmbiguousIDError) as exc_info:
            resolve_id(store, "a3f")
        assert exc_info.value.matches == ["tick-a3f1b2", "tick-a3f1b3"]
        assert "ambiguous" in exc_info.value.message

    def test_too_short(self, store: Store, seeded) -> None:
        """Test prefixes under three characters are rejected."""
        with pytest.raises(TaskValidationError, match="at least 3"):
            resolve_id(store, "tick-a3")

    def test_not_found_keeps_input(self, store: Store, seeded) -> None:
        """Test the not-found message echoes the original input."""
        with pytest.raises(TaskNotFoundError) as exc_info:
            resolve_id(store, "TICK-ZZZ")
        assert exc_info.value.message == "task 'TICK-ZZZ' not found"


class TestCreateAndUpdate:
    """Tests for create_task and update_task."""

    def test_create_defaults(self, store: Store) -> None:
        """Test a created task is open at priority 2."""
        record = create_task(store, "  Write docs ")
        stored = _by_id(store)[record.id]
        assert stored.title == "Write docs"
        assert stored.status == TaskStatus.OPEN
        assert stored.priority == 2

    def test_create_with_relations(self, store: Store) -> None:
        """Test blocked_by, blocks and parent are wired on create."""
        epic = create_task(store, "Epic")
        first = create_task(store, "First", parent=epic.id)
        later = create_task(store, "Later")
        middle = create_task(
            store, "Middle", blocked_by=[first.id], blocks=[later.id], parent=epic.id[5:]
        )

        records = _by_id(store)
        assert records[middle.id].blocked_by == [first.id]
        assert records[middle.id].parent == epic.id
        assert records[later.id].blocked_by == [middle.id]

    def test_create_invalid_title(self, store: Store) -> None:
        """Test invalid titles are rejected before anything is written."""
        with pytest.raises(TaskValidationError):
            create_task(store, "   ")
        assert store.log.load_all() == []

    def test_create_unknown_blocker(self, store: Store) -> None:
        """Test an unknown blocker reference fails."""
        with pytest.raises(TaskNotFoundError):
            create_task(store, "x", blocked_by=["tick-ffffff"])

    def test_update_fields(self, store: Store) -> None:
        """Test update changes only the given fields."""
        record = create_task(store, "Old", description="keep")
        updated = update_task(store, record.id, title="New", priority=0)
        assert updated.title == "New"
        assert updated.priority == 0
        assert updated.description == "keep"

    def test_update_clears_parent(self, store: Store) -> None:
        """Test an empty parent clears it."""
        epic = create_task(store, "Epic")
        child = create_task(store, "Child", parent=epic.id)
        assert update_task(store, child.id, parent="").parent == ""

    def test_update_requires_change(self, store: Store) -> None:
        """Test update with nothing to change fails."""
        record = create_task(store, "x")
        with pytest.raises(TaskValidationError, match="at least one"):
            update_task(store, record.id)

    def test_update_self_parent(self, store: Store) -> None:
        """Test a task cannot become its own parent."""
        record = create_task(store, "x")
        with pytest.raises(ReferentialViolationError):
            update_task(store, record.id, parent=record.id)


class TestTransitions:
    """Tests for transition_task."""

    def test_lifecycle(self, store: Store) -> None:
        """Test start, done and reopen update status and closed."""
        record = create_task(store, "x")
        transition_task(store, record.id, "start")
        done, result = transition_task(store, record.id, "done")
        assert result.old_status == TaskStatus.IN_PROGRESS
        assert done.closed is not None

        reopened, _ = transition_task(store, record.id, "reopen")
        assert reopened.status == TaskStatus.OPEN
        assert _by_id(store)[record.id].closed is None

    def test_invalid_transition_keeps_log(self, store: Store) -> None:
        """Test a rejected transition writes nothing."""
        record = create_task(store, "x")
        before = store.log.path.read_bytes()
        with pytest.raises(TransitionError):
            transition_task(store, record.id, "reopen")
        assert store.log.path.read_bytes() == before


class TestDependencies:
    """Tests for dependency add/remove."""

    def test_add_and_remove(self, store: Store) -> None:
        """Test a dependency can be added and removed."""
        a = create_task(store, "A")
        b = create_task(store, "B")
        add_dependency(store, b.id, a.id)
        assert [t.id for t in store.query(ready_tasks)] == [a.id]

        remove_dependency(store, b.id, a.id[5:8])
        assert _by_id(store)[b.id].blocked_by == []

    def test_add_duplicate(self, store: Store) -> None:
        """Test adding the same dependency twice fails."""
        a = create_task(store, "A")
        b = create_task(store, "B", blocked_by=[a.id])
        with pytest.raises(TaskValidationError, match="already"):
            add_dependency(store, b.id, a.id)

    def test_add_self(self, store: Store) -> None:
        """Test a task cannot block itself."""
        a = create_task(store, "A")
        with pytest.raises(ReferentialViolationError):
            add_dependency(store, a.id, a.id)

    def test_add_cycle(self, store: Store) -> None:
        """Test a dependency closing a cycle is rejected."""
        a = create_task(store, "A")
        b = create_task(store, "B", blocked_by=[a.id])
        c = create_task(store, "C", blocked_by=[b.id])
        with pytest.raises(DependencyCycleError) as exc_info:
            add_dependency(store, a.id, c.id)
        assert exc_info.value.cycle == [a.id, c.id, b.id, a.id]

    def test_add_parent_as_blocker(self, store: Store) -> None:
        """Test a child cannot be blocked by its parent."""
        epic = create_task(store, "Epic")
        child = create_task(store, "Child", parent=epic.id)
        with pytest.raises(ReferentialViolationError, match="parent"):
            add_dependency(store, child.id, epic.id)

    def test_remove_missing(self, store: Store) -> None:
        """Test removing a dependency that is not there fails."""
        a = create_task(store, "A")
        b = create_task(store, "B")
        with pytest.raises(TaskValidationError, match="not a dependency"):
            remove_dependency(store, b.id, a.id)


class TestRemove:
    """Tests for remove_task."""

    def test_remove_strips_references(self, store: Store) -> None:
        """Test removed IDs disappear from other tasks' blockers."""
        a = create_task(store, "A")
        b = create_task(store, "B", blocked_by=[a.id])
        result = remove_task(store, [a.id])

        assert result.removed == [(a.id, "A")]
        assert result.deps_updated == [b.id]
        assert _by_id(store)[b.id].blocked_by == []

    def test_remove_several(self, store: Store) -> None:
        """Test several tasks are removed in one mutation."""
        a = create_task(store, "A")
        b = create_task(store, "B")
        c = create_task(store, "C")
        remove_task(store, [a.id, b.id])
        assert list(_by_id(store)) == [c.id]

    def test_remove_parent_with_children(self, store: Store) -> None:
        """Test a parent with remaining children is kept."""
        epic = create_task(store, "Epic")
        create_task(store, "Child", parent=epic.id)
        with pytest.raises(ReferentialViolationError, match="children"):
            remove_task(store, [epic.id])
        assert len(store.log.load_all()) == 2

    def test_remove_parent_with_children_together(self, store: Store) -> None:
        """Test a parent can go when its children go with it."""
        epic = create_task(store, "Epic")
        child = create_task(store, "Child", parent=epic.id)
        remove_task(store, [epic.id, child.id])
        assert store.log.load_all() == []

    def test_remove_unknown(self, store: Store) -> None:
        """Test removing an unknown task fails."""
        with pytest.raises(TaskNotFoundError):
            remove_task(store, ["tick-ffffff"])
