"""
Test the in-memory graph snapshot and loading it from the database.
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from trellis.exceptions import StoreUnavailableError
from trellis.models import Dependency, Task, TaskStatus
from trellis.services.snapshot import CandidateFilter, load_snapshot


class TestGraphSnapshot:

    def test_edge_directions(self, make_snapshot):
        # A depends on B and C
        snapshot = make_snapshot({"A": {}, "B": {}, "C": {}}, [("B", "A"), ("C", "A")])

        assert snapshot.list_dependencies("A") == ["B", "C"]
        assert snapshot.list_dependents("B") == ["A"]
        assert snapshot.list_dependents("A") == []

    def test_unknown_ids(self, make_snapshot):
        snapshot = make_snapshot({"A": {}})

        assert snapshot.get_task("NOPE") is None
        assert snapshot.list_dependencies("NOPE") == []
        assert snapshot.list_dependents("NOPE") == []
        assert snapshot.list_subtasks("NOPE") == []

    def test_dangling_edge_endpoint_is_not_a_task(self, make_snapshot):
        snapshot = make_snapshot({"A": {}}, [("GHOST", "A")])

        assert snapshot.list_dependencies("A") == ["GHOST"]
        assert snapshot.get_task("GHOST") is None
        assert [task.id for task in snapshot.tasks()] == ["A"]
        assert len(snapshot) == 1

    def test_subtasks(self, make_snapshot):
        snapshot = make_snapshot({"P": {}, "C1": {"parent": "P"}, "C2": {"parent": "P"}})

        assert snapshot.list_subtasks("P") == ["C1", "C2"]

    def test_candidate_filter(self, make_snapshot):
        snapshot = make_snapshot({
            "A": {"category": "backend"},
            "B": {"category": "backend", "status": "completed"},
            "C": {"category": "docs"},
        })

        todo_backend = CandidateFilter(
            statuses=frozenset({TaskStatus.TODO}),
            category="backend",
        )

        assert [task.id for task in snapshot.list_candidate_tasks(todo_backend)] == ["A"]
        assert len(snapshot.list_candidate_tasks(CandidateFilter())) == 3


class FailingSession:
    """Session stand-in whose queries fail like a dropped connection."""

    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))


class TestLoadSnapshot:

    @pytest.mark.asyncio
    async def test_loads_tasks_and_edges(self, test_session):
        a = Task(name="A", estimated_hours=2)
        b = Task(name="B", status=TaskStatus.COMPLETED)
        test_session.add_all([a, b])
        await test_session.flush()
        c = Task(name="C", parent_id=a.id)
        test_session.add(c)
        test_session.add(Dependency(predecessor_id=b.id, successor_id=a.id))
        await test_session.commit()

        snapshot = await load_snapshot(test_session)

        assert len(snapshot) == 3
        assert snapshot.list_dependencies(a.id) == [b.id]
        assert snapshot.list_subtasks(a.id) == [c.id]

        record = snapshot.get_task(a.id)
        assert record.name == "A"
        assert record.estimated_hours == 2
        # Rows without a stored display_id fall back to the derived one
        assert record.display_id == f"TASK-{a.id:03d}"
        assert snapshot.get_task(b.id).is_completed

    @pytest.mark.asyncio
    async def test_database_error_is_store_unavailable(self):
        with pytest.raises(StoreUnavailableError) as exc_info:
            await load_snapshot(FailingSession())

        assert exc_info.value.status_code == 503
        assert isinstance(exc_info.value.__cause__, OperationalError)


class TestTimestamps:

    def test_defaults_are_timezone_aware_utc(self):
        task = Task(name="A")
        dependency = Dependency(predecessor_id=1, successor_id=2)

        for value in (task.created_at, task.updated_at, dependency.created_at):
            assert value.tzinfo is not None
            assert value.utcoffset() == timedelta(0)
