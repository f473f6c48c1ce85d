"""
Task store interface and the in-memory graph snapshot.

The graph engine never talks to the database. Each request loads one
GraphSnapshot (all tasks and dependency edges) and every engine operation
reads it through the TaskStore protocol:

- get_task(id)             -> TaskRecord | None
- list_dependencies(id)    -> ids the task depends on
- list_dependents(id)      -> ids depending on the task
- list_subtasks(id)        -> child ids via parent_id
- list_candidate_tasks(f)  -> tasks matching a CandidateFilter
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol

import networkx as nx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from trellis.exceptions import StoreUnavailableError
from trellis.logging_config import get_logger
from trellis.models import (
    Dependency,
    Task,
    TaskPriority,
    TaskStatus,
    TERMINAL_STATUSES,
    format_display_id,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class TaskRecord:
    """Read-only view of a task as the engine sees it."""
    id: Any
    display_id: str
    name: str
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    estimated_hours: float | None = None
    parent_id: Any = None
    category: str | None = None
    assignee: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @classmethod
    def from_model(cls, task: Task) -> "TaskRecord":
        return cls(
            id=task.id,
            display_id=task.display_id or format_display_id(task.id),
            name=task.name,
            status=TaskStatus(task.status),
            priority=TaskPriority(task.priority),
            estimated_hours=task.estimated_hours,
            parent_id=task.parent_id,
            category=task.category,
            assignee=task.assignee,
        )


@dataclass(frozen=True)
class CandidateFilter:
    """Narrows list_candidate_tasks. None means "any"."""
    statuses: frozenset[TaskStatus] | None = None
    category: str | None = None
    assignee: str | None = None

    def matches(self, task: TaskRecord) -> bool:
        if self.statuses is not None and task.status not in self.statuses:
            return False
        if self.category is not None and task.category != self.category:
            return False
        if self.assignee is not None and task.assignee != self.assignee:
            return False
        return True


class TaskStore(Protocol):
    def get_task(self, task_id: Any) -> TaskRecord | None: ...

    def list_dependencies(self, task_id: Any) -> list[Any]: ...

    def list_dependents(self, task_id: Any) -> list[Any]: ...

    def list_subtasks(self, task_id: Any) -> list[Any]: ...

    def list_candidate_tasks(self, filters: CandidateFilter) -> list[TaskRecord]: ...


@dataclass
class GraphSnapshot:
    """
    Immutable-by-convention snapshot of the task graph.

    The dependency graph is a NetworkX DiGraph with edges going from
    predecessor (blocker) to successor (blocked), the same direction as the
    dependencies table. An edge naming an unknown task still creates a bare
    node; get_task() returns None for it so traversals can skip it.
    """
    graph: nx.DiGraph = field(default_factory=nx.DiGraph)
    children: dict[Any, list[Any]] = field(default_factory=dict)

    def get_task(self, task_id: Any) -> TaskRecord | None:
        if task_id not in self.graph:
            return None
        return self.graph.nodes[task_id].get("task")

    def list_dependencies(self, task_id: Any) -> list[Any]:
        if task_id not in self.graph:
            return []
        return list(self.graph.predecessors(task_id))

    def list_dependents(self, task_id: Any) -> list[Any]:
        if task_id not in self.graph:
            return []
        return list(self.graph.successors(task_id))

    def list_subtasks(self, task_id: Any) -> list[Any]:
        return list(self.children.get(task_id, []))

    def list_candidate_tasks(self, filters: CandidateFilter) -> list[TaskRecord]:
        return [task for task in self.tasks() if filters.matches(task)]

    def tasks(self) -> list[TaskRecord]:
        """All resolvable tasks, in load order."""
        return [
            data["task"]
            for _, data in self.graph.nodes(data=True)
            if "task" in data
        ]

    def __len__(self) -> int:
        return len(self.tasks())


def build_snapshot(
    tasks: Iterable[TaskRecord],
    dependencies: Iterable[tuple[Any, Any]],
) -> GraphSnapshot:
    """
    Build a GraphSnapshot from task records and (predecessor, successor) pairs.

    Load order is preserved; it decides traversal and tie-break order.
    """
    graph = nx.DiGraph()
    children: dict[Any, list[Any]] = {}

    for task in tasks:
        graph.add_node(task.id, task=task)
        if task.parent_id is not None:
            children.setdefault(task.parent_id, []).append(task.id)

    for predecessor_id, successor_id in dependencies:
        graph.add_edge(predecessor_id, successor_id)

    return GraphSnapshot(graph=graph, children=children)


async def load_snapshot(session: AsyncSession) -> GraphSnapshot:
    """
    Load every task and dependency edge into a GraphSnapshot.

    Database errors surface as StoreUnavailableError and are not retried:
    re-running against a possibly changed graph could mix two states.
    """
    try:
        tasks_result = await session.execute(select(Task).order_by(Task.id))
        tasks = list(tasks_result.scalars().all())

        deps_result = await session.execute(
            select(Dependency).order_by(Dependency.predecessor_id, Dependency.successor_id)
        )
        dependencies = list(deps_result.scalars().all())
    except (SQLAlchemyError, OSError) as exc:
        logger.error(f"Failed to load task graph: {exc}")
        raise StoreUnavailableError(f"Could not load task graph: {exc}") from exc

    snapshot = build_snapshot(
        (TaskRecord.from_model(task) for task in tasks),
        ((dep.predecessor_id, dep.successor_id) for dep in dependencies),
    )
    logger.debug(f"Loaded snapshot: {len(tasks)} tasks, {len(dependencies)} dependencies")
    return snapshot
