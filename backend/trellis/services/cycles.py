"""
Cycle Detector for dependency edges.

Dependency cycles are legal data (edges are created independently over time),
so finding one is a normal, reportable result rather than an error.
"""

from collections import deque
from dataclasses import dataclass
from typing import Any, Iterator

from trellis.exceptions import TaskNotFoundError
from trellis.logging_config import get_logger
from trellis.services.snapshot import TaskRecord, TaskStore

logger = get_logger(__name__)

WHITE, GRAY, BLACK = 0, 1, 2


@dataclass
class CycleDiagnostics:
    has_cycle: bool
    path: list[TaskRecord] | None = None


def require_task(store: TaskStore, task_id: Any) -> TaskRecord:
    task = store.get_task(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)
    return task


def _dependencies(store: TaskStore, task_id: Any) -> Iterator[Any]:
    for dep_id in store.list_dependencies(task_id):
        if store.get_task(dep_id) is None:
            logger.warning(f"Skipping dangling dependency {task_id} -> {dep_id}")
            continue
        yield dep_id


def has_circular_dependency(store: TaskStore, task_id: Any) -> bool:
    """
    Return True if task_id lies on a dependency cycle.

    Three-color DFS from task_id with an explicit stack. task_id stays gray
    for the whole search, so any cycle through it shows up as a back edge to
    it. Back edges to other gray nodes are cycles elsewhere and are ignored.
    Black nodes are never expanded twice.
    """
    require_task(store, task_id)

    color: dict[Any, int] = {task_id: GRAY}
    stack = [(task_id, _dependencies(store, task_id))]

    while stack:
        node, pending = stack[-1]
        for dep_id in pending:
            state = color.get(dep_id, WHITE)
            if state == GRAY:
                if dep_id == task_id:
                    logger.debug(f"Task {task_id} is on a cycle (closed by {node})")
                    return True
                continue
            if state == BLACK:
                continue
            color[dep_id] = GRAY
            stack.append((dep_id, _dependencies(store, dep_id)))
            break
        else:
            color[node] = BLACK
            stack.pop()

    return False


def find_circular_path(store: TaskStore, task_id: Any) -> list[TaskRecord] | None:
    """
    Return the shortest dependency cycle through task_id, or None.

    The path starts at task_id; each entry depends on the next one and the
    last entry depends on task_id. Breadth-first search, so every task is
    enqueued at most once.
    """
    root = require_task(store, task_id)

    came_from: dict[Any, Any] = {task_id: None}
    queue = deque([task_id])

    while queue:
        node = queue.popleft()
        for dep_id in _dependencies(store, node):
            if dep_id == task_id:
                return _reconstruct(store, came_from, node, root)
            if dep_id in came_from:
                continue
            came_from[dep_id] = node
            queue.append(dep_id)

    return None


def _reconstruct(
    store: TaskStore,
    came_from: dict[Any, Any],
    last: Any,
    root: TaskRecord,
) -> list[TaskRecord]:
    ids = []
    node = last
    while node is not None:
        ids.append(node)
        node = came_from[node]
    ids.reverse()
    path = [store.get_task(node_id) for node_id in ids]
    logger.debug(
        f"Cycle through {root.display_id}: "
        + " -> ".join(task.display_id for task in path)
    )
    return path


def cycle_diagnostics(store: TaskStore, task_id: Any) -> CycleDiagnostics:
    """Cycle flag and path for task_id in one result."""
    path = find_circular_path(store, task_id)
    return CycleDiagnostics(has_cycle=path is not None, path=path)
