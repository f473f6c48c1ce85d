"""
Critical Path Method (CPM) implementation.

For a task, looks at everything it transitively depends on and calculates:
- Critical path: the maximum-weight dependency chain ending at the task,
  weighted by estimated_hours
- Forward pass: Earliest Start (ES), Earliest Finish (EF)
- Backward pass: Latest Start (LS), Latest Finish (LF)
- Slack/Float: LS - ES

All times are in hours from the start of the chain. Tasks without an
estimate weigh 0 but stay on the path and are reported in unestimated_ids.
"""

from dataclasses import dataclass, field
from typing import Any

import networkx as nx

from trellis.exceptions import CyclicGraphError, TaskNotFoundError
from trellis.logging_config import get_logger
from trellis.services.snapshot import TaskRecord, TaskStore

logger = get_logger(__name__)

SLACK_EPSILON = 1e-9


@dataclass
class TaskSchedule:
    """CPM results for a single task."""
    task_id: Any
    display_id: str
    duration_hours: float
    # Forward pass results
    earliest_start: float
    earliest_finish: float
    # Backward pass results
    latest_start: float
    latest_finish: float
    # Slack
    slack: float  # Hours of slack (0 = critical)
    is_critical: bool


@dataclass
class CriticalPathResult:
    """Longest dependency chain ending at a task."""
    task_id: Any
    path: list[TaskRecord]
    total_hours: float
    unestimated_ids: list[Any] = field(default_factory=list)
    schedule: list[TaskSchedule] = field(default_factory=list)

    @property
    def path_ids(self) -> list[Any]:
        return [task.id for task in self.path]


def _weight(task: TaskRecord) -> float:
    return float(task.estimated_hours or 0.0)


def build_dependency_subgraph(store: TaskStore, task_id: Any) -> nx.DiGraph:
    """
    Collect task_id and everything it transitively depends on.

    Returns a DiGraph with edges from predecessor to successor and the
    TaskRecord stored on each node. Uses an explicit stack and a visited set,
    so it terminates on cyclic data.
    """
    graph = nx.DiGraph()
    root = store.get_task(task_id)
    if root is None:
        raise TaskNotFoundError(task_id)

    graph.add_node(task_id, task=root)
    stack = [task_id]
    while stack:
        node = stack.pop()
        for dep_id in store.list_dependencies(node):
            dep_task = store.get_task(dep_id)
            if dep_task is None:
                logger.warning(f"Skipping dangling dependency {node} -> {dep_id}")
                continue
            if dep_id not in graph:
                graph.add_node(dep_id, task=dep_task)
                stack.append(dep_id)
            graph.add_edge(dep_id, node)

    return graph


def calculate_critical_path(store: TaskStore, task_id: Any) -> CriticalPathResult:
    """
    Find the heaviest dependency chain ending at task_id.

    Raises TaskNotFoundError for an unknown task and CyclicGraphError when
    the dependencies reachable from task_id contain a cycle.
    """
    graph = build_dependency_subgraph(store, task_id)

    try:
        topo_order = list(nx.topological_sort(graph))
    except nx.NetworkXUnfeasible:
        cycle = [edge[0] for edge in nx.find_cycle(graph)]
        logger.warning(f"Cycle detected below task {task_id}: {cycle}")
        raise CyclicGraphError(task_id, cycle)

    position = {node_id: index for index, node_id in enumerate(topo_order)}

    # =========================================================================
    # Heaviest chain: best[n] = weight(n) + max(best[p] for p in predecessors)
    # =========================================================================
    best: dict[Any, float] = {}
    chosen: dict[Any, Any] = {}

    for node_id in topo_order:
        predecessors = sorted(graph.predecessors(node_id), key=position.__getitem__)
        best_pred = None
        best_pred_weight = 0.0
        for pred_id in predecessors:
            # Strict comparison keeps the earliest predecessor on ties
            if best_pred is None or best[pred_id] > best_pred_weight:
                best_pred = pred_id
                best_pred_weight = best[pred_id]
        best[node_id] = _weight(graph.nodes[node_id]["task"]) + best_pred_weight
        chosen[node_id] = best_pred

    # Every node reaches task_id, so the maximum is task_id itself;
    # on ties the later node in topological order wins.
    end_node = topo_order[0]
    for node_id in topo_order:
        if best[node_id] >= best[end_node]:
            end_node = node_id

    path_ids = []
    node_id = end_node
    while node_id is not None:
        path_ids.append(node_id)
        node_id = chosen[node_id]
    path_ids.reverse()

    path = [graph.nodes[node_id]["task"] for node_id in path_ids]
    total_hours = sum(_weight(task) for task in path)
    unestimated = [task.id for task in path if task.estimated_hours is None]
    if unestimated:
        logger.debug(f"Critical path for {task_id} has {len(unestimated)} unestimated tasks")

    return CriticalPathResult(
        task_id=task_id,
        path=path,
        total_hours=total_hours,
        unestimated_ids=unestimated,
        schedule=_calculate_schedule(graph, topo_order),
    )


def _calculate_schedule(graph: nx.DiGraph, topo_order: list[Any]) -> list[TaskSchedule]:
    """
    Calculate CPM forward and backward passes.

    Forward Pass: Calculate Earliest Start (ES) and Earliest Finish (EF)
    Backward Pass: Calculate Latest Start (LS) and Latest Finish (LF)
    """
    es: dict[Any, float] = {}
    ef: dict[Any, float] = {}

    # =========================================================================
    # Forward Pass: ES = max(EF of all predecessors), EF = ES + duration
    # =========================================================================
    for node_id in topo_order:
        predecessors = list(graph.predecessors(node_id))
        es[node_id] = max((ef[p] for p in predecessors), default=0.0)
        ef[node_id] = es[node_id] + _weight(graph.nodes[node_id]["task"])

    project_end = max(ef.values(), default=0.0)

    # =========================================================================
    # Backward Pass: LF = min(LS of all successors), LS = LF - duration
    # =========================================================================
    ls: dict[Any, float] = {}
    lf: dict[Any, float] = {}

    for node_id in reversed(topo_order):
        successors = list(graph.successors(node_id))
        lf[node_id] = min((ls[s] for s in successors), default=project_end)
        ls[node_id] = lf[node_id] - _weight(graph.nodes[node_id]["task"])

    # =========================================================================
    # Slack and critical flags
    # =========================================================================
    schedule = []
    for node_id in topo_order:
        task = graph.nodes[node_id]["task"]
        slack = ls[node_id] - es[node_id]
        schedule.append(TaskSchedule(
            task_id=node_id,
            display_id=task.display_id,
            duration_hours=_weight(task),
            earliest_start=es[node_id],
            earliest_finish=ef[node_id],
            latest_start=ls[node_id],
            latest_finish=lf[node_id],
            slack=slack,
            is_critical=abs(slack) < SLACK_EPSILON,
        ))

    return schedule
