"""
Graph Builder: tree projections of the task graph.

This module handles:
- Dependency trees around one task (dependencies, dependents, subtasks)
- Forest view of all independent root tasks
- Tree statistics
- Creation-time cycle check for new dependency edges

The underlying graph may contain cycles. Trees are expanded depth-first from
an explicit stack while tracking the ids on the current root-to-node path;
a task that is already on that path is emitted once more, flagged
``repeated``, and not expanded again.
"""

from collections import Counter
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Iterator

import networkx as nx

from trellis.exceptions import InvalidParameterError
from trellis.logging_config import get_logger
from trellis.models import ACTIVE_STATUSES, TaskPriority, TaskStatus
from trellis.services.snapshot import CandidateFilter, GraphSnapshot, TaskRecord, TaskStore

logger = get_logger(__name__)


class RelationType(str, Enum):
    DEPENDENCIES = "dependencies"
    DEPENDENTS = "dependents"
    SUBTASKS = "subtasks"

    @property
    def label(self) -> str:
        return RELATION_LABELS[self]


RELATION_LABELS = {
    RelationType.DEPENDENCIES: "depends on",
    RelationType.DEPENDENTS: "blocks",
    RelationType.SUBTASKS: "subtask",
}


@dataclass(frozen=True)
class TreeOptions:
    """Which relations to expand and how far."""
    max_depth: int = 5
    include_dependencies: bool = True
    include_dependents: bool = False
    include_subtasks: bool = False
    max_nodes: int | None = None

    def validate(self) -> None:
        if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int):
            raise InvalidParameterError("max_depth", "max_depth must be an integer")
        if self.max_depth < 0:
            raise InvalidParameterError("max_depth", "max_depth must be >= 0")
        if self.max_nodes is not None and self.max_nodes < 1:
            raise InvalidParameterError("max_nodes", "max_nodes must be >= 1")

    @property
    def relations(self) -> list[RelationType]:
        selected = []
        if self.include_dependencies:
            selected.append(RelationType.DEPENDENCIES)
        if self.include_dependents:
            selected.append(RelationType.DEPENDENTS)
        if self.include_subtasks:
            selected.append(RelationType.SUBTASKS)
        return selected


def parse_relations(names: Iterable[str]) -> dict[str, bool]:
    """
    Map relation names to TreeOptions include flags.

    Accepts "dependencies", "dependents", "subtasks" and "all".
    """
    flags = {
        "include_dependencies": False,
        "include_dependents": False,
        "include_subtasks": False,
    }
    for raw in names:
        name = raw.strip().lower()
        if not name:
            continue
        if name == "all":
            flags = dict.fromkeys(flags, True)
            continue
        try:
            relation = RelationType(name)
        except ValueError:
            valid = ", ".join([r.value for r in RelationType] + ["all"])
            raise InvalidParameterError(
                "relations", f"Unknown relation '{raw}'; expected one of: {valid}"
            )
        flags[f"include_{relation.value}"] = True
    return flags


@dataclass
class TreeNode:
    """A task placed in a tree, with one child list per relation type."""
    id: Any
    display_id: str
    name: str
    status: TaskStatus
    priority: TaskPriority
    estimated_hours: float | None
    depth: int = 0
    relation: RelationType | None = None
    repeated: bool = False  # already on the path from the root; not expanded
    truncated: bool = False  # set on the root when max_nodes stopped expansion
    dependencies: list["TreeNode"] = field(default_factory=list)
    dependents: list["TreeNode"] = field(default_factory=list)
    subtasks: list["TreeNode"] = field(default_factory=list)

    @classmethod
    def from_task(
        cls,
        task: TaskRecord,
        depth: int = 0,
        relation: RelationType | None = None,
    ) -> "TreeNode":
        return cls(
            id=task.id,
            display_id=task.display_id,
            name=task.name,
            status=task.status,
            priority=task.priority,
            estimated_hours=task.estimated_hours,
            depth=depth,
            relation=relation,
        )

    def children_for(self, relation: RelationType) -> list["TreeNode"]:
        return getattr(self, relation.value)

    def iter_children(self) -> Iterator["TreeNode"]:
        yield from self.dependencies
        yield from self.dependents
        yield from self.subtasks

    def walk(self) -> Iterator["TreeNode"]:
        """Pre-order walk of the whole tree."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(list(node.iter_children())))


@dataclass
class TreeStats:
    total_nodes: int = 0
    max_depth: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)
    total_estimate: float = 0.0


@dataclass
class _Frame:
    node: TreeNode
    leaving: bool = False


def _related_ids(store: TaskStore, task_id: Any, relation: RelationType) -> list[Any]:
    if relation is RelationType.DEPENDENCIES:
        return store.list_dependencies(task_id)
    if relation is RelationType.DEPENDENTS:
        return store.list_dependents(task_id)
    return store.list_subtasks(task_id)


def build_dependency_tree(
    store: TaskStore,
    root_id: Any,
    options: TreeOptions | None = None,
) -> TreeNode | None:
    """
    Build a tree of related tasks around root_id.

    Returns None if root_id does not resolve. Each requested relation is
    expanded independently until max_depth is reached on that branch.
    The same task may appear in several branches; it is only cut short when
    it would repeat one of its own ancestors.
    """
    options = options or TreeOptions()
    options.validate()

    root_task = store.get_task(root_id)
    if root_task is None:
        logger.debug(f"Tree root {root_id} not found")
        return None

    relations = options.relations
    root = TreeNode.from_task(root_task)
    emitted = 1
    on_path: set[Any] = set()
    stack = [_Frame(root)]

    while stack:
        frame = stack.pop()
        node = frame.node
        if frame.leaving:
            on_path.discard(node.id)
            continue

        on_path.add(node.id)
        stack.append(_Frame(node, leaving=True))

        if node.depth >= options.max_depth or root.truncated:
            continue

        to_expand = []
        for relation in relations:
            for child_id in _related_ids(store, node.id, relation):
                if options.max_nodes is not None and emitted >= options.max_nodes:
                    root.truncated = True
                    break
                child_task = store.get_task(child_id)
                if child_task is None:
                    logger.warning(
                        f"Skipping dangling {relation.value} edge {node.id} -> {child_id}"
                    )
                    continue
                child = TreeNode.from_task(child_task, depth=node.depth + 1, relation=relation)
                node.children_for(relation).append(child)
                emitted += 1
                if child.id in on_path:
                    child.repeated = True
                    continue
                to_expand.append(child)

        # Push in reverse so the first child is expanded first
        for child in reversed(to_expand):
            stack.append(_Frame(child))

    if root.truncated:
        logger.warning(f"Tree for {root.display_id} truncated at {options.max_nodes} nodes")
    logger.debug(f"Built tree for {root.display_id}: {emitted} nodes, depth<={options.max_depth}")
    return root


def find_root_tasks(store: TaskStore) -> list[TaskRecord]:
    """Active tasks with no parent and no (resolvable) dependencies."""
    roots = []
    for task in store.list_candidate_tasks(CandidateFilter(statuses=ACTIVE_STATUSES)):
        if task.parent_id is not None:
            continue
        if any(store.get_task(dep_id) is not None for dep_id in store.list_dependencies(task.id)):
            continue
        roots.append(task)
    return roots


def build_forest(store: TaskStore, options: TreeOptions | None = None) -> list[TreeNode]:
    """
    Expand every root task on its own, following dependents and subtasks.

    A task reachable from several roots appears once per root.
    """
    options = replace(
        options or TreeOptions(),
        include_dependencies=False,
        include_dependents=True,
        include_subtasks=True,
    )
    options.validate()

    forest = []
    for task in find_root_tasks(store):
        tree = build_dependency_tree(store, task.id, options)
        if tree is not None:
            forest.append(tree)

    logger.debug(f"Built forest with {len(forest)} root tasks")
    return forest


def tree_stats(tree: TreeNode) -> TreeStats:
    """Count nodes, depth, statuses, priorities and estimates in a tree."""
    stats = TreeStats()
    by_status: Counter = Counter()
    by_priority: Counter = Counter()

    for node in tree.walk():
        stats.total_nodes += 1
        stats.max_depth = max(stats.max_depth, node.depth)
        by_status[TaskStatus(node.status).value] += 1
        by_priority[TaskPriority(node.priority).value] += 1
        if node.estimated_hours:
            stats.total_estimate += node.estimated_hours

    stats.by_status = dict(by_status)
    stats.by_priority = dict(by_priority)
    return stats


def would_create_cycle(
    snapshot: GraphSnapshot,
    predecessor_id: Any,
    successor_id: Any,
) -> bool:
    """
    Check if adding an edge (predecessor -> successor) would create a cycle.

    It would exactly when the successor already reaches the predecessor,
    i.e. the predecessor (transitively) depends on the successor.
    """
    if predecessor_id == successor_id:
        return True
    graph = snapshot.graph
    if predecessor_id not in graph or successor_id not in graph:
        return False
    return nx.has_path(graph, successor_id, predecessor_id)
