"""
Readiness Scorer: which tasks can be started now, and in what order.

A task is ready when its status is todo and every task it depends on is
completed. Readiness is recomputed from the snapshot on every call.

Ranking, strongest criterion first:
1. declared priority (high > medium > low)
2. dependents_count (more active tasks waiting on it ranks higher)
3. estimated_hours ascending (quick wins first, unestimated last)

priority_score is a display value built from configurable weights. The sort
uses the criteria above directly and the score is shaped to agree with it
for any valid weights. Full ties fall back to display_id, shorter first.
"""

import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from trellis.config import get_settings
from trellis.exceptions import InvalidParameterError
from trellis.logging_config import get_logger
from trellis.models import TaskPriority, TaskStatus
from trellis.services.cycles import require_task, has_circular_dependency
from trellis.services.snapshot import CandidateFilter, TaskRecord, TaskStore

logger = get_logger(__name__)

PRIORITY_RANK = {
    TaskPriority.HIGH: 3,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 1,
}


class DependencyStatus(str, Enum):
    READY = "ready"  # All dependencies satisfied
    BLOCKED = "blocked"  # No dependency resolved yet
    PARTIAL = "partial"  # Some dependencies resolved
    CIRCULAR = "circular"  # Task is on a dependency cycle


@dataclass(frozen=True)
class ScoringWeights:
    """
    Weights for the displayed priority_score.

    dependent_span must stay below the gap between adjacent priority
    weights, otherwise a score could outrank a higher priority.
    """
    high: float = 300.0
    medium: float = 200.0
    low: float = 100.0
    dependent_span: float = 90.0
    quick_win_share: float = 0.9

    def __post_init__(self):
        if not self.high > self.medium > self.low:
            raise InvalidParameterError(
                "scoring_weights", "priority weights must satisfy high > medium > low"
            )
        gap = min(self.high - self.medium, self.medium - self.low)
        if not 0 < self.dependent_span <= gap:
            raise InvalidParameterError(
                "scoring_weights",
                f"dependent_span must be in (0, {gap}] for these priority weights",
            )
        if not 0 <= self.quick_win_share < 1:
            raise InvalidParameterError(
                "scoring_weights", "quick_win_share must be in [0, 1)"
            )

    @classmethod
    def from_settings(cls) -> "ScoringWeights":
        settings = get_settings()
        return cls(
            high=settings.priority_weight_high,
            medium=settings.priority_weight_medium,
            low=settings.priority_weight_low,
            dependent_span=settings.dependent_span,
            quick_win_share=settings.quick_win_share,
        )

    def priority_weight(self, priority: TaskPriority) -> float:
        return {
            TaskPriority.HIGH: self.high,
            TaskPriority.MEDIUM: self.medium,
            TaskPriority.LOW: self.low,
        }[priority]


@dataclass
class ReadyTask:
    task: TaskRecord
    priority_score: float
    dependents_count: int

    def sort_key(self) -> tuple:
        hours = self.task.estimated_hours
        return (
            -PRIORITY_RANK[self.task.priority],
            -self.dependents_count,
            hours if hours is not None else math.inf,
            len(self.task.display_id),
            self.task.display_id,
        )


@dataclass
class ImpactAnalysis:
    task_id: Any
    direct_dependents: list[TaskRecord] = field(default_factory=list)
    total_dependents: int = 0
    affected_assignees: list[str] = field(default_factory=list)
    estimated_delay_hours: float = 0.0
    high_priority_affected: bool = False
    risk_level: str = "low"


def count_active_dependents(store: TaskStore, task_id: Any) -> int:
    """Direct dependents that are neither completed nor archived."""
    count = 0
    for dependent_id in store.list_dependents(task_id):
        dependent = store.get_task(dependent_id)
        if dependent is not None and not dependent.is_terminal:
            count += 1
    return count


def is_ready(store: TaskStore, task: TaskRecord) -> bool:
    """todo, and every resolvable dependency is completed."""
    if task.status != TaskStatus.TODO:
        return False
    for dep_id in store.list_dependencies(task.id):
        dep = store.get_task(dep_id)
        if dep is None:
            logger.warning(f"Skipping dangling dependency {task.id} -> {dep_id}")
            continue
        if not dep.is_completed:
            return False
    return True


def priority_score(
    task: TaskRecord,
    dependents_count: int,
    weights: ScoringWeights,
) -> float:
    """
    Display score that never disagrees with ReadyTask.sort_key.

    The dependents term approaches dependent_span without reaching it, and
    the quick-win bonus stays below the step to the next dependents count,
    so every criterion outweighs all the ones after it.
    """
    count = max(dependents_count, 0)
    score = weights.priority_weight(task.priority)
    score += weights.dependent_span * count / (count + 1)
    if task.estimated_hours is not None:
        step = weights.dependent_span / ((count + 1) * (count + 2))
        # 0h -> quick_win_share of the step, long tasks -> ~0
        score += step * weights.quick_win_share / (1.0 + task.estimated_hours)
    return round(score, 3)


def get_ready_tasks(
    store: TaskStore,
    category: str | None = None,
    assignee: str | None = None,
    limit: int | None = None,
    weights: ScoringWeights | None = None,
) -> list[ReadyTask]:
    """
    Rank tasks that can be started now.

    category and assignee narrow the candidates before scoring; limit
    truncates the ranked list (None means no limit).
    """
    if limit is not None and limit < 0:
        raise InvalidParameterError("limit", "limit must be >= 0")
    weights = weights or ScoringWeights.from_settings()

    candidates = store.list_candidate_tasks(CandidateFilter(
        statuses=frozenset({TaskStatus.TODO}),
        category=category,
        assignee=assignee,
    ))

    ready = []
    for task in candidates:
        if not is_ready(store, task):
            continue
        dependents_count = count_active_dependents(store, task.id)
        ready.append(ReadyTask(
            task=task,
            priority_score=priority_score(task, dependents_count, weights),
            dependents_count=dependents_count,
        ))

    ready.sort(key=ReadyTask.sort_key)
    logger.debug(f"{len(ready)} of {len(candidates)} candidate tasks are ready")

    if limit is not None:
        return ready[:limit]
    return ready


def dependency_status(store: TaskStore, task_id: Any) -> DependencyStatus:
    """
    Summarize a task's dependencies.

    For display, completed and archived dependencies both count as resolved.
    """
    require_task(store, task_id)

    dependencies = [
        dep for dep in (store.get_task(dep_id) for dep_id in store.list_dependencies(task_id))
        if dep is not None
    ]
    if not dependencies:
        return DependencyStatus.READY

    if has_circular_dependency(store, task_id):
        return DependencyStatus.CIRCULAR

    resolved = [dep for dep in dependencies if dep.is_terminal]
    if len(resolved) == len(dependencies):
        return DependencyStatus.READY
    if resolved:
        return DependencyStatus.PARTIAL
    return DependencyStatus.BLOCKED


def analyze_impact(store: TaskStore, task_id: Any) -> ImpactAnalysis:
    """
    What is held up by task_id: direct and transitive dependents.

    Risk is high with more than 10 affected tasks or any high-priority one,
    medium with more than 5 affected tasks or more than 3 assignees.
    """
    require_task(store, task_id)
    impact = ImpactAnalysis(task_id=task_id)

    for dependent_id in store.list_dependents(task_id):
        dependent = store.get_task(dependent_id)
        if dependent is not None:
            impact.direct_dependents.append(dependent)

    affected: dict[Any, TaskRecord] = {}
    queue = deque(task.id for task in impact.direct_dependents)
    while queue:
        current = queue.popleft()
        if current in affected or current == task_id:
            continue
        task = store.get_task(current)
        if task is None:
            continue
        affected[current] = task
        queue.extend(store.list_dependents(current))

    assignees = []
    for task in affected.values():
        if task.assignee and task.assignee not in assignees:
            assignees.append(task.assignee)
        if task.priority == TaskPriority.HIGH:
            impact.high_priority_affected = True
        if task.estimated_hours:
            impact.estimated_delay_hours += task.estimated_hours

    impact.total_dependents = len(affected)
    impact.affected_assignees = assignees

    if impact.total_dependents > 10 or impact.high_priority_affected:
        impact.risk_level = "high"
    elif impact.total_dependents > 5 or len(assignees) > 3:
        impact.risk_level = "medium"

    return impact
