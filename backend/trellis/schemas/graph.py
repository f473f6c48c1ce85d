"""
Response schemas for graph views.

Engine results are plain dataclasses; these models serialize them with
from_attributes.
"""

from typing import Any

from pydantic import BaseModel

from trellis.models import TaskPriority, TaskStatus


class TaskSummary(BaseModel):
    """A task as it appears inside graph results."""
    id: Any
    display_id: str
    name: str
    status: TaskStatus
    priority: TaskPriority
    estimated_hours: float | None = None

    model_config = {"from_attributes": True}


class TreeNodeRead(TaskSummary):
    depth: int = 0
    repeated: bool = False
    truncated: bool = False
    dependencies: list["TreeNodeRead"] = []
    dependents: list["TreeNodeRead"] = []
    subtasks: list["TreeNodeRead"] = []


TreeNodeRead.model_rebuild()


class TreeStatsRead(BaseModel):
    total_nodes: int
    max_depth: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    total_estimate: float

    model_config = {"from_attributes": True}


class CycleRead(BaseModel):
    has_cycle: bool
    path: list[TaskSummary] | None = None

    model_config = {"from_attributes": True}


class TreeResponse(BaseModel):
    tree: TreeNodeRead
    stats: TreeStatsRead
    cycle: CycleRead
    # None when not requested; empty with a message when it could not be computed
    critical_path_ids: list[Any] | None = None
    critical_path_error: str | None = None


class TaskScheduleRead(BaseModel):
    task_id: Any
    display_id: str
    duration_hours: float
    earliest_start: float
    earliest_finish: float
    latest_start: float
    latest_finish: float
    slack: float
    is_critical: bool

    model_config = {"from_attributes": True}


class CriticalPathRead(BaseModel):
    task_id: Any
    path: list[TaskSummary]
    total_hours: float
    unestimated_ids: list[Any]
    schedule: list[TaskScheduleRead]

    model_config = {"from_attributes": True}


class ReadyTaskRead(TaskSummary):
    category: str | None = None
    assignee: str | None = None
    priority_score: float
    dependents_count: int


class DependencyStatusRead(BaseModel):
    task_id: Any
    status: str


class ImpactRead(BaseModel):
    task_id: Any
    direct_dependents: list[TaskSummary]
    total_dependents: int
    affected_assignees: list[str]
    estimated_delay_hours: float
    high_priority_affected: bool
    risk_level: str

    model_config = {"from_attributes": True}
