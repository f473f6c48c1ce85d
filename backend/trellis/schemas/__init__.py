from trellis.schemas.task import TaskCreate, TaskUpdate, TaskRead
from trellis.schemas.dependency import DependencyCreate, DependencyRead
from trellis.schemas.graph import (
    CriticalPathRead,
    CycleRead,
    DependencyStatusRead,
    ImpactRead,
    ReadyTaskRead,
    TaskSummary,
    TreeNodeRead,
    TreeResponse,
    TreeStatsRead,
)

__all__ = [
    "TaskCreate",
    "TaskUpdate",
    "TaskRead",
    "DependencyCreate",
    "DependencyRead",
    "CriticalPathRead",
    "CycleRead",
    "DependencyStatusRead",
    "ImpactRead",
    "ReadyTaskRead",
    "TaskSummary",
    "TreeNodeRead",
    "TreeResponse",
    "TreeStatsRead",
]
