from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    BLOCKED = "blocked"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class TaskPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Completed and archived tasks drop out of active graphs.
TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.ARCHIVED})
ACTIVE_STATUSES = frozenset(set(TaskStatus) - TERMINAL_STATUSES)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_display_id(task_id: int) -> str:
    """Human-facing id: TASK-001, TASK-042, TASK-1234."""
    return f"TASK-{task_id:03d}"


class Task(SQLModel, table=True):
    """
    Task model - a vertex of the task graph.

    Key fields:
    - display_id: TASK-NNN code, assigned once after insert and never changed
    - estimated_hours: weight for critical-path analysis (None = unestimated)
    - parent_id: subtask relation, independent of dependency edges
    """

    __tablename__ = "tasks"

    id: int | None = Field(default=None, primary_key=True)
    display_id: str | None = Field(default=None, unique=True, index=True)
    name: str = Field(index=True)
    description: str | None = Field(default=None)
    status: TaskStatus = Field(default=TaskStatus.TODO, index=True)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    estimated_hours: float | None = Field(default=None, ge=0)
    category: str | None = Field(default=None, index=True)
    assignee: str | None = Field(default=None, index=True)

    # Subtask relation
    parent_id: int | None = Field(default=None, foreign_key="tasks.id", index=True)

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
