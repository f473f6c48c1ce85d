from datetime import datetime
from pydantic import BaseModel, Field

from trellis.models import TaskPriority, TaskStatus


class TaskCreate(BaseModel):
    """Schema for creating a new task."""
    name: str = Field(min_length=1)
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    estimated_hours: float | None = Field(default=None, ge=0)
    category: str | None = None
    assignee: str | None = None
    parent_id: int | None = None


class TaskUpdate(BaseModel):
    """Schema for updating a task. display_id is not updatable."""
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    category: str | None = None
    assignee: str | None = None
    parent_id: int | None = None


class TaskRead(BaseModel):
    """Schema for reading a task."""
    id: int
    display_id: str
    name: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    estimated_hours: float | None
    category: str | None
    assignee: str | None
    parent_id: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
