from trellis.models.task import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Task,
    TaskPriority,
    TaskStatus,
    format_display_id,
    utc_now,
)
from trellis.models.dependency import Dependency

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "format_display_id",
    "utc_now",
    "Dependency",
]
