from datetime import datetime
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field

from trellis.models.task import utc_now


class Dependency(SQLModel, table=True):
    """
    Dependency model representing a directed edge in the task graph.

    predecessor_id -> successor_id means:
    "The successor depends on the predecessor; the predecessor must be
    completed before the successor is unblocked"

    Example: If Task B depends on Task A:
    - predecessor_id = A.id (the blocker)
    - successor_id = B.id (the blocked)

    The composite primary key makes the same pair impossible to insert twice.
    """

    __tablename__ = "dependencies"

    predecessor_id: int = Field(
        foreign_key="tasks.id",
        primary_key=True,
    )
    successor_id: int = Field(
        foreign_key="tasks.id",
        primary_key=True,
    )

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
