from datetime import datetime
from pydantic import BaseModel


class DependencyCreate(BaseModel):
    """Schema for creating a new dependency: successor depends on predecessor."""
    predecessor_id: int  # The blocker task
    successor_id: int    # The blocked task


class DependencyRead(BaseModel):
    """Schema for reading a dependency."""
    predecessor_id: int
    successor_id: int
    created_at: datetime

    model_config = {"from_attributes": True}
