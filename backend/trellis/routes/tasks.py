"""
Task routes for the Trellis API.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import delete, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from trellis.database import get_session
from trellis.models import Dependency, Task, TaskStatus, format_display_id, utc_now
from trellis.schemas import TaskCreate, TaskUpdate, TaskRead
from trellis.exceptions import InvalidParameterError, TaskNotFoundError
from trellis.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()

# Columns that may not be set to NULL through an update
NON_NULLABLE_FIELDS = {"name", "status", "priority"}


async def _check_parent(
    session: AsyncSession,
    parent_id: int,
    task_id: int | None = None,
) -> None:
    """Parent must exist and must not be the task itself or one of its subtasks."""
    seen: set[int] = set()
    current = parent_id
    while current is not None and current not in seen:
        if current == task_id:
            raise InvalidParameterError(
                "parent_id", "Moving the task under this parent would create a circular hierarchy"
            )
        seen.add(current)
        parent = await session.get(Task, current)
        if parent is None:
            if current == parent_id:
                raise TaskNotFoundError(parent_id)
            break
        current = parent.parent_id


@router.post("/", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_in: TaskCreate,
    session: AsyncSession = Depends(get_session),
) -> Task:
    """
    Create a new task.

    The display_id (TASK-NNN) is derived from the database id once the row
    exists and never changes afterwards.
    """
    if task_in.parent_id is not None:
        await _check_parent(session, task_in.parent_id)

    task = Task(**task_in.model_dump())
    session.add(task)
    await session.flush()

    task.display_id = format_display_id(task.id)
    await session.flush()
    await session.refresh(task)

    logger.info(f"Created task: {task.display_id} name='{task.name}'")

    return task


@router.get("/", response_model=list[TaskRead])
async def list_tasks(
    status_filter: TaskStatus | None = Query(default=None, alias="status"),
    category: str | None = None,
    assignee: str | None = None,
    session: AsyncSession = Depends(get_session),
) -> list[Task]:
    """
    List tasks.

    Optionally filter by status, category and assignee.
    """
    query = select(Task).order_by(Task.id)
    if status_filter is not None:
        query = query.where(Task.status == status_filter)
    if category is not None:
        query = query.where(Task.category == category)
    if assignee is not None:
        query = query.where(Task.assignee == assignee)

    result = await session.execute(query)
    tasks = list(result.scalars().all())

    logger.debug(f"Listed {len(tasks)} tasks")

    return tasks


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: int,
    session: AsyncSession = Depends(get_session),
) -> Task:
    """Get a task by ID."""
    task = await session.get(Task, task_id)
    if not task:
        raise TaskNotFoundError(task_id)
    return task


@router.patch("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: int,
    task_in: TaskUpdate,
    session: AsyncSession = Depends(get_session),
) -> Task:
    """Update a task."""
    task = await session.get(Task, task_id)
    if not task:
        raise TaskNotFoundError(task_id)

    update_data = task_in.model_dump(exclude_unset=True)
    for field in NON_NULLABLE_FIELDS:
        if field in update_data and update_data[field] is None:
            del update_data[field]

    if update_data.get("parent_id") is not None:
        await _check_parent(session, update_data["parent_id"], task_id)

    logger.info(f"Updating task {task.display_id}: {update_data}")

    for field, value in update_data.items():
        setattr(task, field, value)

    task.updated_at = utc_now()

    await session.flush()
    await session.refresh(task)

    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int,
    session: AsyncSession = Depends(get_session),
) -> None:
    """
    Delete a task.

    Removes every dependency involving the task and promotes its subtasks
    to top-level tasks.
    """
    task = await session.get(Task, task_id)
    if not task:
        raise TaskNotFoundError(task_id)

    logger.info(f"Deleting task {task.display_id}: '{task.name}'")

    await session.execute(
        delete(Dependency).where(
            or_(Dependency.predecessor_id == task_id, Dependency.successor_id == task_id)
        )
    )
    await session.execute(
        update(Task).where(Task.parent_id == task_id).values(parent_id=None)
    )

    await session.delete(task)
    await session.flush()
