"""
Dependency routes for the Trellis API.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from trellis.config import get_settings
from trellis.database import get_session
from trellis.models import Task, Dependency
from trellis.schemas import DependencyCreate, DependencyRead
from trellis.services.graph import would_create_cycle
from trellis.services.snapshot import load_snapshot
from trellis.exceptions import (
    NotFoundError,
    TaskNotFoundError,
    CycleDetectedError,
    DuplicateDependencyError,
    SelfDependencyError,
)
from trellis.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/", response_model=DependencyRead, status_code=status.HTTP_201_CREATED)
async def create_dependency(
    dep_in: DependencyCreate,
    session: AsyncSession = Depends(get_session),
) -> Dependency:
    """
    Create a new dependency: successor depends on predecessor.

    Self-dependencies and duplicate pairs are always rejected. Unless
    TRELLIS_REJECT_DEPENDENCY_CYCLES is off, an edge that would close a
    cycle is rejected with 400 Bad Request.
    """
    logger.info(f"Creating dependency: {dep_in.predecessor_id} -> {dep_in.successor_id}")

    predecessor = await session.get(Task, dep_in.predecessor_id)
    successor = await session.get(Task, dep_in.successor_id)

    if not predecessor:
        raise TaskNotFoundError(dep_in.predecessor_id)

    if not successor:
        raise TaskNotFoundError(dep_in.successor_id)

    # Prevent self-loops
    if dep_in.predecessor_id == dep_in.successor_id:
        logger.warning(f"Self-dependency rejected: {predecessor.display_id}")
        raise SelfDependencyError(str(dep_in.predecessor_id))

    existing = await session.get(
        Dependency,
        (dep_in.predecessor_id, dep_in.successor_id)
    )
    if existing:
        logger.warning(
            f"Duplicate dependency rejected: {predecessor.display_id} -> {successor.display_id}"
        )
        raise DuplicateDependencyError(
            str(dep_in.predecessor_id),
            str(dep_in.successor_id),
        )

    if get_settings().reject_dependency_cycles:
        logger.debug(
            f"Running cycle detection for {predecessor.display_id} -> {successor.display_id}"
        )
        snapshot = await load_snapshot(session)
        if would_create_cycle(snapshot, dep_in.predecessor_id, dep_in.successor_id):
            logger.warning(
                f"Cycle detected: {predecessor.display_id} -> {successor.display_id} "
                f"would create a cycle"
            )
            raise CycleDetectedError(
                str(dep_in.predecessor_id),
                str(dep_in.successor_id),
            )

    dependency = Dependency(
        predecessor_id=dep_in.predecessor_id,
        successor_id=dep_in.successor_id,
    )
    session.add(dependency)
    await session.flush()
    await session.refresh(dependency)

    logger.info(f"Created dependency: {successor.name} depends on {predecessor.name}")

    return dependency


@router.get("/", response_model=list[DependencyRead])
async def list_dependencies(
    task_id: int | None = None,
    session: AsyncSession = Depends(get_session),
) -> list[Dependency]:
    """
    List dependencies.

    Optionally filter by task_id: dependencies where the task is
    predecessor OR successor.
    """
    query = select(Dependency).order_by(Dependency.predecessor_id, Dependency.successor_id)
    if task_id is not None:
        query = query.where(
            (Dependency.predecessor_id == task_id) |
            (Dependency.successor_id == task_id)
        )

    result = await session.execute(query)
    dependencies = list(result.scalars().all())

    logger.debug(f"Listed {len(dependencies)} dependencies")

    return dependencies


@router.delete(
    "/{predecessor_id}/{successor_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_dependency(
    predecessor_id: int,
    successor_id: int,
    session: AsyncSession = Depends(get_session),
) -> None:
    """Delete a dependency."""
    dependency = await session.get(Dependency, (predecessor_id, successor_id))
    if not dependency:
        raise NotFoundError("Dependency", f"{predecessor_id}/{successor_id}")

    logger.info(f"Deleting dependency: {predecessor_id} -> {successor_id}")

    await session.delete(dependency)
    await session.flush()
