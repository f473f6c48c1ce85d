"""
Graph view routes for the Trellis API.

Every request loads a fresh snapshot of the task graph, runs one engine
operation against it and serializes the result.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from trellis.config import get_settings
from trellis.database import get_session
from trellis.exceptions import CyclicGraphError, TaskNotFoundError
from trellis.schemas import (
    CriticalPathRead,
    CycleRead,
    DependencyStatusRead,
    ImpactRead,
    ReadyTaskRead,
    TreeNodeRead,
    TreeResponse,
    TreeStatsRead,
)
from trellis.services.critical_path import calculate_critical_path
from trellis.services.cycles import cycle_diagnostics
from trellis.services.graph import (
    TreeOptions,
    build_dependency_tree,
    build_forest,
    parse_relations,
    tree_stats,
)
from trellis.services.readiness import analyze_impact, dependency_status, get_ready_tasks
from trellis.services.snapshot import load_snapshot
from trellis.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _tree_options(max_depth: int | None, relations: str) -> TreeOptions:
    """Build and validate tree options before any store access."""
    settings = get_settings()
    options = TreeOptions(
        max_depth=settings.default_tree_depth if max_depth is None else max_depth,
        max_nodes=settings.tree_max_nodes,
        **parse_relations(relations.split(",")),
    )
    options.validate()
    return options


@router.get("/tree/{task_id}", response_model=TreeResponse)
async def get_tree(
    task_id: int,
    max_depth: int | None = None,
    relations: str = "dependencies",
    critical_path: bool = False,
    session: AsyncSession = Depends(get_session),
) -> TreeResponse:
    """
    Dependency tree around a task.

    relations is a comma-separated list of dependencies, dependents,
    subtasks or "all". Cycle diagnostics are always included; the critical
    path is included on request and reported as an error string when the
    dependencies are cyclic.
    """
    options = _tree_options(max_depth, relations)
    snapshot = await load_snapshot(session)

    tree = build_dependency_tree(snapshot, task_id, options)
    if tree is None:
        raise TaskNotFoundError(task_id)

    cycle = cycle_diagnostics(snapshot, task_id)
    if cycle.has_cycle:
        logger.warning(f"Circular dependency through {tree.display_id}")

    critical_path_ids = None
    critical_path_error = None
    if critical_path:
        try:
            critical_path_ids = calculate_critical_path(snapshot, task_id).path_ids
        except CyclicGraphError as exc:
            critical_path_error = exc.message

    return TreeResponse(
        tree=TreeNodeRead.model_validate(tree),
        stats=TreeStatsRead.model_validate(tree_stats(tree)),
        cycle=CycleRead.model_validate(cycle),
        critical_path_ids=critical_path_ids,
        critical_path_error=critical_path_error,
    )


@router.get("/forest", response_model=list[TreeNodeRead])
async def get_forest(
    max_depth: int | None = None,
    session: AsyncSession = Depends(get_session),
) -> list[TreeNodeRead]:
    """All active root tasks, each expanded through dependents and subtasks."""
    options = _tree_options(max_depth, "dependents,subtasks")
    snapshot = await load_snapshot(session)
    return [TreeNodeRead.model_validate(tree) for tree in build_forest(snapshot, options)]


@router.get("/cycles/{task_id}", response_model=CycleRead)
async def get_cycles(
    task_id: int,
    session: AsyncSession = Depends(get_session),
) -> CycleRead:
    """Whether the task is on a dependency cycle, and the shortest such cycle."""
    snapshot = await load_snapshot(session)
    return CycleRead.model_validate(cycle_diagnostics(snapshot, task_id))


@router.get("/critical-path/{task_id}", response_model=CriticalPathRead)
async def get_critical_path(
    task_id: int,
    session: AsyncSession = Depends(get_session),
) -> CriticalPathRead:
    """Heaviest dependency chain ending at the task, with the CPM schedule."""
    snapshot = await load_snapshot(session)
    return CriticalPathRead.model_validate(calculate_critical_path(snapshot, task_id))


@router.get("/ready", response_model=list[ReadyTaskRead])
async def get_ready(
    category: str | None = None,
    assignee: str | None = None,
    limit: int | None = None,
    show_all: bool = Query(default=False, alias="all"),
    session: AsyncSession = Depends(get_session),
) -> list[ReadyTaskRead]:
    """
    Tasks ready to start, best first.

    limit defaults to TRELLIS_DEFAULT_READY_LIMIT; all=true removes it.
    """
    if show_all:
        limit = None
    elif limit is None:
        limit = get_settings().default_ready_limit

    snapshot = await load_snapshot(session)
    ready = get_ready_tasks(snapshot, category=category, assignee=assignee, limit=limit)

    return [
        ReadyTaskRead.model_validate({
            **asdict(item.task),
            "priority_score": item.priority_score,
            "dependents_count": item.dependents_count,
        })
        for item in ready
    ]


@router.get("/status/{task_id}", response_model=DependencyStatusRead)
async def get_dependency_status(
    task_id: int,
    session: AsyncSession = Depends(get_session),
) -> DependencyStatusRead:
    """ready, blocked, partial or circular."""
    snapshot = await load_snapshot(session)
    return DependencyStatusRead(
        task_id=task_id,
        status=dependency_status(snapshot, task_id).value,
    )


@router.get("/impact/{task_id}", response_model=ImpactRead)
async def get_impact(
    task_id: int,
    session: AsyncSession = Depends(get_session),
) -> ImpactRead:
    """Downstream impact of delaying the task."""
    snapshot = await load_snapshot(session)
    return ImpactRead.model_validate(analyze_impact(snapshot, task_id))
