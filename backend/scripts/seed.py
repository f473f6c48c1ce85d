#!/usr/bin/env python3
"""
Seed script to generate a large task graph for performance testing.

Generates a layered dependency graph with realistic project structure:
- Multiple parallel tracks
- Diamond patterns (convergence points)
- Subtasks under some tasks
- A mix of statuses, priorities and unestimated tasks
- Optionally a few injected dependency cycles

Usage:
    python -m scripts.seed [--nodes 500] [--clear] [--cycles 0] [--benchmark]

Options:
    --nodes N     Number of tasks to generate (default: 500)
    --clear       Clear existing data before seeding
    --cycles N    Add N back edges that close dependency cycles
    --seed N      Random seed (default: 42)
    --benchmark   Time the graph engine against the seeded data
"""

import argparse
import asyncio
import random
import time
from dataclasses import dataclass, field

from sqlalchemy import text

from trellis.database import async_session_maker, get_session_context, init_db
from trellis.models import Dependency, Task, TaskPriority, TaskStatus, format_display_id
from trellis.services.critical_path import calculate_critical_path
from trellis.services.graph import TreeOptions, build_forest
from trellis.services.readiness import get_ready_tasks
from trellis.services.snapshot import load_snapshot
from trellis.exceptions import CyclicGraphError

CATEGORIES = ["backend", "frontend", "infra", "docs"]
ASSIGNEES = ["alice", "bob", "carol", "dave", "erin"]


@dataclass
class GeneratedGraph:
    """Task rows plus edges between task indexes (predecessor, successor)."""
    tasks: list[dict] = field(default_factory=list)
    dependencies: list[tuple[int, int]] = field(default_factory=list)
    parents: dict[int, int] = field(default_factory=dict)  # child index -> parent index


def generate_graph(num_nodes: int = 500, cycles: int = 0, seed: int = 42) -> GeneratedGraph:
    """
    Generate a realistic task graph.

    Strategy:
    - Create tasks in "waves" (levels)
    - Each wave depends on some tasks from previous waves
    - Early waves are mostly completed, later waves mostly todo
    - About 10% of tasks have no estimate, 15% become subtasks
    - `cycles` extra edges go from a late task back to an early one
    """
    rng = random.Random(seed)
    graph = GeneratedGraph()

    num_waves = max(1, min(10, num_nodes // 5))
    tasks_per_wave = max(1, num_nodes // num_waves)
    indexes_by_wave: list[list[int]] = []
    seen_edges: set[tuple[int, int]] = set()

    for wave in range(num_waves):
        wave_size = tasks_per_wave
        if wave == num_waves - 1:
            wave_size = num_nodes - len(graph.tasks)

        wave_indexes = []
        for i in range(wave_size):
            progress = wave / max(1, num_waves - 1)
            if rng.random() > progress + 0.2:
                status = TaskStatus.COMPLETED
            else:
                status = rng.choice([TaskStatus.TODO] * 6 + [TaskStatus.IN_PROGRESS, TaskStatus.PAUSED])

            graph.tasks.append({
                "name": f"Task W{wave:02d}-{i:03d}",
                "description": f"Wave {wave}, Task {i}",
                "status": status,
                "priority": rng.choice(list(TaskPriority)),
                "estimated_hours": None if rng.random() < 0.1 else float(rng.randint(1, 16)),
                "category": rng.choice(CATEGORIES),
                "assignee": rng.choice(ASSIGNEES),
            })
            wave_indexes.append(len(graph.tasks) - 1)

        if wave > 0:
            available_waves = list(range(max(0, wave - 3), wave))
            for index in wave_indexes:
                # Each task depends on 1-3 tasks from recent waves
                for _ in range(rng.randint(1, 3)):
                    dep_wave = rng.choice(available_waves)
                    dep_index = rng.choice(indexes_by_wave[dep_wave])
                    if (dep_index, index) not in seen_edges:
                        seen_edges.add((dep_index, index))
                        graph.dependencies.append((dep_index, index))

                if rng.random() < 0.15:
                    graph.parents[index] = rng.choice(indexes_by_wave[wave - 1])

        indexes_by_wave.append(wave_indexes)

    if num_waves > 1:
        for _ in range(cycles):
            late = rng.choice(indexes_by_wave[-1])
            early = rng.choice(indexes_by_wave[0])
            if (late, early) not in seen_edges:
                seen_edges.add((late, early))
                graph.dependencies.append((late, early))

    return graph


async def clear_data():
    """Clear all existing data."""
    print("Clearing existing data...")
    async with get_session_context() as session:
        await session.execute(text("DELETE FROM dependencies"))
        await session.execute(text("DELETE FROM tasks"))
    print("Data cleared.")


async def insert_graph(graph: GeneratedGraph) -> list[int]:
    """Insert tasks, subtask links and dependencies in batches. Returns task ids."""
    async with async_session_maker() as session:
        batch_size = 100

        print(f"Inserting {len(graph.tasks)} tasks...")
        tasks = [Task(**row) for row in graph.tasks]
        for i in range(0, len(tasks), batch_size):
            session.add_all(tasks[i:i + batch_size])
            await session.flush()

        for index, task in enumerate(tasks):
            task.display_id = format_display_id(task.id)
            parent_index = graph.parents.get(index)
            if parent_index is not None:
                task.parent_id = tasks[parent_index].id
        await session.flush()

        print(f"Inserting {len(graph.dependencies)} dependencies...")
        dependencies = [
            Dependency(predecessor_id=tasks[pred].id, successor_id=tasks[succ].id)
            for pred, succ in graph.dependencies
        ]
        for i in range(0, len(dependencies), batch_size):
            session.add_all(dependencies[i:i + batch_size])
            await session.flush()

        await session.commit()
        return [task.id for task in tasks]


async def run_benchmark(task_ids: list[int]):
    """Time the engine operations against the freshly seeded graph."""
    async with async_session_maker() as session:
        start_time = time.time()
        snapshot = await load_snapshot(session)
        print(f"\n=== Benchmark ({len(snapshot)} tasks) ===")
        print(f"Snapshot load:  {(time.time() - start_time) * 1000:.2f}ms")

    start_time = time.time()
    ready = get_ready_tasks(snapshot)
    print(f"Ready list:     {(time.time() - start_time) * 1000:.2f}ms ({len(ready)} ready)")

    start_time = time.time()
    forest = build_forest(snapshot, TreeOptions(max_depth=3))
    print(f"Forest:         {(time.time() - start_time) * 1000:.2f}ms ({len(forest)} roots)")

    start_time = time.time()
    try:
        result = calculate_critical_path(snapshot, task_ids[-1])
        print(
            f"Critical path:  {(time.time() - start_time) * 1000:.2f}ms "
            f"({len(result.path)} tasks, {result.total_hours:.1f}h)"
        )
    except CyclicGraphError as exc:
        print(f"Critical path:  {exc.message}")


async def main():
    parser = argparse.ArgumentParser(description="Seed the database with a large task graph")
    parser.add_argument("--nodes", type=int, default=500, help="Number of tasks to create")
    parser.add_argument("--clear", action="store_true", help="Clear existing data first")
    parser.add_argument("--cycles", type=int, default=0, help="Number of cycle-closing edges")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--benchmark", action="store_true", help="Run benchmark after seeding")

    args = parser.parse_args()

    print(f"=== Trellis Seed Script ===")

    await init_db()

    if args.clear:
        await clear_data()

    start_time = time.time()
    graph = generate_graph(args.nodes, cycles=args.cycles, seed=args.seed)
    print(f"Generation time: {time.time() - start_time:.2f}s")

    start_time = time.time()
    task_ids = await insert_graph(graph)
    print(f"Insert time: {time.time() - start_time:.2f}s")

    if args.benchmark:
        await run_benchmark(task_ids)

    print(f"\n=== Seeding Complete ===")


if __name__ == "__main__":
    asyncio.run(main())
