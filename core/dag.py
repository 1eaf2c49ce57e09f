"""Dependency ordering for planned tasks."""

from __future__ import annotations

from collections import deque

from core.errors import PlanningError
from core.state import Task


def find_cycle(tasks: list[Task]) -> list[str]:
    """Return one dependency cycle as a list of task ids, or [] if the graph is acyclic."""
    by_id = {t.id: t for t in tasks}
    visiting: list[str] = []
    done: set[str] = set()

    def visit(task_id):
        if task_id in done:
            return []
        if task_id in visiting:
            return visiting[visiting.index(task_id):] + [task_id]
        visiting.append(task_id)
        for dep in sorted(by_id[task_id].dependencies):
            if dep in by_id:
                cycle = visit(dep)
                if cycle:
                    return cycle
        visiting.pop()
        done.add(task_id)
        return []

    for t in tasks:
        cycle = visit(t.id)
        if cycle:
            return cycle
    return []


def topological_order(tasks: list[Task]) -> list[Task]:
    """Order tasks so every task follows its dependencies.

    Ties are broken by priority, then by planning order, so the result is
    deterministic. Raises PlanningError on a cycle or an unknown dependency.
    """
    index = {t.id: i for i, t in enumerate(tasks)}
    for t in tasks:
        unknown = sorted(d for d in t.dependencies if d not in index)
        if unknown:
            raise PlanningError(f"Task {t.id} depends on unknown task(s): {', '.join(unknown)}")

    in_degree = {t.id: len(t.dependencies) for t in tasks}
    dependents: dict[str, list[str]] = {t.id: [] for t in tasks}
    for t in tasks:
        for dep in t.dependencies:
            dependents[dep].append(t.id)

    by_id = {t.id: t for t in tasks}

    def sort_key(task_id):
        return (by_id[task_id].priority, index[task_id])

    queue = deque(sorted((i for i, d in in_degree.items() if d == 0), key=sort_key))
    result: list[Task] = []
    while queue:
        current = queue.popleft()
        result.append(by_id[current])
        released = []
        for dependent in dependents[current]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                released.append(dependent)
        queue = deque(sorted(list(queue) + released, key=sort_key))

    if len(result) != len(tasks):
        cycle = find_cycle(tasks)
        raise PlanningError(f"Dependency cycle detected: {' -> '.join(cycle)}")
    return result


def ready_tasks(tasks: list[Task]) -> list[Task]:
    """Pending tasks whose dependencies have all completed, in planning order."""
    completed = {t.id for t in tasks if t.status == "completed"}
    return [
        t for t in tasks
        if t.status == "pending" and t.dependencies <= completed
    ]


def transitive_dependents(tasks: list[Task], task_id: str) -> list[str]:
    """Ids of every task that directly or indirectly depends on task_id."""
    found: list[str] = []
    frontier = [task_id]
    while frontier:
        current = frontier.pop()
        for t in tasks:
            if current in t.dependencies and t.id not in found:
                found.append(t.id)
                frontier.append(t.id)
    return found


def transitive_dependencies(tasks: list[Task], task_id: str) -> list[str]:
    """Ids of every task task_id directly or indirectly depends on."""
    by_id = {t.id: t for t in tasks}
    found: list[str] = []
    frontier = sorted(by_id[task_id].dependencies)
    while frontier:
        current = frontier.pop(0)
        if current in found or current not in by_id:
            continue
        found.append(current)
        frontier.extend(sorted(by_id[current].dependencies))
    return found
