"""Planner agent — breaks a requirements document into dependency-ordered tasks."""

import logging
import os
import posixpath

from utils.llm import LLMError, call_llm
from config.rules import PLANNER_EXCLUSIONS, PROTECTED_PATHS
from config.stacks import STACKS
from core.dag import topological_order
from core.errors import PlanningError
from core.state import RequirementsDocument, Task

_PROMPT_FILE = os.path.join(os.path.dirname(__file__), "prompts", "planner.txt")

log = logging.getLogger(__name__)


def _load_prompt():
    with open(_PROMPT_FILE) as f:
        return f.read()


def normalize_path(path):
    """'src/app/page.tsx', './src/app/page.tsx' -> '/src/app/page.tsx'.

    Raises ValueError for a path that is empty or leaves the project root.
    """
    relative = posixpath.normpath(path.strip().replace("\\", "/").lstrip("/"))
    if relative in (".", "..") or relative.startswith("../"):
        raise ValueError(f"Path is outside the project: {path}")
    return "/" + relative


def _excluded_reason(raw):
    # Matched against the task name only.
    name = str(raw.get("name", ""))
    for pattern, reason in PLANNER_EXCLUSIONS:
        if pattern.search(name):
            return reason
    return None


class PlannerAgent:
    """Produces the task list for a run. One LLM call, no retry."""

    name = "planner"

    def __init__(self, stack="nextjs"):
        self.entry_page = STACKS[stack]["entry_page"]

    def run(self, requirements: RequirementsDocument) -> list[Task]:
        try:
            result = call_llm(_load_prompt(), requirements.render(), response_format="json")
        except LLMError as e:
            raise PlanningError(f"Failed to create task list: {e}") from e

        raw_tasks = result.get("tasks") if isinstance(result, dict) else result
        if not isinstance(raw_tasks, list) or not raw_tasks:
            raise PlanningError("Task breakdown is missing a non-empty 'tasks' list")

        tasks = self._parse(raw_tasks)
        tasks = self._ensure_page_wiring(tasks)
        self.check(tasks)
        log.info("Planned %d task(s): %s", len(tasks), ", ".join(t.id for t in tasks))
        return tasks

    def _parse(self, raw_tasks):
        tasks: list[Task] = []
        dropped: set[str] = set()

        for idx, raw in enumerate(raw_tasks, 1):
            if not isinstance(raw, dict):
                raise PlanningError(f"Task #{idx} is not an object")
            task_id = str(raw.get("id") or f"task-{idx}")
            files = raw.get("files")
            if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
                raise PlanningError(f"Task {task_id} has no valid 'files' list")
            deps = raw.get("dependencies") or []
            if not isinstance(deps, list):
                raise PlanningError(f"Task {task_id} has invalid 'dependencies'")
            try:
                priority = int(raw.get("priority", idx))
            except (TypeError, ValueError):
                raise PlanningError(f"Task {task_id} has a non-integer priority") from None

            reason = _excluded_reason(raw)
            if reason:
                log.info("Skipping task %s (%s): %s", task_id, reason, raw.get("name", ""))
                dropped.add(task_id)
                continue

            paths = []
            for f in files:
                try:
                    path = normalize_path(f)
                except ValueError as e:
                    raise PlanningError(f"Task {task_id}: {e}") from None
                if path in PROTECTED_PATHS:
                    log.info("Task %s: dropping protected path %s", task_id, path)
                    continue
                if path not in paths:
                    paths.append(path)
            if not paths:
                log.info("Skipping task %s: no files left to generate", task_id)
                dropped.add(task_id)
                continue

            tasks.append(Task(
                id=task_id,
                name=str(raw.get("name") or task_id),
                description=str(raw.get("description") or ""),
                dependencies={str(d) for d in deps},
                files=paths,
                priority=priority,
            ))

        for t in tasks:
            t.dependencies -= dropped
        if not tasks:
            raise PlanningError("Every planned task was filtered out")
        return tasks

    def _ensure_page_wiring(self, tasks):
        if any(self.entry_page in t.files for t in tasks):
            return tasks
        log.info("No task wires %s; appending a wiring task", self.entry_page)
        wiring = Task(
            id=f"task-{len(tasks) + 1}-wire-page",
            name="Wire main page",
            description=f"Update {self.entry_page} to import and render the main component, "
                        "wrapped in any required providers",
            dependencies={t.id for t in tasks},
            files=[self.entry_page],
            priority=max(t.priority for t in tasks) + 1,
        )
        return tasks + [wiring]

    @staticmethod
    def check(tasks):
        """Validate planning invariants. Raises PlanningError on the first violation.

        - task ids are unique
        - dependencies name only tasks declared earlier in the list
        - every file is claimed by exactly one task
        - the dependency graph is acyclic
        """
        seen_ids: list[str] = []
        owners: dict[str, str] = {}
        for t in tasks:
            if t.id in seen_ids:
                raise PlanningError(f"Duplicate task id: {t.id}")
            later = sorted(d for d in t.dependencies if d not in seen_ids)
            if later:
                raise PlanningError(
                    f"Task {t.id} depends on task(s) not declared before it: {', '.join(later)}"
                )
            for path in t.files:
                if path in owners:
                    raise PlanningError(f"File {path} is claimed by both {owners[path]} and {t.id}")
                owners[path] = t.id
            seen_ids.append(t.id)
        topological_order(tasks)
