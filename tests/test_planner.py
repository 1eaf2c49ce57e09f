"""Tests for agents.planner — call_llm is mocked."""

from unittest.mock import patch

import pytest

from agents.planner import PlannerAgent, normalize_path
from core.errors import PlanningError
from core.state import RequirementsDocument, Task
from utils.llm import MalformedResponse, RateLimited

REQS = RequirementsDocument(overview="A counter", features=("increment", "decrement"))


def _raw(task_id, files, deps=(), name=None, priority=1):
    return {
        "id": task_id,
        "name": name or task_id,
        "description": f"Build {task_id}",
        "dependencies": list(deps),
        "files": files,
        "priority": priority,
    }


def _plan(*raw_tasks):
    with patch("agents.planner.call_llm", return_value={"tasks": list(raw_tasks)}):
        return PlannerAgent().run(REQS)


def test_normalize_path():
    assert normalize_path("src/app/page.tsx") == "/src/app/page.tsx"
    assert normalize_path("./src/app/page.tsx") == "/src/app/page.tsx"
    assert normalize_path("/src/app/page.tsx") == "/src/app/page.tsx"
    assert normalize_path("src/components/../app/page.tsx") == "/src/app/page.tsx"


def test_normalize_path_rejects_escape():
    for bad in ("../../escape.ts", "/../escape.ts", "src/../../escape.ts", "", "."):
        with pytest.raises(ValueError):
            normalize_path(bad)


def test_task_path_outside_project_is_planning_error():
    with pytest.raises(PlanningError, match="outside the project"):
        _plan(_raw("task-1", ["src/app/page.tsx", "../../escape.ts"]))


def test_counter_plan_gets_page_wiring_task():
    tasks = _plan(_raw("task-1", ["src/components/Counter.tsx"], name="Counter component"))
    assert [t.files for t in tasks] == [["/src/components/Counter.tsx"], ["/src/app/page.tsx"]]
    wiring = tasks[-1]
    assert wiring.id == "task-2-wire-page"
    assert wiring.dependencies == {"task-1"}


def test_no_wiring_task_when_page_is_planned():
    tasks = _plan(
        _raw("task-1", ["src/components/Counter.tsx"]),
        _raw("task-2", ["src/app/page.tsx"], deps=["task-1"], priority=2),
    )
    assert [t.id for t in tasks] == ["task-1", "task-2"]


def test_every_file_claimed_once_and_graph_acyclic():
    tasks = _plan(
        _raw("task-1", ["src/types/todo.ts"]),
        _raw("task-2", ["src/context/TodoContext.tsx"], deps=["task-1"]),
        _raw("task-3", ["src/components/TodoList.tsx"], deps=["task-1", "task-2"]),
    )
    paths = [p for t in tasks for p in t.files]
    assert len(paths) == len(set(paths))
    PlannerAgent.check(tasks)


def test_excluded_task_dropped_and_dependency_removed():
    tasks = _plan(
        _raw("task-1", ["src/components/Counter.tsx"]),
        _raw("task-2", ["src/lib/animations.ts"], name="Add animations"),
        _raw("task-3", ["src/app/page.tsx"], deps=["task-1", "task-2"]),
    )
    assert [t.id for t in tasks] == ["task-1", "task-3"]
    assert tasks[1].dependencies == {"task-1"}


def test_protected_path_dropped():
    tasks = _plan(_raw("task-1", ["src/app/globals.css", "src/components/Counter.tsx"]))
    assert tasks[0].files == ["/src/components/Counter.tsx"]


def test_duplicate_file_claim_raises():
    with pytest.raises(PlanningError, match="claimed by both"):
        _plan(
            _raw("task-1", ["src/components/Counter.tsx"]),
            _raw("task-2", ["src/components/Counter.tsx"]),
        )


def test_forward_dependency_raises():
    with pytest.raises(PlanningError, match="not declared before"):
        _plan(
            _raw("task-1", ["src/components/A.tsx"], deps=["task-2"]),
            _raw("task-2", ["src/components/B.tsx"]),
        )


def test_self_dependency_raises():
    with pytest.raises(PlanningError):
        _plan(_raw("task-1", ["src/components/A.tsx"], deps=["task-1"]))


def test_missing_tasks_list_raises():
    with patch("agents.planner.call_llm", return_value={"plan": "do stuff"}):
        with pytest.raises(PlanningError, match="tasks"):
            PlannerAgent().run(REQS)


def test_task_without_files_raises():
    with pytest.raises(PlanningError, match="files"):
        _plan({"id": "task-1", "name": "Counter"})


def test_malformed_response_is_planning_error():
    with patch("agents.planner.call_llm", side_effect=MalformedResponse("bad", raw="nope")):
        with pytest.raises(PlanningError):
            PlannerAgent().run(REQS)


def test_backend_failure_is_planning_error():
    with patch("agents.planner.call_llm", side_effect=RateLimited("429")):
        with pytest.raises(PlanningError, match="429"):
            PlannerAgent().run(REQS)


def test_check_rejects_duplicate_ids():
    tasks = [Task(id="a", name="a", files=["/x.ts"]), Task(id="a", name="a", files=["/y.ts"])]
    with pytest.raises(PlanningError, match="Duplicate"):
        PlannerAgent.check(tasks)
