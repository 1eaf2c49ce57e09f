"""Tests for core.dag."""

import pytest

from core.dag import (
    find_cycle, ready_tasks, topological_order, transitive_dependencies, transitive_dependents,
)
from core.errors import PlanningError
from core.state import Task


def _t(task_id, deps=(), priority=0):
    return Task(id=task_id, name=task_id, dependencies=set(deps), priority=priority)


def test_topological_order_respects_dependencies():
    tasks = [_t("page", deps={"counter", "types"}), _t("counter", deps={"types"}), _t("types")]
    order = [t.id for t in topological_order(tasks)]
    assert order.index("types") < order.index("counter") < order.index("page")


def test_ties_broken_by_priority_then_planning_order():
    tasks = [_t("b", priority=2), _t("a", priority=1), _t("c", priority=1)]
    assert [t.id for t in topological_order(tasks)] == ["a", "c", "b"]


def test_cycle_raises_planning_error():
    tasks = [_t("a", deps={"b"}), _t("b", deps={"a"})]
    assert find_cycle(tasks)
    with pytest.raises(PlanningError, match="cycle"):
        topological_order(tasks)


def test_unknown_dependency_raises():
    with pytest.raises(PlanningError, match="unknown"):
        topological_order([_t("a", deps={"ghost"})])


def test_acyclic_graph_has_no_cycle():
    assert find_cycle([_t("a"), _t("b", deps={"a"})]) == []


def test_ready_tasks_waits_for_completed_dependencies():
    a, b, c = _t("a"), _t("b", deps={"a"}), _t("c")
    tasks = [a, b, c]
    assert [t.id for t in ready_tasks(tasks)] == ["a", "c"]
    a.advance("in_progress")
    a.advance("completed")
    assert [t.id for t in ready_tasks(tasks)] == ["b", "c"]


def test_transitive_relations():
    tasks = [_t("a"), _t("b", deps={"a"}), _t("c", deps={"b"}), _t("d")]
    assert sorted(transitive_dependents(tasks, "a")) == ["b", "c"]
    assert transitive_dependencies(tasks, "c") == ["b", "a"]
    assert transitive_dependencies(tasks, "d") == []
