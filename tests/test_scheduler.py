import pytest

from critline import scheduler
from critline.exceptions import CycleDetectedError
from critline.models import Task
from critline.scheduler import (
    build_dag,
    compute_critical_path,
    find_cycle_ids,
    find_new_cycle,
    task_duration_days,
)


def test_empty_input_has_no_critical_path():
    assert compute_critical_path([]) is None


def test_linear_chain(chain_tasks):
    result = compute_critical_path(chain_tasks)
    assert result is not None
    assert result.duration == 6
    assert result.task_ids == ["1", "2", "3"]


def test_longest_branch_is_selected():
    tasks = [
        Task("1", "Root", "2023-01-01", "2023-01-02"),
        Task("2", "Short A", "2023-01-02", "2023-01-03", ["1"]),
        Task("3", "Short B", "2023-01-03", "2023-01-04", ["2"]),
        Task("4", "Long A", "2023-01-02", "2023-01-05", ["1"]),
        Task("5", "Long B", "2023-01-05", "2023-01-06", ["4"]),
    ]
    result = compute_critical_path(tasks)
    assert result.duration == 5
    assert result.task_ids == ["1", "4", "5"]


def test_dateless_task_contributes_zero_but_stays_in_path():
    tasks = [
        Task("1", "Kickoff"),
        Task("2", "Work", "2023-01-01", "2023-01-02", ["1"]),
    ]
    result = compute_critical_path(tasks)
    assert result.duration == 1
    assert result.task_ids == ["1", "2"]


def test_malformed_dates_count_as_zero():
    tasks = [
        Task("1", "Broken", "not-a-date", "2023-01-05"),
        Task("2", "Work", "2023-01-01", "2023-01-03", ["1"]),
    ]
    result = compute_critical_path(tasks)
    assert result.duration == 2
    assert result.task_ids == ["1", "2"]


def test_all_zero_durations_still_return_a_path():
    tasks = [Task("a", "A"), Task("b", "B", dependency_ids=["a"])]
    result = compute_critical_path(tasks)
    assert result is not None
    assert result.duration == 0
    assert result.task_ids == ["a"]


def test_two_task_cycle_raises():
    tasks = [
        Task("1", "A", "2023-01-01", "2023-01-02", ["2"]),
        Task("2", "B", "2023-01-02", "2023-01-03", ["1"]),
    ]
    with pytest.raises(CycleDetectedError) as exc_info:
        compute_critical_path(tasks)
    assert exc_info.value.task_id in {"1", "2"}
    assert exc_info.value.code == "SCHEDULE_CYCLE"
    assert "Circular dependency" in str(exc_info.value)


def test_self_dependency_is_a_cycle():
    with pytest.raises(CycleDetectedError) as exc_info:
        compute_critical_path([Task("x", "Loop", dependency_ids=["x"])])
    assert exc_info.value.task_id == "x"


def test_cycle_behind_valid_tasks_is_detected():
    tasks = [
        Task("r", "Root", "2023-01-01", "2023-01-02"),
        Task("d", "Downstream", dependency_ids=["a"]),
        Task("a", "A", dependency_ids=["c", "r"]),
        Task("b", "B", dependency_ids=["a"]),
        Task("c", "C", dependency_ids=["b"]),
    ]
    with pytest.raises(CycleDetectedError) as exc_info:
        compute_critical_path(tasks)
    assert exc_info.value.task_id in {"a", "b", "c"}


def test_cycle_error_is_a_value_error():
    tasks = [Task("1", "A", dependency_ids=["2"]), Task("2", "B", dependency_ids=["1"])]
    with pytest.raises(ValueError):
        compute_critical_path(tasks)


def test_dangling_dependencies_are_ignored():
    tasks = [
        Task("1", "A", "2023-01-01", "2023-01-04", ["ghost"]),
        Task("2", "B", "2023-01-04", "2023-01-05", ["1", "phantom"]),
    ]
    result = compute_critical_path(tasks)
    assert result.duration == 4
    assert result.task_ids == ["1", "2"]


def test_first_maximal_dependency_wins_ties():
    tasks = [
        Task("a", "A", "2023-01-01", "2023-01-03"),
        Task("b", "B", "2023-01-01", "2023-01-03"),
        Task("c", "C", "2023-01-03", "2023-01-04", ["b", "a"]),
    ]
    assert compute_critical_path(tasks).task_ids == ["b", "c"]


def test_first_maximal_task_wins_ties():
    tasks = [
        Task("x", "X", "2023-01-01", "2023-01-03"),
        Task("y", "Y", "2023-02-01", "2023-02-03"),
    ]
    result = compute_critical_path(tasks)
    assert result.task_ids == ["x"]
    assert result.duration == 2


def test_gaps_between_dependent_tasks_are_allowed():
    tasks = [
        Task("1", "A", "2023-01-01", "2023-01-02"),
        Task("2", "B", "2023-03-01", "2023-03-03", ["1"]),
    ]
    result = compute_critical_path(tasks)
    assert result.duration == 3


def test_diamond_finalizes_each_task_once(monkeypatch):
    calls: list[str] = []
    real = scheduler.task_duration_days

    def counting(task):
        calls.append(task.id)
        return real(task)

    monkeypatch.setattr(scheduler, "task_duration_days", counting)

    # Stacked diamonds: without memoization this fans out exponentially
    tasks = [Task("n0", "n0", "2024-01-01", "2024-01-02")]
    for level in range(1, 20):
        prev = f"n{level - 1}"
        tasks.append(Task(f"l{level}", "left", "2024-01-01", "2024-01-02", [prev]))
        tasks.append(Task(f"r{level}", "right", "2024-01-01", "2024-01-03", [prev]))
        tasks.append(Task(f"n{level}", "join", "2024-01-01", "2024-01-02", [f"l{level}", f"r{level}"]))

    result = compute_critical_path(tasks)
    assert sorted(calls) == sorted(t.id for t in tasks)
    assert result.duration == 1 + 19 * 3
    assert result.task_ids[-1] == "n19"


def test_long_chain_does_not_hit_recursion_limit():
    tasks = [Task("t0", "t0", "2024-01-01", "2024-01-02")]
    for i in range(1, 5000):
        tasks.append(Task(f"t{i}", f"t{i}", "2024-01-01", "2024-01-02", [f"t{i - 1}"]))
    result = compute_critical_path(tasks)
    assert result.duration == 5000
    assert len(result.path) == 5000
    assert result.path[0].id == "t0"


def test_result_serializes_names_and_duration(chain_tasks):
    d = compute_critical_path(chain_tasks).to_dict()
    assert d["duration_days"] == 6
    assert [t["name"] for t in d["tasks"]] == ["Design", "Build", "Ship"]


def test_task_duration_days_clamps_negative_spans():
    assert task_duration_days(Task("1", "Backwards", "2024-01-05", "2024-01-01")) == 0
    assert task_duration_days(Task("2", "Same day", "2024-01-05", "2024-01-05")) == 0
    assert task_duration_days(Task("3", "Open", "2024-01-05", None)) == 0
    assert task_duration_days(Task("4", "Week", "2024-01-01", "2024-01-08")) == 7


def test_build_dag_skips_dangling_edges():
    G = build_dag([Task("1", "A"), Task("2", "B", dependency_ids=["1", "zzz"])])
    assert set(G.nodes) == {"1", "2"}
    assert list(G.edges) == [("1", "2")]


def test_find_cycle_ids():
    acyclic = [Task("1", "A"), Task("2", "B", dependency_ids=["1"])]
    assert find_cycle_ids(acyclic) == []

    cyclic = [
        Task("1", "A", dependency_ids=["3"]),
        Task("2", "B", dependency_ids=["1"]),
        Task("3", "C", dependency_ids=["2"]),
    ]
    assert sorted(find_cycle_ids(cyclic)) == ["1", "2", "3"]


def test_find_new_cycle_only_reports_cycles_through_added_edges():
    # a <-> b is already cyclic; c gains a harmless dependency on d
    tasks = [
        Task("a", "A", dependency_ids=["b"]),
        Task("b", "B", dependency_ids=["a"]),
        Task("c", "C", dependency_ids=["d"]),
        Task("d", "D"),
    ]
    assert find_new_cycle(tasks, "c", ["d"]) == []
    assert find_new_cycle(tasks, "a", []) == []


def test_find_new_cycle_returns_closing_path():
    tasks = [
        Task("1", "A", dependency_ids=["3"]),
        Task("2", "B", dependency_ids=["1"]),
        Task("3", "C", dependency_ids=["2"]),
    ]
    assert find_new_cycle(tasks, "1", ["3"]) == ["1", "2", "3"]
    assert find_new_cycle([Task("x", "X", dependency_ids=["x"])], "x", ["x"]) == ["x"]
