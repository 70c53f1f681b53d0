"""Dependency graph construction and critical path analysis."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

import networkx as nx

from critline.dates import days_between
from critline.exceptions import CycleDetectedError
from critline.models import CriticalPathResult, Task

logger = logging.getLogger(__name__)


def task_duration_days(task: Task) -> float:
    """Length of *task* in days, clamped at zero; missing dates count as zero."""
    span = days_between(task.start_date, task.end_date)
    if span is None:
        return 0.0
    return max(0.0, span)


def build_dag(tasks: Iterable[Task]) -> nx.DiGraph:
    """Construct the dependency graph (edge dependency -> dependent).

    Dependencies on unknown tasks are skipped.  Cycles are left in place;
    use compute_critical_path or find_cycle_ids to detect them.
    """
    G = nx.DiGraph()
    task_list = list(tasks)
    for task in task_list:
        G.add_node(task.id, task=task)
    for task in task_list:
        for dep in task.dependency_ids:
            if dep in G:
                G.add_edge(dep, task.id)
    return G


def find_cycle_ids(tasks: Iterable[Task]) -> list[str]:
    """Return the ids along one dependency cycle, or [] if there is none."""
    try:
        edges = nx.find_cycle(build_dag(tasks))
    except nx.NetworkXNoCycle:
        return []
    return [src for src, _dst in edges]


def find_new_cycle(tasks: Iterable[Task], task_id: str, added_deps: Iterable[str]) -> list[str]:
    """Return a cycle closed by the edges *added_deps* -> *task_id*, or [].

    *tasks* must already contain the edit.  Cycles that do not pass through
    one of the added edges are ignored.
    """
    G = build_dag(tasks)
    for dep in added_deps:
        if dep == task_id:
            return [task_id]
        if dep in G and task_id in G and nx.has_path(G, task_id, dep):
            return nx.shortest_path(G, task_id, dep)
    return []


def compute_critical_path(tasks: Sequence[Task]) -> CriticalPathResult | None:
    """Longest chain of dependent tasks, measured in days.

    Each task's value is its own duration plus the largest value among its
    dependencies.  The first maximal dependency (in ``dependency_ids``
    order) and the first maximal task (in input order) win ties.  Returns
    None for empty input; raises CycleDetectedError if a task is reached
    again while it is still being expanded.
    """
    if not tasks:
        return None

    by_id = {t.id: t for t in tasks}
    longest: dict[str, float] = {}
    via: dict[str, str | None] = {}
    in_progress: set[str] = set()

    def finalize(root_id: str) -> None:
        in_progress.add(root_id)
        stack = [(root_id, iter(by_id[root_id].dependency_ids))]
        while stack:
            current, pending = stack[-1]
            for dep_id in pending:
                if dep_id not in by_id or dep_id in longest:
                    continue
                if dep_id in in_progress:
                    raise CycleDetectedError(dep_id)
                in_progress.add(dep_id)
                stack.append((dep_id, iter(by_id[dep_id].dependency_ids)))
                break
            else:
                # All dependencies of `current` are final
                stack.pop()
                in_progress.discard(current)
                best: str | None = None
                for dep_id in by_id[current].dependency_ids:
                    if dep_id not in by_id:
                        continue
                    if best is None or longest[dep_id] > longest[best]:
                        best = dep_id
                base = longest[best] if best is not None else 0.0
                longest[current] = base + task_duration_days(by_id[current])
                via[current] = best

    winner: str | None = None
    for task in tasks:
        if task.id not in longest:
            finalize(task.id)
        if winner is None or longest[task.id] > longest[winner]:
            winner = task.id

    chain: list[Task] = []
    cursor = winner
    while cursor is not None:
        chain.append(by_id[cursor])
        cursor = via[cursor]
    chain.reverse()

    logger.debug(
        "Critical path ends at %s: %d task(s), %.2f days",
        winner, len(chain), longest[winner],
    )
    return CriticalPathResult(path=tuple(chain), duration=longest[winner])
