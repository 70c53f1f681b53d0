"""Baseline snapshots and deviation metrics."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime
from statistics import fmean

from critline.dates import days_between, parse_as_utc_date
from critline.exceptions import BaselineNotFoundError
from critline.models import (
    Baseline,
    BaselineKpis,
    BaselineMetrics,
    ProjectConfig,
    Task,
    TaskVarianceRow,
)

logger = logging.getLogger(__name__)


def compute_baseline_metrics(
    start: object,
    end: object,
    baseline_start: object = None,
    baseline_end: object = None,
) -> BaselineMetrics:
    """Size and position of the baseline bar relative to the current span.

    ``width`` is the baseline duration as a percentage of the current
    duration; ``offset`` is how far the baseline starts from the current
    start, in the same unit (negative means earlier).  Values are not
    clamped.  Returns zeros when either baseline date is missing or the
    current span is not strictly positive.
    """
    b_start = parse_as_utc_date(baseline_start)
    b_end = parse_as_utc_date(baseline_end)
    if b_start is None or b_end is None:
        return BaselineMetrics()

    span = days_between(start, end)
    if span is None or span <= 0:
        return BaselineMetrics()

    start_dt = parse_as_utc_date(start)
    width = (b_end - b_start).total_seconds() / (span * 86400) * 100
    offset = (b_start - start_dt).total_seconds() / (span * 86400) * 100
    return BaselineMetrics(width=width, offset=offset)


def task_baseline_metrics(task: Task) -> BaselineMetrics:
    return compute_baseline_metrics(
        task.start_date,
        task.end_date,
        task.baseline_start_date,
        task.baseline_end_date,
    )


def take_baseline_snapshot(tasks: dict[str, Task]) -> dict[str, Task]:
    """Return copies of *tasks* whose baseline dates are their current dates."""
    return {
        tid: replace(
            t,
            dependency_ids=list(t.dependency_ids),
            baseline_start_date=t.start_date,
            baseline_end_date=t.end_date,
        )
        for tid, t in tasks.items()
    }


def clear_baseline(tasks: dict[str, Task]) -> dict[str, Task]:
    return {
        tid: replace(
            t,
            dependency_ids=list(t.dependency_ids),
            baseline_start_date=None,
            baseline_end_date=None,
        )
        for tid, t in tasks.items()
    }


# ---------------------------------------------------------------------------
# Named baselines
# ---------------------------------------------------------------------------


def snapshot_baseline(
    tasks: dict[str, Task],
    baseline_id: str,
    name: str,
    taken_at: datetime,
) -> Baseline:
    return Baseline(
        id=baseline_id,
        name=name,
        taken_at=taken_at,
        task_dates={tid: (t.start_date, t.end_date) for tid, t in tasks.items()},
    )


def apply_baseline(tasks: dict[str, Task], baseline: Baseline) -> dict[str, Task]:
    """Return copies of *tasks* carrying the dates recorded in *baseline*.

    Tasks created after the snapshot get no baseline dates.
    """
    applied: dict[str, Task] = {}
    for tid, t in tasks.items():
        b_start, b_end = baseline.task_dates.get(tid, (None, None))
        applied[tid] = replace(
            t,
            dependency_ids=list(t.dependency_ids),
            baseline_start_date=b_start,
            baseline_end_date=b_end,
        )
    return applied


def find_baseline(config: ProjectConfig | None, key: str) -> Baseline:
    """Look a baseline up by name, falling back to its id."""
    baselines = config.baselines if config else {}
    for b in baselines.values():
        if b.name == key:
            return b
    if key in baselines:
        return baselines[key]
    raise BaselineNotFoundError(key)


def _next_baseline_id(baselines: dict[str, Baseline]) -> str:
    existing = [
        int(k.split("-")[1])
        for k in baselines
        if k.startswith("B-") and k.split("-")[1].isdigit()
    ]
    return f"B-{max(existing, default=0) + 1}"


def record_baseline(
    config: ProjectConfig,
    tasks: dict[str, Task],
    name: str,
    taken_at: datetime,
) -> dict[str, Task]:
    """Store a named snapshot of *tasks* in *config* and make it the active one.

    Recording under an existing name replaces that snapshot.  Returns the
    tasks with their baseline dates set to the new snapshot.
    """
    try:
        baseline_id = find_baseline(config, name).id
    except BaselineNotFoundError:
        baseline_id = _next_baseline_id(config.baselines)

    config.baselines[baseline_id] = snapshot_baseline(tasks, baseline_id, name, taken_at)
    config.baseline_name = name
    config.baseline_taken_at = taken_at
    logger.info("Recorded baseline %s (%s) for %d task(s)", name, baseline_id, len(tasks))
    return take_baseline_snapshot(tasks)


def delete_baseline(
    config: ProjectConfig | None,
    tasks: dict[str, Task],
    key: str,
) -> dict[str, Task]:
    """Remove a recorded baseline.

    Deleting the active baseline also clears the tasks' baseline dates.
    """
    baseline = find_baseline(config, key)
    del config.baselines[baseline.id]
    if config.baseline_name != baseline.name:
        return tasks
    config.baseline_name = None
    config.baseline_taken_at = None
    return clear_baseline(tasks)


def _whole_days(start: object, end: object) -> int | None:
    delta = days_between(start, end)
    return None if delta is None else round(delta)


def baseline_variance(
    tasks: Iterable[Task],
    critical_ids: Iterable[str] = (),
) -> list[TaskVarianceRow]:
    """Compare baseline dates with current dates for every baselined task.

    Variances are current minus baseline in whole days, so a positive
    finish variance means the task now ends later than planned.
    """
    critical = set(critical_ids)
    rows: list[TaskVarianceRow] = []
    for t in tasks:
        if not t.has_baseline:
            continue

        bs = parse_as_utc_date(t.baseline_start_date)
        bf = parse_as_utc_date(t.baseline_end_date)
        cs = parse_as_utc_date(t.start_date)
        cf = parse_as_utc_date(t.end_date)

        rows.append(TaskVarianceRow(
            task_id=t.id,
            task_name=t.name,
            baseline_start=bs.date() if bs else None,
            baseline_finish=bf.date() if bf else None,
            current_start=cs.date() if cs else None,
            current_finish=cf.date() if cf else None,
            start_variance_days=_whole_days(bs, cs),
            finish_variance_days=_whole_days(bf, cf),
            metrics=task_baseline_metrics(t),
            is_critical=t.id in critical,
        ))

    # Critical first, then largest finish variance
    rows.sort(key=lambda r: (not r.is_critical, -(r.finish_variance_days or 0)))
    logger.debug("Built %d baseline variance rows", len(rows))
    return rows


def baseline_kpis(rows: Iterable[TaskVarianceRow]) -> BaselineKpis:
    variances = [r.finish_variance_days for r in rows if r.finish_variance_days is not None]
    return BaselineKpis(
        average_deviation=fmean(variances) if variances else None,
        tasks_delayed=sum(1 for v in variances if v > 0),
    )
