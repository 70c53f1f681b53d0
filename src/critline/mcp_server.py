"""MCP server for critline: exposes schedule analysis tools to AI assistants."""

from __future__ import annotations

import json
from datetime import datetime, timezone

from mcp.server.fastmcp import FastMCP

from critline.baseline import (
    apply_baseline,
    baseline_kpis,
    baseline_variance,
    delete_baseline as delete_recorded_baseline,
    find_baseline,
    record_baseline,
    task_baseline_metrics,
)
from critline.exceptions import BaselineNotFoundError, CycleDetectedError, TaskNotFoundError
from critline.logging_config import setup_logging
from critline.models import ProjectConfig, Task
from critline.persistence import Store, get_task
from critline.scheduler import compute_critical_path, find_cycle_ids, task_duration_days

mcp = FastMCP(
    "critline",
    instructions="""\
critline analyses a project schedule. Tasks have calendar start/end dates \
(YYYY-MM-DD), predecessor ids (dependency_ids) and optionally a baseline: the \
planned dates recorded at some earlier point.

Key concepts:
- **Critical path**: the chain of dependent tasks with the longest total \
duration in days. Use get_critical_path. A dependency cycle is reported as an \
error naming the tasks involved; it must be fixed in the data.
- **Baseline deviation**: how far each task's current dates have drifted from \
a baseline. Use get_deviation_report for per-task start/finish variance in \
days plus the average deviation and the number of delayed tasks. A cycle does \
not block the report; critical flags are then omitted and a warning is set.
- **Overlay metrics**: get_baseline_metrics returns width and offset as \
percentages of the task's current span, as drawn on a Gantt chart.
- **Named baselines**: set_baseline records the current dates under a name and \
makes it the active baseline. list_baselines shows every recorded baseline; \
get_deviation_report and get_baseline_metrics accept a baseline name to \
compare against an older one. delete_baseline removes one.\
""",
)


def _get_store() -> Store:
    return Store()


def _task_to_dict(t: Task) -> dict:
    """Convert a task to a JSON-friendly dict with its duration."""
    d = {"id": t.id, **t.to_dict()}
    d["duration_days"] = task_duration_days(t)
    return d


def _cycle_description(e: CycleDetectedError, tasks: dict[str, Task]) -> str:
    cycle = find_cycle_ids(tasks.values())
    if cycle:
        return f"{e}. Cycle: {' -> '.join(cycle + [cycle[0]])}"
    return str(e)


# ---------------------------------------------------------------------------
# Read tools
# ---------------------------------------------------------------------------


@mcp.tool()
def list_tasks(project: str | None = None) -> str:
    """List tasks with their dates, dependencies and baseline dates.

    Args:
        project: Optional project label to filter by
    """
    _, tasks = _get_store().load()
    filtered = [
        t for t in tasks.values()
        if project is None or (t.project or "").lower() == project.lower()
    ]
    return json.dumps([_task_to_dict(t) for t in filtered], indent=2)


@mcp.tool()
def get_critical_path() -> str:
    """Get the longest chain of dependent tasks and its total duration in days."""
    _, tasks = _get_store().load()
    try:
        result = compute_critical_path(list(tasks.values()))
    except CycleDetectedError as e:
        return f"Error: {_cycle_description(e, tasks)}"
    if result is None:
        return "No tasks found."
    return json.dumps(result.to_dict(), indent=2)


@mcp.tool()
def get_baseline_metrics(task_id: str, baseline: str | None = None) -> str:
    """Get the baseline overlay width and offset for a task.

    Args:
        task_id: Task ID (e.g. "T-3")
        baseline: Optional baseline name or ID; defaults to the active baseline
    """
    config, tasks = _get_store().load()
    try:
        if baseline is not None:
            tasks = apply_baseline(tasks, find_baseline(config, baseline))
        t = get_task(tasks, task_id)
    except (BaselineNotFoundError, TaskNotFoundError) as e:
        return f"Error: {e}."
    metrics = task_baseline_metrics(t)
    return json.dumps({
        "task_id": t.id,
        "width": round(metrics.width, 2),
        "offset": round(metrics.offset, 2),
    })


@mcp.tool()
def get_deviation_report(baseline: str | None = None) -> str:
    """Compare every baselined task's current dates with a baseline.

    Args:
        baseline: Optional baseline name or ID; defaults to the active baseline
    """
    config, tasks = _get_store().load()
    baseline_name = config.baseline_name if config else None
    if baseline is not None:
        try:
            chosen = find_baseline(config, baseline)
        except BaselineNotFoundError as e:
            return f"Error: {e}."
        tasks = apply_baseline(tasks, chosen)
        baseline_name = chosen.name

    warning = None
    try:
        result = compute_critical_path(list(tasks.values()))
        crit_ids = result.task_ids if result else []
    except CycleDetectedError as e:
        warning = f"{_cycle_description(e, tasks)}. Critical tasks are not flagged."
        crit_ids = []

    rows = baseline_variance(tasks.values(), crit_ids)
    if not rows:
        return "No baseline recorded. Use set_baseline first."
    kpis = baseline_kpis(rows)
    report = {
        "baseline": baseline_name,
        "average_deviation": kpis.average_deviation,
        "tasks_delayed": kpis.tasks_delayed,
        "rows": [r.to_dict() for r in rows],
    }
    if warning:
        report["warning"] = warning
    return json.dumps(report, indent=2)


@mcp.tool()
def list_baselines() -> str:
    """List recorded baselines with when they were taken."""
    config, _ = _get_store().load()
    if config is None or not config.baselines:
        return "No baselines recorded."
    return json.dumps([
        {
            "id": b.id,
            "name": b.name,
            "taken_at": b.taken_at.isoformat(),
            "tasks": len(b.task_dates),
            "active": b.name == config.baseline_name,
        }
        for b in config.baselines.values()
    ], indent=2)


# ---------------------------------------------------------------------------
# Write tools
# ---------------------------------------------------------------------------


@mcp.tool()
def set_baseline(name: str = "Baseline") -> str:
    """Record every task's current dates as a named baseline and make it active.

    Args:
        name: Label for the baseline; an existing baseline with this name is replaced
    """
    store = _get_store()
    config, tasks = store.load()
    if not tasks:
        return "Error: No tasks to baseline."
    config = config or ProjectConfig()
    tasks = record_baseline(config, tasks, name, datetime.now(timezone.utc))
    store.save(config, tasks)
    return f"Baseline '{name}' recorded for {len(tasks)} task(s)."


@mcp.tool()
def delete_baseline(name: str) -> str:
    """Delete a recorded baseline.

    Args:
        name: Baseline name or ID
    """
    store = _get_store()
    config, tasks = store.load()
    try:
        tasks = delete_recorded_baseline(config, tasks, name)
    except BaselineNotFoundError as e:
        return f"Error: {e}."
    store.save(config, tasks)
    return f"Deleted baseline '{name}'."


def main():
    """Entry point for the MCP server."""
    setup_logging()
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
