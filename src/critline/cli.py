"""Typer CLI for critline."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from critline.baseline import (
    apply_baseline,
    baseline_kpis,
    baseline_variance,
    clear_baseline as clear_baseline_dates,
    delete_baseline,
    find_baseline,
    record_baseline,
)
from critline.dates import format_to_iso_date_string, parse_as_utc_date
from critline.exceptions import BaselineNotFoundError, CycleDetectedError, TaskNotFoundError
from critline.logging_config import setup_logging
from critline.models import CriticalPathResult, ProjectConfig, Task
from critline.persistence import Store, get_task, parse_task_records
from critline.scheduler import (
    build_dag,
    compute_critical_path,
    find_cycle_ids,
    find_new_cycle,
    task_duration_days,
)

app = typer.Typer(
    name="critline",
    help="Critical path and baseline deviation analysis for project schedules.",
    no_args_is_help=True,
)
console = Console()


def _get_store() -> Store:
    return Store()


def _complete_task_id(incomplete: str) -> list[str]:
    """Shell completion for task IDs."""
    try:
        _, tasks = Store().load()
    except (OSError, ValueError):
        return []
    q = incomplete.lower()
    return [tid for tid, t in tasks.items() if q in tid.lower() or q in t.name.lower()]


def _normalize_date(value: str | None, label: str) -> str | None:
    """Validate a user-supplied date and return it as YYYY-MM-DD."""
    if value is None or value == "":
        return None
    parsed = parse_as_utc_date(value)
    if parsed is None:
        console.print(f"[red]Invalid {label} '{value}'. Use YYYY-MM-DD.[/red]")
        raise typer.Exit(1)
    return format_to_iso_date_string(parsed)


def _expand_ids(values: list[str] | None) -> list[str]:
    """Expand repeated and comma-separated id options."""
    expanded: list[str] = []
    for v in values or []:
        expanded.extend(part.strip() for part in v.split(",") if part.strip())
    return expanded


def _critical_path_or_exit(tasks: dict[str, Task]) -> CriticalPathResult | None:
    try:
        return compute_critical_path(list(tasks.values()))
    except CycleDetectedError as e:
        console.print(f"[red]Error: {e}[/red]")
        cycle = find_cycle_ids(tasks.values())
        if cycle:
            console.print(f"[red]Cycle: {' -> '.join(cycle + [cycle[0]])}[/red]")
        console.print("Fix the task dependencies and try again.")
        raise typer.Exit(1)


def _fmt_days(days: float) -> str:
    return f"{days:g}"


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    setup_logging("DEBUG" if verbose else None)


# ---------------------------------------------------------------------------
# Task editing
# ---------------------------------------------------------------------------


@app.command()
def init(
    name: Annotated[str, typer.Option(help="Project name", prompt="Project name")],
) -> None:
    """Initialize (or rename) the project."""
    store = _get_store()
    config, tasks = store.load()
    config = config or ProjectConfig()
    config.name = name
    store.save(config, tasks)
    console.print(f"[green]Project '{name}' initialized.[/green]")


@app.command()
def add(
    name: str,
    start: Annotated[Optional[str], typer.Option(help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option(help="End date (YYYY-MM-DD)")] = None,
    depends: Annotated[Optional[list[str]], typer.Option("--depends", help="Task IDs this depends on")] = None,
    project: Annotated[Optional[str], typer.Option("--project", "-p", help="Owning project label")] = None,
) -> None:
    """Add a new task.

    Dependencies can be given individually (--depends T-1 --depends T-2)
    or comma-separated (--depends T-1,T-2).
    """
    store = _get_store()
    config, tasks = store.load()
    tid = store.generate_id(tasks)

    deps = _expand_ids(depends)
    for dep in deps:
        if dep not in tasks:
            console.print(f"[red]Dependency {dep} not found.[/red]")
            raise typer.Exit(1)

    tasks[tid] = Task(
        id=tid,
        name=name,
        start_date=_normalize_date(start, "start date"),
        end_date=_normalize_date(end, "end date"),
        dependency_ids=deps,
        project=project,
    )
    store.save(config, tasks)
    console.print(f"[green]Added '{name}' as {tid}[/green]")


@app.command()
def update(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    name: Annotated[Optional[str], typer.Option(help="New name")] = None,
    start: Annotated[Optional[str], typer.Option(help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option(help="End date (YYYY-MM-DD)")] = None,
    depends: Annotated[Optional[list[str]], typer.Option("--depends", help="Replace dependencies")] = None,
    clear_deps: Annotated[bool, typer.Option("--clear-deps", help="Remove all dependencies")] = False,
) -> None:
    """Update a task's name, dates or dependencies."""
    store = _get_store()
    config, tasks = store.load()
    try:
        t = get_task(tasks, task_id)
    except TaskNotFoundError as e:
        console.print(f"[red]{e}.[/red]")
        raise typer.Exit(1)

    if name is not None:
        t.name = name
    if start is not None:
        t.start_date = _normalize_date(start, "start date")
    if end is not None:
        t.end_date = _normalize_date(end, "end date")
    if clear_deps:
        t.dependency_ids = []
    elif depends:
        deps = _expand_ids(depends)
        for dep in deps:
            if dep not in tasks:
                console.print(f"[red]Dependency {dep} not found.[/red]")
                raise typer.Exit(1)
        added = [d for d in deps if d not in t.dependency_ids]
        t.dependency_ids = deps

        # Cycles already in the data are left alone; only new edges are checked
        cycle = find_new_cycle(tasks.values(), task_id, added)
        if cycle:
            console.print(f"[red]Update rejected, it creates a cycle: {' -> '.join(cycle + [task_id])}[/red]")
            raise typer.Exit(1)

    store.save(config, tasks)
    console.print(f"[green]Updated {task_id}.[/green]")


@app.command()
def delete(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Delete a task and remove it from other tasks' dependencies."""
    store = _get_store()
    config, tasks = store.load()
    if task_id not in tasks:
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)

    name = tasks.pop(task_id).name
    for t in tasks.values():
        if task_id in t.dependency_ids:
            t.dependency_ids = [d for d in t.dependency_ids if d != task_id]
    store.save(config, tasks)
    console.print(f"[green]Deleted {task_id} ('{name}').[/green]")


@app.command("list")
def list_tasks(
    project: Annotated[Optional[str], typer.Option("--project", "-p", help="Filter by project")] = None,
) -> None:
    """List all tasks with their dates and dependencies."""
    store = _get_store()
    _, tasks = store.load()
    filtered = list(tasks.values())
    if project:
        p = project.lower()
        filtered = [t for t in filtered if (t.project or "").lower() == p]

    if not filtered:
        console.print("No tasks found.")
        return

    table = Table(title="Tasks")
    table.add_column("ID")
    table.add_column("Task Name")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Days")
    table.add_column("Depends On")
    table.add_column("Baseline")

    for t in filtered:
        baseline = (
            f"{t.baseline_start_date or '?'} .. {t.baseline_end_date or '?'}"
            if t.has_baseline
            else "-"
        )
        table.add_row(
            t.id,
            t.name,
            t.start_date or "-",
            t.end_date or "-",
            _fmt_days(task_duration_days(t)),
            ", ".join(t.dependency_ids) or "-",
            baseline,
        )

    console.print(table)


@app.command("import")
def import_tasks(
    file: Annotated[str, typer.Argument(help="JSON file path, or - for stdin")],
    replace: Annotated[bool, typer.Option("--replace", help="Replace all existing tasks")] = False,
) -> None:
    """Import exported task records from a JSON file (or stdin with -).

    Accepts a JSON array of task records or an object with a "tasks" array.
    Each record needs an "id"; "name", "start_date", "end_date",
    "dependency_ids" and the baseline dates are optional.  Records whose id
    already exists overwrite that task.
    """
    import sys

    if file == "-":
        raw_text = sys.stdin.read()
    else:
        path = Path(file)
        if not path.exists():
            console.print(f"[red]File not found: {file}[/red]")
            raise typer.Exit(1)
        raw_text = path.read_text(encoding="utf-8")

    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON: {e}[/red]")
        raise typer.Exit(1)

    records = data.get("tasks") if isinstance(data, dict) else data
    if not isinstance(records, list):
        console.print('[red]JSON must be an array of tasks or have a "tasks" array.[/red]')
        raise typer.Exit(1)

    try:
        incoming = parse_task_records(records)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    store = _get_store()
    config, tasks = store.load()
    if replace:
        tasks = {}
    added = [tid for tid in incoming if tid not in tasks]
    updated = [tid for tid in incoming if tid in tasks]
    tasks.update(incoming)
    store.save(config, tasks)

    console.print(f"[green]Imported {len(incoming)} task(s): {len(added)} added, {len(updated)} updated.[/green]")


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


@app.command("critical-path")
def critical_path(
    as_json: Annotated[bool, typer.Option("--json", help="Print the result as JSON")] = False,
) -> None:
    """Show the longest chain of dependent tasks and its length in days."""
    store = _get_store()
    _, tasks = store.load()
    result = _critical_path_or_exit(tasks)

    if result is None:
        if as_json:
            typer.echo(json.dumps(None))
        else:
            console.print("No critical path found.")
        return

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    table = Table(title="Critical Path")
    table.add_column("ID")
    table.add_column("Task Name")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Days")

    for t in result.path:
        table.add_row(
            t.id,
            t.name,
            t.start_date or "-",
            t.end_date or "-",
            _fmt_days(task_duration_days(t)),
        )

    console.print(table)
    console.print(f"\nTotal critical path duration: [bold]{_fmt_days(result.duration)}[/bold] days")


@app.command("set-baseline")
def set_baseline(
    name: Annotated[str, typer.Option(help="Baseline label")] = "Baseline",
) -> None:
    """Record every task's current dates as a named baseline.

    Recording under an existing name replaces that baseline; other named
    baselines are kept.
    """
    store = _get_store()
    config, tasks = store.load()
    if not tasks:
        console.print("No tasks to baseline.")
        return

    config = config or ProjectConfig()
    tasks = record_baseline(config, tasks, name, datetime.now(timezone.utc))
    store.save(config, tasks)
    console.print(f"[green]Baseline '{name}' recorded for {len(tasks)} task(s).[/green]")


@app.command("baselines")
def list_baselines() -> None:
    """List the recorded baselines."""
    store = _get_store()
    config, _ = store.load()
    if config is None or not config.baselines:
        console.print("No baselines recorded.")
        return

    table = Table(title="Baselines")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Taken At")
    table.add_column("Tasks")
    table.add_column("Active")

    for b in config.baselines.values():
        table.add_row(
            b.id,
            b.name,
            b.taken_at.strftime("%Y-%m-%d %H:%M"),
            str(len(b.task_dates)),
            "yes" if b.name == config.baseline_name else "-",
        )

    console.print(table)


@app.command("delete-baseline")
def delete_baseline_cmd(
    name: Annotated[str, typer.Argument(help="Baseline name or ID")],
) -> None:
    """Delete a recorded baseline."""
    store = _get_store()
    config, tasks = store.load()
    try:
        tasks = delete_baseline(config, tasks, name)
    except BaselineNotFoundError as e:
        console.print(f"[red]{e}.[/red]")
        raise typer.Exit(1)
    store.save(config, tasks)
    console.print(f"[green]Deleted baseline '{name}'.[/green]")


@app.command("clear-baseline")
def clear_baseline() -> None:
    """Remove the active baseline dates from every task.

    Recorded named baselines are kept.
    """
    store = _get_store()
    config, tasks = store.load()
    if config is not None:
        config.baseline_name = None
        config.baseline_taken_at = None
    store.save(config, clear_baseline_dates(tasks))
    console.print("[green]Baseline cleared.[/green]")


def _critical_ids_or_warning(tasks: dict[str, Task]) -> tuple[list[str], str | None]:
    """Critical path ids, or ([], warning) when the graph has a cycle."""
    try:
        result = compute_critical_path(list(tasks.values()))
    except CycleDetectedError as e:
        cycle = find_cycle_ids(tasks.values())
        detail = f" ({' -> '.join(cycle + [cycle[0]])})" if cycle else ""
        return [], f"{e}{detail}. Critical tasks are not flagged."
    return (result.task_ids if result else []), None


@app.command()
def deviation(
    baseline: Annotated[Optional[str], typer.Option("--baseline", "-b", help="Compare against this named baseline")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the report as JSON")] = False,
) -> None:
    """Compare current task dates with a recorded baseline."""
    store = _get_store()
    config, tasks = store.load()
    baseline_name = config.baseline_name if config else None
    if baseline is not None:
        try:
            chosen = find_baseline(config, baseline)
        except BaselineNotFoundError as e:
            console.print(f"[red]{e}.[/red]")
            raise typer.Exit(1)
        tasks = apply_baseline(tasks, chosen)
        baseline_name = chosen.name

    crit_ids, warning = _critical_ids_or_warning(tasks)
    rows = baseline_variance(tasks.values(), crit_ids)
    kpis = baseline_kpis(rows)

    if as_json:
        typer.echo(json.dumps({
            "baseline": baseline_name,
            "kpis": {
                "average_deviation": kpis.average_deviation,
                "tasks_delayed": kpis.tasks_delayed,
            },
            "warning": warning,
            "rows": [r.to_dict() for r in rows],
        }, indent=2))
        return

    if warning:
        console.print(f"[yellow]Warning: {warning}[/yellow]")
    if not rows:
        console.print("No baseline recorded. Run 'critline set-baseline' first.")
        return

    title = f"Baseline Deviation ({baseline_name})" if baseline_name else "Baseline Deviation"
    table = Table(title=title)
    table.add_column("ID")
    table.add_column("Task Name")
    table.add_column("Baseline")
    table.add_column("Current")
    table.add_column("Start +d")
    table.add_column("Finish +d")
    table.add_column("Width %")
    table.add_column("Offset %")
    table.add_column("Flags")

    def _fmt_range(a, b) -> str:
        return f"{a.isoformat() if a else '?'} .. {b.isoformat() if b else '?'}"

    def _fmt_var(v: int | None) -> str:
        return "-" if v is None else f"{v:+d}"

    for r in rows:
        flags = []
        if r.is_critical:
            flags.append("CRITICAL")
        if (r.finish_variance_days or 0) > 0:
            flags.append("LATE")
        style = "bold red" if "LATE" in flags else ("bold yellow" if r.is_critical else None)
        table.add_row(
            r.task_id,
            r.task_name,
            _fmt_range(r.baseline_start, r.baseline_finish),
            _fmt_range(r.current_start, r.current_finish),
            _fmt_var(r.start_variance_days),
            _fmt_var(r.finish_variance_days),
            f"{r.metrics.width:.1f}",
            f"{r.metrics.offset:.1f}",
            " | ".join(flags) or "-",
            style=style,
        )

    console.print(table)
    avg = "-" if kpis.average_deviation is None else f"{kpis.average_deviation:.1f}d"
    console.print(f"\nAverage deviation: [bold]{avg}[/bold]")
    console.print(f"Tasks delayed: [bold]{kpis.tasks_delayed}[/bold]")


def _mermaid_text(text: str) -> str:
    # Mermaid labels are double-quoted; entity codes keep the punctuation
    return text.replace('"', "#quot;").replace("<", "#lt;").replace(">", "#gt;")


@app.command()
def viz(
    output: Annotated[str, typer.Option("-o", "--output", help="Output file path")] = "dag.md",
) -> None:
    """Generate a Mermaid flowchart of the task DAG with the critical path highlighted."""
    store = _get_store()
    _, tasks = store.load()
    if not tasks:
        console.print("No tasks to visualize.")
        return

    result = _critical_path_or_exit(tasks)
    crit_ids = result.task_ids if result else []
    crit_edges = set(zip(crit_ids, crit_ids[1:]))
    G = build_dag(tasks.values())

    # Task ids may hold spaces or punctuation; nodes get generated keys
    keys = {tid: f"n{i}" for i, tid in enumerate(G.nodes)}

    lines = ["```mermaid", "flowchart LR"]
    lines.append("    classDef crit fill:#d4a373,stroke:#e76f51,color:#000,stroke-width:3px")
    lines.append("    classDef default fill:#457b9d,stroke:#1d3557,color:#f1faee")

    for tid in G.nodes:
        task = tasks[tid]
        label = f"{_mermaid_text(tid)}: {_mermaid_text(task.name)}"
        lines.append(f'    {keys[tid]}["{label}<br/>{_fmt_days(task_duration_days(task))}d"]')

    for dep, tid in G.edges:
        arrow = "==>" if (dep, tid) in crit_edges else "-->"
        lines.append(f"    {keys[dep]} {arrow} {keys[tid]}")

    if crit_ids:
        lines.append(f"    class {','.join(keys[tid] for tid in crit_ids)} crit")

    lines.append("```")

    Path(output).write_text("\n".join(lines) + "\n", encoding="utf-8")
    console.print(f"[green]Wrote Mermaid diagram to {output}[/green]")


if __name__ == "__main__":
    app()
