"""Task model and computed result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime


def _text_or_none(value: object) -> str | None:
    # Non-string dates count as malformed, i.e. absent
    return value if isinstance(value, str) and value else None


def _id_list(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, int) and not isinstance(value, bool):
        return [str(value)]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None and str(v)]
    return []


@dataclass
class Baseline:
    """A named snapshot of every task's planned dates."""

    id: str
    name: str
    taken_at: datetime
    task_dates: dict[str, tuple[str | None, str | None]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "taken_at": self.taken_at.isoformat(),
            "task_dates": {tid: list(dates) for tid, dates in self.task_dates.items()},
        }

    @classmethod
    def from_dict(cls, baseline_id: str, d: dict) -> Baseline:
        task_dates: dict[str, tuple[str | None, str | None]] = {}
        for tid, dates in (d.get("task_dates") or {}).items():
            start, end = dates if isinstance(dates, list) and len(dates) == 2 else (None, None)
            task_dates[tid] = (_text_or_none(start), _text_or_none(end))
        return cls(
            id=baseline_id,
            name=d.get("name") or baseline_id,
            taken_at=datetime.fromisoformat(d["taken_at"]),
            task_dates=task_dates,
        )


@dataclass
class ProjectConfig:
    """Project-level settings stored alongside tasks.

    ``baseline_name`` names the baseline currently copied onto the tasks'
    baseline dates; ``baselines`` keeps every recorded snapshot by id.
    """

    name: str = "Project"
    baseline_name: str | None = None
    baseline_taken_at: datetime | None = None
    baselines: dict[str, Baseline] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "baseline_name": self.baseline_name,
            "baseline_taken_at": (
                self.baseline_taken_at.isoformat() if self.baseline_taken_at else None
            ),
            "baselines": {bid: b.to_dict() for bid, b in self.baselines.items()},
        }

    @classmethod
    def from_dict(cls, d: dict) -> ProjectConfig:
        taken_at = d.get("baseline_taken_at")
        return cls(
            name=d.get("name", "Project"),
            baseline_name=d.get("baseline_name"),
            baseline_taken_at=datetime.fromisoformat(taken_at) if taken_at else None,
            baselines={
                bid: Baseline.from_dict(bid, bd)
                for bid, bd in (d.get("baselines") or {}).items()
            },
        )


@dataclass
class Task:
    """A task as supplied by the task data source."""

    id: str
    name: str
    start_date: str | None = None
    end_date: str | None = None
    dependency_ids: list[str] = field(default_factory=list)
    baseline_start_date: str | None = None
    baseline_end_date: str | None = None
    project: str | None = None

    @property
    def has_baseline(self) -> bool:
        return bool(self.baseline_start_date or self.baseline_end_date)

    def to_dict(self) -> dict:
        d = {
            "name": self.name,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "dependency_ids": self.dependency_ids,
            "baseline_start_date": self.baseline_start_date,
            "baseline_end_date": self.baseline_end_date,
        }
        if self.project is not None:
            d["project"] = self.project
        return d

    @classmethod
    def from_dict(cls, task_id: str, d: dict) -> Task:
        name = d.get("name")
        project = d.get("project") or d.get("project_name")
        return cls(
            id=task_id,
            name=str(name) if name not in (None, "") else task_id,
            start_date=_text_or_none(d.get("start_date")),
            end_date=_text_or_none(d.get("end_date")),
            dependency_ids=_id_list(d.get("dependency_ids")),
            baseline_start_date=_text_or_none(d.get("baseline_start_date")),
            baseline_end_date=_text_or_none(d.get("baseline_end_date")),
            project=str(project) if project else None,
        )


@dataclass(frozen=True)
class CriticalPathResult:
    """The longest dependency chain and its length in days."""

    path: tuple[Task, ...]
    duration: float

    @property
    def task_ids(self) -> list[str]:
        return [t.id for t in self.path]

    def to_dict(self) -> dict:
        return {
            "tasks": [{"id": t.id, "name": t.name} for t in self.path],
            "duration_days": round(self.duration, 2),
        }


@dataclass(frozen=True)
class BaselineMetrics:
    """Baseline overlay size and position, as percentages of the current span."""

    width: float = 0.0
    offset: float = 0.0


@dataclass
class TaskVarianceRow:
    task_id: str
    task_name: str
    baseline_start: date | None
    baseline_finish: date | None
    current_start: date | None
    current_finish: date | None
    start_variance_days: int | None
    finish_variance_days: int | None
    metrics: BaselineMetrics
    is_critical: bool

    def to_dict(self) -> dict:
        return {
            "task_id": self.task_id,
            "task_name": self.task_name,
            "baseline_start": self.baseline_start.isoformat() if self.baseline_start else None,
            "baseline_finish": self.baseline_finish.isoformat() if self.baseline_finish else None,
            "current_start": self.current_start.isoformat() if self.current_start else None,
            "current_finish": self.current_finish.isoformat() if self.current_finish else None,
            "start_variance_days": self.start_variance_days,
            "finish_variance_days": self.finish_variance_days,
            "width": round(self.metrics.width, 2),
            "offset": round(self.metrics.offset, 2),
            "is_critical": self.is_critical,
        }


@dataclass(frozen=True)
class BaselineKpis:
    average_deviation: float | None
    tasks_delayed: int
