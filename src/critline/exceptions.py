"""Error types raised by the schedule analysis core."""

from __future__ import annotations


class CritlineError(Exception):
    """Base class for critline errors."""

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        self.code = code or self.__class__.__name__


class CycleDetectedError(CritlineError, ValueError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, task_id: str):
        super().__init__(
            f"Circular dependency detected at {task_id}",
            code="SCHEDULE_CYCLE",
        )
        self.task_id = task_id


class TaskNotFoundError(CritlineError, KeyError):
    """Raised when a task id is not present in the store."""

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} not found", code="TASK_NOT_FOUND")
        self.task_id = task_id

    def __str__(self) -> str:
        # KeyError would repr() the message otherwise
        return self.args[0]


class BaselineNotFoundError(CritlineError, KeyError):
    """Raised when no recorded baseline matches a name or id."""

    def __init__(self, key: str):
        super().__init__(f"Baseline {key} not found", code="BASELINE_NOT_FOUND")
        self.key = key

    def __str__(self) -> str:
        return self.args[0]
