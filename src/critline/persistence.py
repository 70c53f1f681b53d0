"""JSON file persistence for tasks and project config."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from critline.exceptions import TaskNotFoundError
from critline.models import ProjectConfig, Task

logger = logging.getLogger(__name__)

DEFAULT_DB_FILE = "critline_tasks.json"
DB_ENV_VAR = "CRITLINE_DB"


def parse_task_records(raw: object) -> dict[str, Task]:
    """Build {task_id: Task} from exported task data.

    Accepts a list of records carrying their own "id", or a mapping of
    id -> record.  Order is preserved.
    """
    tasks: dict[str, Task] = {}
    if isinstance(raw, dict):
        for tid, tdata in raw.items():
            if not isinstance(tdata, dict):
                raise ValueError(f"Task record {tid} is not an object")
            tasks[str(tid)] = Task.from_dict(str(tid), tdata)
        return tasks

    if not isinstance(raw, list):
        raise ValueError("Task data must be a list of records or an id -> record mapping")

    for i, record in enumerate(raw):
        if not isinstance(record, dict) or not record.get("id"):
            raise ValueError(f"Task record at index {i} has no id")
        tid = str(record["id"])
        tasks[tid] = Task.from_dict(tid, record)
    return tasks


class Store:
    """Reads and writes the project database (JSON file)."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            db_path = os.environ.get(DB_ENV_VAR, DEFAULT_DB_FILE)
        self.db_path = Path(db_path)

    def load(self) -> tuple[ProjectConfig | None, dict[str, Task]]:
        """Return (config_or_None, {task_id: Task})."""
        if not self.db_path.exists():
            return None, {}

        raw = json.loads(self.db_path.read_text(encoding="utf-8"))

        # Store format: {"config": {...}, "tasks": {...}}
        # Export formats: [{"id": ...}, ...] or {"tasks": [{"id": ...}, ...]}
        config = None
        if isinstance(raw, dict) and raw.get("config"):
            config = ProjectConfig.from_dict(raw["config"])

        task_source = raw.get("tasks", []) if isinstance(raw, dict) else raw
        tasks = parse_task_records(task_source)
        logger.debug("Loaded %d task(s) from %s", len(tasks), self.db_path)
        return config, tasks

    def save(self, config: ProjectConfig | None, tasks: dict[str, Task]) -> None:
        """Persist config + tasks to disk."""
        raw: dict = {}
        if config is not None:
            raw["config"] = config.to_dict()
        raw["tasks"] = {tid: t.to_dict() for tid, t in tasks.items()}
        self.db_path.write_text(json.dumps(raw, indent=4), encoding="utf-8")
        logger.debug("Saved %d task(s) to %s", len(tasks), self.db_path)

    def generate_id(self, tasks: dict[str, Task]) -> str:
        """Generate the next T-N id."""
        existing = [
            int(k.split("-")[1])
            for k in tasks
            if k.startswith("T-") and k.split("-")[1].isdigit()
        ]
        next_num = max(existing, default=0) + 1
        return f"T-{next_num}"


def get_task(tasks: dict[str, Task], task_id: str) -> Task:
    try:
        return tasks[task_id]
    except KeyError:
        raise TaskNotFoundError(task_id) from None
