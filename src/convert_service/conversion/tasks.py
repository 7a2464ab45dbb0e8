import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from .errors import InvalidTransition

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})

_ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.PROCESSING}),
    TaskStatus.PROCESSING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}

# Fields each target status is allowed (and expected) to carry.
_TRANSITION_FIELDS: dict[TaskStatus, frozenset[str]] = {
    TaskStatus.PROCESSING: frozenset(),
    TaskStatus.COMPLETED: frozenset({"output_path"}),
    TaskStatus.FAILED: frozenset({"error"}),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Task:
    id: str
    source_path: str
    source_relative_path: str
    source_format: str
    target_format: str
    source_filename: str
    status: TaskStatus
    created_at: datetime
    updated_at: datetime
    output_path: str | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "status": self.status.value,
            "sourcePath": self.source_relative_path,
            "sourceFormat": self.source_format,
            "targetFormat": self.target_format,
            "sourceFilename": self.source_filename,
            "outputPath": self.output_path,
            "error": self.error,
            "createdAt": self.created_at.isoformat().replace("+00:00", "Z"),
            "updatedAt": self.updated_at.isoformat().replace("+00:00", "Z"),
        }


class TaskStore:
    """In-memory registry of tasks; the only place task records change.

    Records are immutable snapshots. A transition swaps in a new snapshot
    under the same id, so a concurrent reader sees either the old or the
    new state, never a half-merged one.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}

    def create(
        self,
        id: str,
        source_path: str,
        source_relative_path: str,
        source_format: str,
        target_format: str,
        source_filename: str,
    ) -> Task:
        if id in self._tasks:
            raise ValueError(f"task {id} already exists")
        now = _now()
        task = Task(
            id=id,
            source_path=source_path,
            source_relative_path=source_relative_path,
            source_format=source_format,
            target_format=target_format,
            source_filename=source_filename,
            status=TaskStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self._tasks[id] = task
        return task

    def transition(self, id: str, new_status: TaskStatus, **fields: str) -> Task | None:
        task = self._tasks.get(id)
        if task is None:
            return None
        if new_status not in _ALLOWED_TRANSITIONS[task.status]:
            raise InvalidTransition(f"task {id}: {task.status.value} -> {new_status.value} is not allowed")
        unexpected = set(fields) - _TRANSITION_FIELDS[new_status]
        if unexpected:
            raise InvalidTransition(
                f"task {id}: fields {sorted(unexpected)} cannot be set when moving to {new_status.value}"
            )
        updated = dataclasses.replace(task, **fields, status=new_status, updated_at=_now())
        self._tasks[id] = updated
        logger.debug("task %s: %s -> %s", id, task.status.value, new_status.value)
        return updated

    def set_processing(self, id: str) -> Task | None:
        return self.transition(id, TaskStatus.PROCESSING)

    def attach_result(self, id: str, output_path: str) -> Task | None:
        return self.transition(id, TaskStatus.COMPLETED, output_path=output_path)

    def attach_error(self, id: str, message: str) -> Task | None:
        return self.transition(id, TaskStatus.FAILED, error=message)

    def get(self, id: str) -> Task | None:
        return self._tasks.get(id)

    def __len__(self) -> int:
        return len(self._tasks)
