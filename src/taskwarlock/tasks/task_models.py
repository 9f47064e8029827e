# src/taskwarlock/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum

from ..core.errors import TaskValidationError


class TaskStatus(StrEnum):
    """
    Display status.

    Never stored on a Task: it is derived from `end` (see Task.status), so a task
    cannot be "completed" without an end timestamp or the other way round.
    """

    PENDING = "pending"
    COMPLETED = "completed"


class Priority(StrEnum):
    H = "H"
    M = "M"
    L = "L"

    @classmethod
    def parse(cls, raw: str | None) -> Priority | None:
        """'' / None -> no priority; anything else must be H, M or L (case-insensitive)."""
        if raw is None:
            return None
        s = str(raw).strip().upper()
        if not s:
            return None
        try:
            return cls(s)
        except ValueError:
            raise TaskValidationError(f"Invalid priority {raw!r}; expected H, M or L.") from None


@dataclass(frozen=True, slots=True)
class Task:
    uuid: str
    id: int | None
    description: str

    entry: datetime | None = None
    end: datetime | None = None
    due: datetime | None = None
    modified: datetime | None = None

    priority: Priority | None = None
    project: str | None = None
    tags: tuple[str, ...] = ()
    depends: tuple[str, ...] = ()

    urgency: float = 0.0

    @property
    def status(self) -> TaskStatus:
        return TaskStatus.COMPLETED if self.end is not None else TaskStatus.PENDING

    @property
    def is_pending(self) -> bool:
        return self.end is None

    def merged(self, updates: TaskUpdate) -> Task:
        """Apply a partial update (None fields are left untouched). Urgency is NOT recomputed."""
        changes: dict[str, object] = {}
        if updates.description is not None:
            changes["description"] = updates.description.strip()
        if updates.project is not None:
            changes["project"] = updates.project.strip() or None
        if updates.priority is not None:
            changes["priority"] = Priority.parse(updates.priority)
        if updates.clear_due:
            changes["due"] = None
        elif updates.due is not None:
            changes["due"] = updates.due
        if updates.tags is not None:
            changes["tags"] = normalize_tags(updates.tags)
        return replace(self, **changes)


@dataclass(frozen=True, slots=True)
class TaskAdd:
    """Fields a user may supply when creating a task."""

    description: str
    project: str | None = None
    priority: Priority | None = None
    due: datetime | None = None
    tags: tuple[str, ...] = ()
    depends: tuple[str, ...] = ()

    def validate(self) -> None:
        if not self.description or not self.description.strip():
            raise TaskValidationError("description is required")


@dataclass(frozen=True, slots=True)
class TaskUpdate:
    """
    Partial update of an existing task.

    None means "leave unchanged". Clearing is explicit:
    - priority="" clears the priority
    - project="" clears the project
    - clear_due=True clears the due date
    - tags replaces the whole tag set
    """

    description: str | None = None
    project: str | None = None
    priority: str | None = None
    due: datetime | None = None
    clear_due: bool = False
    tags: tuple[str, ...] | None = None

    def validate(self) -> None:
        if self.description is not None and not self.description.strip():
            raise TaskValidationError("description cannot be empty")
        # Raises TaskValidationError on anything but H/M/L/''.
        Priority.parse(self.priority)

    def is_empty(self) -> bool:
        return (
            self.description is None
            and self.project is None
            and self.priority is None
            and self.due is None
            and not self.clear_due
            and self.tags is None
        )


def normalize_tags(tags: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    """Strip, drop empties and duplicates; keep first-seen order."""
    out: list[str] = []
    for t in tags:
        s = str(t).strip().lstrip("+")
        if s and s not in out:
            out.append(s)
    return tuple(out)
