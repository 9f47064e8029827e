# src/taskwarlock/tasks/task_api.py

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from .task_models import Priority, Task

NO_PROJECT = "no-project"


@dataclass(slots=True, frozen=True)
class TaskStats:
    pending: int
    high: int
    medium: int
    low: int
    overdue: int
    projects: int


def visible_tasks(
    tasks: Iterable[Task],
    *,
    show_completed: bool = False,
    project: str | None = None,
    tags: Sequence[str] = (),
) -> list[Task]:
    """
    What the task list shows.

    - pending view: tasks without `end`, most urgent first
    - completed view: tasks with `end`, most recently completed first
    - project: exact match, or NO_PROJECT for tasks without a project
    - tags: a task must carry ALL of them
    """
    if show_completed:
        out = [t for t in tasks if t.end is not None]
        out.sort(key=lambda t: t.end, reverse=True)  # type: ignore[arg-type,return-value]
    else:
        out = [t for t in tasks if t.end is None]
        out.sort(key=lambda t: t.urgency, reverse=True)

    if project:
        if project == NO_PROJECT:
            out = [t for t in out if not t.project]
        else:
            out = [t for t in out if t.project == project]

    if tags:
        out = [t for t in out if all(tag in t.tags for tag in tags)]

    return out


def task_stats(tasks: Iterable[Task], now: datetime) -> TaskStats:
    """Summary counts over pending tasks only."""
    pending = [t for t in tasks if t.is_pending]
    return TaskStats(
        pending=len(pending),
        high=sum(1 for t in pending if t.priority == Priority.H),
        medium=sum(1 for t in pending if t.priority == Priority.M),
        low=sum(1 for t in pending if t.priority == Priority.L),
        overdue=sum(1 for t in pending if t.due is not None and t.due < now),
        projects=len({t.project for t in pending if t.project}),
    )


def paginate(tasks: Sequence[Task], page: int, page_size: int) -> tuple[list[Task], int]:
    """Return (items on `page` (1-based, clamped), total pages)."""
    size = max(1, int(page_size))
    total_pages = max(1, -(-len(tasks) // size))
    page = min(max(1, int(page)), total_pages)
    start = (page - 1) * size
    return list(tasks[start : start + size]), total_pages


def find_by_prefix(tasks: Iterable[Task], ref: str) -> list[Task]:
    """
    Resolve a user-typed reference: full uuid, uuid prefix, or numeric id.

    Returns every match so callers can report ambiguity.
    """
    ref = ref.strip()
    if not ref:
        return []
    tasks = list(tasks)
    if ref.isdigit():
        by_id = [t for t in tasks if t.id == int(ref)]
        if by_id:
            return by_id
    exact = [t for t in tasks if t.uuid == ref]
    if exact:
        return exact
    return [t for t in tasks if t.uuid.startswith(ref)]
