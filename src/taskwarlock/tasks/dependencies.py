# src/taskwarlock/tasks/dependencies.py

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .task_models import Task


def _index(all_tasks: Iterable[Task]) -> dict[str, Task]:
    return {t.uuid: t for t in all_tasks}


def _pending_deps(task: Task, by_uuid: Mapping[str, Task]) -> list[Task]:
    out: list[Task] = []
    for dep_uuid in task.depends:
        dep = by_uuid.get(dep_uuid)
        if dep is not None and dep.is_pending:
            out.append(dep)
    return out


def blocking_tasks(task: Task, all_tasks: Iterable[Task]) -> list[Task]:
    """
    Dependencies of `task` that are still pending, in `depends` order.

    UUIDs that do not resolve against `all_tasks` are skipped: the dependency may
    exist in the task database but not in the currently loaded view.
    """
    if not task.depends:
        return []
    return _pending_deps(task, _index(all_tasks))


def is_blocked(task: Task, all_tasks: Iterable[Task]) -> bool:
    return bool(blocking_tasks(task, all_tasks))


def blocked_tasks(all_tasks: Iterable[Task]) -> list[tuple[Task, list[Task]]]:
    """Every pending task that is blocked, paired with what blocks it."""
    tasks = list(all_tasks)
    by_uuid = _index(tasks)
    out: list[tuple[Task, list[Task]]] = []
    for t in tasks:
        if not t.is_pending or not t.depends:
            continue
        blockers = _pending_deps(t, by_uuid)
        if blockers:
            out.append((t, blockers))
    return out


def dependents(task: Task, all_tasks: Iterable[Task]) -> list[Task]:
    """Pending tasks that list `task` as a dependency (i.e. tasks `task` is blocking)."""
    return [t for t in all_tasks if t.is_pending and task.uuid in t.depends]
