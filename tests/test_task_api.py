# tests/test_task_api.py

from __future__ import annotations

from datetime import timedelta

from taskwarlock.tasks.task_api import (
    NO_PROJECT,
    find_by_prefix,
    paginate,
    task_stats,
    visible_tasks,
)
from taskwarlock.tasks.task_models import Priority

from .fakes import NOW, make_task


def _sample():
    return [
        make_task("u-low", urgency=1.0, project="home", tags=("a",)),
        make_task("u-high", urgency=9.0, priority=Priority.H, tags=("a", "b")),
        make_task("u-mid", urgency=5.0, priority=Priority.M, due=NOW - timedelta(days=1)),
        make_task("u-old", end=NOW - timedelta(days=2)),
        make_task("u-new", end=NOW - timedelta(hours=1)),
    ]


def test_pending_view_sorted_by_urgency() -> None:
    assert [t.uuid for t in visible_tasks(_sample())] == ["u-high", "u-mid", "u-low"]


def test_completed_view_most_recent_first() -> None:
    shown = visible_tasks(_sample(), show_completed=True)
    assert [t.uuid for t in shown] == ["u-new", "u-old"]


def test_project_and_tag_filters() -> None:
    tasks = _sample()
    assert [t.uuid for t in visible_tasks(tasks, project="home")] == ["u-low"]
    assert [t.uuid for t in visible_tasks(tasks, project=NO_PROJECT)] == ["u-high", "u-mid"]
    assert [t.uuid for t in visible_tasks(tasks, tags=["a", "b"])] == ["u-high"]


def test_stats_count_pending_only() -> None:
    stats = task_stats(_sample(), NOW)
    assert stats.pending == 3
    assert (stats.high, stats.medium, stats.low) == (1, 1, 0)
    assert stats.overdue == 1
    assert stats.projects == 1


def test_paginate_clamps_page() -> None:
    tasks = [make_task(f"u{i}") for i in range(5)]
    items, pages = paginate(tasks, 2, 2)
    assert [t.uuid for t in items] == ["u2", "u3"]
    assert pages == 3
    assert [t.uuid for t in paginate(tasks, 99, 2)[0]] == ["u4"]
    assert paginate([], 1, 20) == ([], 1)


def test_find_by_prefix() -> None:
    tasks = [
        make_task("abcd-1", id=12),
        make_task("abce-2", id=3),
        make_task("12ff-3"),
    ]
    assert [t.uuid for t in find_by_prefix(tasks, "12")] == ["abcd-1"]
    assert [t.uuid for t in find_by_prefix(tasks, "abcd")] == ["abcd-1"]
    assert len(find_by_prefix(tasks, "abc")) == 2
    assert [t.uuid for t in find_by_prefix(tasks, "12f")] == ["12ff-3"]
    assert find_by_prefix(tasks, "  ") == []
