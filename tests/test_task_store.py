# tests/test_task_store.py

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from taskwarlock.core.errors import TaskParseError, TaskwarriorError
from taskwarlock.core.settings_store import AppSettings
from taskwarlock.tasks.task_models import Priority, Task, TaskAdd, TaskUpdate
from taskwarlock.tasks.task_store import (
    TaskwarriorCLI,
    format_tw_date,
    parse_task_list,
    parse_tw_date,
    task_from_export,
)

from .fakes import StaticSettingsProvider

RAW_TASK = {
    "id": 1,
    "uuid": "0f6c-aaaa",
    "description": "write report",
    "entry": "20250501T080000Z",
    "modified": "20250502T080000Z",
    "due": "20250610T170000Z",
    "priority": "H",
    "project": "work",
    "tags": ["office"],
    "depends": ["0f6c-bbbb"],
    "status": "pending",
    "urgency": 9.5,
}


class ScriptedCLI(TaskwarriorCLI):
    """TaskwarriorCLI with `_run` answered from a script instead of a subprocess."""

    def __init__(self, responses: dict[str, str], *, auto_sync: bool = False) -> None:
        super().__init__(StaticSettingsProvider(AppSettings(auto_sync=auto_sync)))
        self.responses = responses
        self.commands: list[list[str]] = []

    async def _run(self, args) -> str:
        self.commands.append(list(args))
        key = " ".join(args)
        for prefix, out in self.responses.items():
            if key.startswith(prefix):
                if out == "!fail":
                    raise TaskwarriorError(f"{key} failed", command=list(args), returncode=1)
                return out
        return ""


def test_parse_export_record() -> None:
    task = task_from_export(RAW_TASK)

    assert task.uuid == "0f6c-aaaa"
    assert task.id == 1
    assert task.entry == datetime(2025, 5, 1, 8, 0, tzinfo=UTC)
    assert task.due == datetime(2025, 6, 10, 17, 0, tzinfo=UTC)
    assert task.priority == Priority.H
    assert task.tags == ("office",)
    assert task.depends == ("0f6c-bbbb",)
    assert task.urgency == 9.5
    assert task.is_pending


def test_completed_task_has_no_id_and_legacy_depends_string() -> None:
    raw = dict(RAW_TASK, id=0, end="20250503T080000Z", depends="x-1, x-2")
    task = task_from_export(raw)

    assert task.id is None
    assert task.end is not None
    assert task.depends == ("x-1", "x-2")


@pytest.mark.parametrize(
    "patch",
    [
        {"uuid": None},
        {"description": 3},
        {"urgency": "high"},
        {"priority": "X"},
        {"entry": "yesterday"},
        {"tags": [1, 2]},
    ],
)
def test_malformed_record_rejects_whole_export(patch) -> None:
    bad = {**RAW_TASK, **patch}
    good = dict(RAW_TASK, uuid="other")

    with pytest.raises(TaskParseError):
        parse_task_list(json.dumps([good, bad]))


def test_parse_task_list_edge_cases() -> None:
    assert parse_task_list("") == []
    assert parse_task_list("[]") == []
    with pytest.raises(TaskParseError):
        parse_task_list("not json")
    with pytest.raises(TaskParseError):
        parse_task_list('{"uuid": "x"}')


def test_dates_roundtrip_formats() -> None:
    dt = parse_tw_date("20251201T075959Z")
    assert format_tw_date(dt) == "2025-12-01T07:59:59Z"
    assert format_tw_date(datetime(2025, 12, 1, 7, 59, 59)) == "2025-12-01T07:59:59Z"


def test_build_add_args() -> None:
    data = TaskAdd(
        description=" buy milk ",
        project="home",
        priority=Priority.L,
        due=datetime(2025, 6, 2, 9, 0, tzinfo=UTC),
        tags=("+errand", "errand", "shop"),
        depends=("u1", "u2"),
    )
    assert TaskwarriorCLI.build_add_args(data) == [
        "add",
        "buy milk",
        "project:home",
        "priority:L",
        "due:2025-06-02T09:00:00Z",
        "+errand",
        "+shop",
        "depends:u1,u2",
    ]


def test_build_modify_args_diffs_tags_and_clears() -> None:
    original = Task(uuid="u1", id=1, description="x", tags=("a", "b"))
    updates = TaskUpdate(priority="", project="", clear_due=True, tags=("b", "c"))

    assert TaskwarriorCLI.build_modify_args(original, updates) == [
        "u1",
        "modify",
        "project:",
        "priority:",
        "due:",
        "+c",
        "-a",
    ]
    assert TaskwarriorCLI.build_modify_args(original, TaskUpdate()) == ["u1", "modify"]


@pytest.mark.asyncio
async def test_add_task_reads_back_created_record() -> None:
    cli = ScriptedCLI(
        {
            "add": "Created task 7.\n",
            "7 export": json.dumps([dict(RAW_TASK, id=7)]),
        }
    )
    created = await cli.add_task(TaskAdd(description="write report"))

    assert created is not None and created.id == 7
    assert cli.commands[-1] == ["7", "export"]


@pytest.mark.asyncio
async def test_add_task_without_created_line_returns_none() -> None:
    cli = ScriptedCLI({"add": "Something odd\n"})
    assert await cli.add_task(TaskAdd(description="x")) is None


@pytest.mark.asyncio
async def test_auto_sync_runs_after_mutation_and_its_failure_is_ignored() -> None:
    cli = ScriptedCLI({"sync": "!fail"}, auto_sync=True)

    assert await cli.complete_task("u1") is True
    assert cli.commands == [["u1", "done"], ["sync"]]


@pytest.mark.asyncio
async def test_mutation_failure_propagates() -> None:
    cli = ScriptedCLI({"u1 done": "!fail"})
    with pytest.raises(TaskwarriorError):
        await cli.complete_task("u1")


@pytest.mark.asyncio
async def test_update_without_changes_skips_modify() -> None:
    cli = ScriptedCLI({"u1 export": json.dumps([dict(RAW_TASK, uuid="u1")])})
    original = Task(uuid="u1", id=1, description="write report")

    result = await cli.update_task(original, TaskUpdate())

    assert result is not None and result.uuid == "u1"
    assert cli.commands == [["u1", "export"]]


@pytest.mark.asyncio
async def test_queries() -> None:
    cli = ScriptedCLI(
        {
            "export": json.dumps([dict(RAW_TASK, urgency=1.0), dict(RAW_TASK, uuid="u2", urgency=5.0)]),
            "_unique tags": "office\nhome,errand\n",
            "_projects": "work\nhome\n",
            "context show": "Context 'work' is currently applied.\n",
        }
    )

    tasks = await cli.get_all_tasks()
    assert [t.uuid for t in tasks] == ["u2", "0f6c-aaaa"]
    assert await cli.get_tags() == ["errand", "home", "office"]
    assert await cli.get_projects() == ["home", "work"]
    assert await cli.current_context() == "work"


@pytest.mark.asyncio
async def test_missing_binary_raises_taskwarrior_error() -> None:
    cli = TaskwarriorCLI(
        StaticSettingsProvider(), binary="/nonexistent/taskwarrior-binary", timeout_seconds=1
    )
    with pytest.raises(TaskwarriorError):
        await cli.get_projects()
