# tests/test_commands.py

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from taskwarlock.cli.commands import CommandRegistry, parse_due, parse_modifiers, registry
from taskwarlock.core.errors import TaskValidationError
from taskwarlock.tasks.task_models import Priority


@pytest.mark.asyncio
async def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    notes: list[str] = []

    async def h2(state, args):
        return "h2:" + ",".join(args)

    async def h3(state, args, emit):
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a", aliases=["aa"])
    reg.register("b", h3, "b")

    assert await reg.handle(state, "/a x y") == "h2:x,y"
    assert await reg.handle(state, "/AA") == "h2:"
    assert await reg.handle(state, "/b", emit=notes.append) == "h3"
    assert notes == ["note"]


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


def test_parse_modifiers() -> None:
    words, mods, plus, minus = parse_modifiers(
        ["buy", "milk", "project:home", "PRIORITY:h", "+shop", "-old", "-v", "due:"],
        removable=("old",),
    )
    assert words == ["buy", "milk", "-v"]
    assert mods == {"project": "home", "priority": "h", "due": ""}
    assert plus == ["shop"]
    assert minus == ["old"]


def test_parse_due() -> None:
    assert parse_due("2025-06-02T09:00:00+00:00") == datetime(2025, 6, 2, 9, 0, tzinfo=UTC)
    assert parse_due("2025-06-02").tzinfo is UTC
    with pytest.raises(TaskValidationError):
        parse_due("next tuesday")


@pytest.mark.asyncio
async def test_list_shows_pending_by_urgency_with_blocked_marker(state) -> None:
    reply = await registry.handle(state, "/list")

    assert reply is not None
    lines = reply.splitlines()
    assert "write report" in lines[2]
    blocked_line = next(line for line in lines if "call mom" in line)
    assert "(blocked)" in blocked_line
    assert "3 task(s)" in lines[-1]


@pytest.mark.asyncio
async def test_list_filters_and_pagination(state) -> None:
    assert "buy milk" in (await registry.handle(state, "/list +home") or "")
    assert await registry.handle(state, "/list project:nothing") == "No tasks found."

    await registry.handle(state, "/settings pageSize 1")
    assert "page 2/3" in (await registry.handle(state, "/list page:2") or "")

    with pytest.raises(TaskValidationError):
        await registry.handle(state, "/list bogus")


@pytest.mark.asyncio
async def test_add_emits_prediction_then_confirms(state, backend) -> None:
    emitted: list[str] = []

    reply = await registry.handle(
        state, "/add water plants project:home priority:m +garden", emit=emitted.append
    )

    assert reply is not None and reply.startswith("Created task 4: water plants")
    assert len(emitted) == 1 and emitted[0].startswith("[adding]")
    created = backend.tasks["uuid-0004"]
    assert created.project == "home"
    assert created.priority == Priority.M
    assert created.tags == ("garden",)


@pytest.mark.asyncio
async def test_add_without_description_is_rejected(state, backend) -> None:
    with pytest.raises(TaskValidationError):
        await registry.handle(state, "/add project:home")
    assert "add_task" not in backend.calls


@pytest.mark.asyncio
async def test_edit_by_id_changes_tags_and_priority(state, backend) -> None:
    reply = await registry.handle(state, "/edit 2 priority:H +errand -home")

    assert reply is not None and reply.startswith("Updated:")
    task = backend.tasks["bbbb-2222"]
    assert task.priority == Priority.H
    assert task.tags == ("errand",)

    assert await registry.handle(state, "/edit 2") == "Nothing to change."


@pytest.mark.asyncio
async def test_add_keeps_dash_words_in_description(state, backend) -> None:
    reply = await registry.handle(state, "/add fix -v flag +cli")

    assert reply is not None and "fix -v flag" in reply
    created = backend.tasks["uuid-0004"]
    assert created.description == "fix -v flag"
    assert created.tags == ("cli",)


@pytest.mark.asyncio
async def test_edit_dash_word_that_is_not_a_tag_is_description(state, backend) -> None:
    await registry.handle(state, "/edit 2 use -verbose mode")

    task = backend.tasks["bbbb-2222"]
    assert task.description == "use -verbose mode"
    assert task.tags == ("home",)


@pytest.mark.asyncio
async def test_ambiguous_or_unknown_reference(state) -> None:
    with pytest.raises(TaskValidationError, match="ambiguous"):
        await registry.handle(state, "/done bbb")
    with pytest.raises(TaskValidationError, match="No task"):
        await registry.handle(state, "/done zzz")


@pytest.mark.asyncio
async def test_done_reports_unblocked_tasks_and_restore(state, backend) -> None:
    reply = await registry.handle(state, "/done aaaa")

    assert reply == "Completed: write report\nUnblocked: call mom"
    assert backend.tasks["aaaa-1111"].end is not None

    assert await registry.handle(state, "/restore aaaa-1111") == "Restored: write report"
    assert backend.tasks["aaaa-1111"].end is None


@pytest.mark.asyncio
async def test_blocked_and_stats(state) -> None:
    blocked = await registry.handle(state, "/blocked") or ""
    assert "call mom" in blocked
    assert "waiting on: write report" in blocked

    stats = await registry.handle(state, "/stats") or ""
    assert "pending: 3" in stats
    assert "priority H/M/L: 1/0/0" in stats


@pytest.mark.asyncio
async def test_settings_show_and_update(state) -> None:
    assert "autoSync: off" in (await registry.handle(state, "/settings") or "")

    await registry.handle(state, "/settings autoSync on")
    await registry.handle(state, "/settings coeff priorityH 8")

    current = state.settings_store.get_settings()
    assert current.auto_sync is True
    assert current.urgency_coefficients.priority_h == 8.0

    with pytest.raises(TaskValidationError):
        await registry.handle(state, "/settings ageMax 0")
    with pytest.raises(TaskValidationError):
        await registry.handle(state, "/settings coeff age -1")


@pytest.mark.asyncio
async def test_context_switch_refreshes(state, backend) -> None:
    listing = await registry.handle(state, "/context") or ""
    assert "home, work" in listing
    assert "Active: none" in listing

    assert await registry.handle(state, "/context work") == "Context set to work."
    assert backend.context == "work"
    assert "get_all_tasks" in backend.calls

    await registry.handle(state, "/context none")
    assert backend.context is None


@pytest.mark.asyncio
async def test_tags_projects_sync_refresh(state, backend) -> None:
    assert await registry.handle(state, "/tags") == "Tags: home"
    assert await registry.handle(state, "/projects") == "Projects: work"
    assert await registry.handle(state, "/sync") == "Sync completed."
    assert "sync" in backend.calls
    assert await registry.handle(state, "/refresh") == "Reloaded 3 task(s)."


@pytest.mark.asyncio
async def test_completed_view_and_settings_reload(state, settings) -> None:
    await registry.handle(state, "/done 2")

    completed = await registry.handle(state, "/list completed") or ""
    assert "buy milk" in completed
    assert "(completed " in completed

    settings.settings_file.write_text('{"defaultPageSize": 7}', "utf-8")
    shown = await registry.handle(state, "/settings reload") or ""
    assert "pageSize: 7" in shown
    assert str(settings.settings_file) in shown
