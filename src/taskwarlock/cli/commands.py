# src/taskwarlock/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Collection
from datetime import UTC, datetime
from typing import cast

from ..core.errors import TaskValidationError
from ..core.state import AppState
from ..tasks.dependencies import blocked_tasks, blocking_tasks, dependents, is_blocked
from ..tasks.task_api import NO_PROJECT, find_by_prefix, paginate, task_stats, visible_tasks
from ..tasks.task_cache import ALL_KEYS, PROJECTS_KEY, TAGS_KEY, TASKS_KEY
from ..tasks.task_models import Priority, Task, TaskAdd, TaskStatus, TaskUpdate
from ..tasks.urgency import UrgencyCoefficients

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

_MODIFIER_KEYS = ("project", "priority", "due", "depends")


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /list, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Errors from the task layer (TaskwarlockError) propagate to the caller.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return await h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return await h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- parsing / formatting helpers ----


def parse_due(raw: str) -> datetime:
    """YYYY-MM-DD or an ISO datetime; naive values are taken as local time."""
    try:
        value = datetime.fromisoformat(raw)
    except ValueError:
        raise TaskValidationError(f"Invalid due date {raw!r}. Use YYYY-MM-DD.") from None
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(UTC)


def parse_modifiers(
    args: list[str],
    removable: Collection[str] = (),
) -> tuple[list[str], dict[str, str], list[str], list[str]]:
    """
    Split Taskwarrior-style arguments into
    (free words, key:value modifiers, +tags, -tags).

    `-x` is a tag removal only when `x` is in `removable`; otherwise it stays a word,
    so descriptions like "fix -v flag" survive.
    """
    words: list[str] = []
    mods: dict[str, str] = {}
    plus: list[str] = []
    minus: list[str] = []
    for arg in args:
        key, sep, value = arg.partition(":")
        if sep and key.lower() in _MODIFIER_KEYS:
            mods[key.lower()] = value
        elif arg.startswith("+") and len(arg) > 1:
            plus.append(arg[1:])
        elif arg.startswith("-") and arg[1:] in removable:
            minus.append(arg[1:])
        else:
            words.append(arg)
    return words, mods, plus, minus


def format_task(task: Task, all_tasks: tuple[Task, ...] = ()) -> str:
    ref = str(task.id) if task.id is not None else task.uuid[:8]
    prio = task.priority.value if task.priority else "-"
    due = task.due.astimezone().strftime("%Y-%m-%d") if task.due else ""
    line = f"{ref:>8}  {prio}  {task.urgency:6.2f}  {due:<10}  {task.description}"
    if task.project:
        line += f"  [{task.project}]"
    if task.tags:
        line += "  " + " ".join(f"+{t}" for t in task.tags)
    if task.status is TaskStatus.COMPLETED:
        line += f"  (completed {task.end.astimezone():%Y-%m-%d})"
    elif all_tasks and blocking_tasks(task, all_tasks):
        line += "  (blocked)"
    return line


async def _load_tasks(state: AppState) -> tuple[Task, ...]:
    data = await state.cache.fetch(TASKS_KEY)
    return tuple(data or ())


def _resolve(tasks: tuple[Task, ...], ref: str) -> Task:
    matches = find_by_prefix(tasks, ref)
    if not matches:
        raise TaskValidationError(f"No task matches {ref!r}.")
    if len(matches) > 1:
        raise TaskValidationError(f"{ref!r} is ambiguous ({len(matches)} tasks match).")
    return matches[0]


def _emitter(emit: CommandEmitter | None, prefix: str) -> Callable[[Task], None] | None:
    if emit is None:
        return None
    return lambda task: emit(f"{prefix} {format_task(task)}")


# ---- commands ----


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list                      -> pending tasks, most urgent first
    /list completed            -> completed tasks, most recent first
    /list project:X +tag page:2
    """
    show_completed = False
    project: str | None = None
    tags: list[str] = []
    page = 1
    for arg in args:
        low = arg.lower()
        if low in ("completed", "done"):
            show_completed = True
        elif low.startswith("project:"):
            project = arg.partition(":")[2] or NO_PROJECT
        elif low.startswith("page:"):
            try:
                page = int(arg.partition(":")[2])
            except ValueError:
                raise TaskValidationError(f"Invalid page {arg!r}.") from None
        elif arg.startswith("+") and len(arg) > 1:
            tags.append(arg[1:])
        else:
            raise TaskValidationError(f"Unknown /list argument {arg!r}.")

    all_tasks = await _load_tasks(state)
    if not all_tasks and state.cache.last_error(TASKS_KEY) is not None:
        return f"Could not load tasks: {state.cache.last_error(TASKS_KEY)}"

    shown = visible_tasks(all_tasks, show_completed=show_completed, project=project, tags=tags)
    if not shown:
        return "No tasks found."

    page_size = state.settings_store.get_settings().default_page_size
    items, total_pages = paginate(shown, page, page_size)
    lines = [f"{'ID':>8}  P  {'URG':>6}  {'DUE':<10}  DESCRIPTION", "-" * 60]
    lines.extend(format_task(t, all_tasks) for t in items)
    lines.append(f"{len(shown)} task(s), page {min(max(page, 1), total_pages)}/{total_pages}")
    return "\n".join(lines)


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/add <description> [project:X] [priority:H|M|L] [due:YYYY-MM-DD] [+tag ...]"""
    words, mods, plus, _minus = parse_modifiers(args)
    data = TaskAdd(
        description=" ".join(words),
        project=mods.get("project") or None,
        priority=Priority.parse(mods.get("priority")),
        due=parse_due(mods["due"]) if mods.get("due") else None,
        tags=tuple(plus),
        depends=tuple(d for d in mods.get("depends", "").split(",") if d),
    )
    created = await state.coordinator.add_task(data, on_applied=_emitter(emit, "[adding]"))
    if created is None:
        return "Task added."
    return f"Created task {created.id}: {created.description} (urgency {created.urgency:.2f})"


async def cmd_edit(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /edit <id|uuid> [new description] [project:X] [priority:H|M|L|] [due:DATE|] [+tag] [-tag]

    An empty value (project: / priority: / due:) clears the field. `-tag` removes a tag
    the task has; any other `-word` is part of the new description.
    """
    if not args:
        return "Usage: /edit <id|uuid> [description] [project:X] [priority:H] [due:DATE] [+tag] [-tag]"

    original = _resolve(await _load_tasks(state), args[0])
    words, mods, plus, minus = parse_modifiers(args[1:], removable=original.tags)

    tags: tuple[str, ...] | None = None
    if plus or minus:
        kept = [t for t in original.tags if t not in minus]
        tags = tuple(kept + [t for t in plus if t not in kept])

    due_raw = mods.get("due")
    updates = TaskUpdate(
        description=" ".join(words) if words else None,
        project=mods.get("project"),
        priority=mods.get("priority"),
        due=parse_due(due_raw) if due_raw else None,
        clear_due=due_raw == "",
        tags=tags,
    )
    if updates.is_empty():
        return "Nothing to change."

    updated = await state.coordinator.edit_task(
        original, updates, on_applied=_emitter(emit, "[saving]")
    )
    if updated is None:
        return "Task updated."
    return f"Updated: {format_task(updated)}"


async def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /done <id|uuid>"
    tasks = await _load_tasks(state)
    task = _resolve(tasks, args[0])
    waiting = dependents(task, tasks)
    await state.coordinator.complete_task(task.uuid, on_applied=_emitter(emit, "[completing]"))

    reply = f"Completed: {task.description}"
    if waiting:
        fresh = await _load_tasks(state)
        freed = [t for t in waiting if not is_blocked(t, fresh)]
        if freed:
            reply += "\nUnblocked: " + ", ".join(t.description for t in freed)
    return reply


async def cmd_restore(
    state: AppState, args: list[str], emit: CommandEmitter | None = None
) -> str:
    if not args:
        return "Usage: /restore <uuid>"
    task = _resolve(await _load_tasks(state), args[0])
    await state.coordinator.restore_task(task.uuid, on_applied=_emitter(emit, "[restoring]"))
    return f"Restored: {task.description}"


async def cmd_blocked(state: AppState, args: list[str]) -> str:
    all_tasks = await _load_tasks(state)
    rows = blocked_tasks(all_tasks)
    if not rows:
        return "No blocked tasks."
    lines = ["Blocked tasks:"]
    for task, blockers in rows:
        lines.append(format_task(task))
        lines.extend(f"    waiting on: {b.description} ({b.uuid[:8]})" for b in blockers)
    return "\n".join(lines)


async def cmd_stats(state: AppState, args: list[str]) -> str:
    s = task_stats(await _load_tasks(state), state.clock())
    return (
        "Stats:\n"
        f"  pending: {s.pending}\n"
        f"  overdue: {s.overdue}\n"
        f"  priority H/M/L: {s.high}/{s.medium}/{s.low}\n"
        f"  projects: {s.projects}"
    )


async def cmd_tags(state: AppState, args: list[str]) -> str:
    tags = await state.cache.fetch(TAGS_KEY) or ()
    return "Tags: " + (", ".join(tags) if tags else "(none)")


async def cmd_projects(state: AppState, args: list[str]) -> str:
    projects = await state.cache.fetch(PROJECTS_KEY) or ()
    return "Projects: " + (", ".join(projects) if projects else "(none)")


async def cmd_sync(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        emit("[sync] Running task sync...")
    await state.coordinator.sync()
    return "Sync completed."


async def cmd_refresh(state: AppState, args: list[str]) -> str:
    await state.cache.invalidate(*ALL_KEYS)
    err = state.cache.last_error(TASKS_KEY)
    if err is not None:
        return f"Refresh failed, showing previous data: {err}"
    return f"Reloaded {len(state.cache.get_data(TASKS_KEY) or ())} task(s)."


_SETTING_ALIASES = {
    "autosync": "auto_sync",
    "agemax": "urgency_age_max",
    "pagesize": "default_page_size",
}


async def cmd_settings(state: AppState, args: list[str]) -> str:
    """
    /settings                       -> show
    /settings autoSync on|off
    /settings ageMax 365
    /settings pageSize 20
    /settings coeff priorityH 8.0
    /settings reload                -> drop the cached read, re-read the file
    """
    store = state.settings_store
    if args and args[0].lower() == "reload" and hasattr(store, "clear_cache"):
        store.clear_cache()
        args = []

    if not args:
        current = store.get_settings()
        path = getattr(store, "path", None)
        coeffs = ", ".join(f"{k}={v:g}" for k, v in current.urgency_coefficients.to_dict().items())
        return (
            "Settings:\n"
            f"  autoSync: {'on' if current.auto_sync else 'off'}\n"
            f"  ageMax: {current.urgency_age_max}\n"
            f"  pageSize: {current.default_page_size}\n"
            f"  coefficients: {coeffs}"
            + (f"\n  file: {path}" if path else "")
        )

    if not hasattr(store, "update_settings"):
        return "Settings are read-only here."

    key = args[0].lower()
    if key == "coeff":
        if len(args) != 3:
            return "Usage: /settings coeff <name> <value>"
        try:
            value = float(args[2])
        except ValueError:
            raise TaskValidationError(f"Invalid coefficient value {args[2]!r}.") from None
        current = store.get_settings().urgency_coefficients
        if args[1] not in current.to_dict():
            raise TaskValidationError(f"Unknown coefficient {args[1]!r}.")
        merged = UrgencyCoefficients.from_json({args[1]: value}, base=current)
        if merged == current and current.to_dict()[args[1]] != value:
            raise TaskValidationError("Coefficients must be non-negative numbers.")
        store.update_settings(urgency_coefficients=merged)
        return f"Coefficient {args[1]} set to {value:g}."

    field_name = _SETTING_ALIASES.get(key)
    if field_name is None or len(args) != 2:
        return "Usage: /settings [autoSync on|off | ageMax N | pageSize N | coeff NAME VALUE]"

    raw = args[1].lower()
    if field_name == "auto_sync":
        if raw not in ("on", "off", "true", "false", "1", "0"):
            raise TaskValidationError("autoSync takes on/off.")
        store.update_settings(auto_sync=raw in ("on", "true", "1"))
    else:
        try:
            number = int(raw)
        except ValueError:
            raise TaskValidationError(f"{args[0]} takes a positive integer.") from None
        if number <= 0:
            raise TaskValidationError(f"{args[0]} takes a positive integer.")
        store.update_settings(**{field_name: number})
    return f"{args[0]} set to {args[1]}."


async def cmd_context(state: AppState, args: list[str]) -> str:
    """
    /context          -> list contexts and show the active one
    /context <name>   -> apply a context
    /context none     -> clear the context
    """
    if not args:
        contexts = await state.backend.get_contexts()
        active = await state.backend.current_context()
        listed = ", ".join(contexts) if contexts else "(none defined)"
        return f"Contexts: {listed}\nActive: {active or 'none'}"

    name = None if args[0].lower() == "none" else args[0]
    await state.backend.set_context(name)
    await state.cache.invalidate(*ALL_KEYS)
    return f"Context set to {name or 'none'}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register(
    "list", cmd_list, help_text="List tasks: /list [completed] [project:X] [+tag] [page:N].",
    aliases=["ls"],
)
registry.register(
    "add", cmd_add, help_text="Add a task: /add <desc> [project:X] [priority:H] [due:DATE] [+tag]."
)
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id|uuid> [desc] [field:value] [+tag] [-tag].")
registry.register("done", cmd_done, help_text="Complete a task: /done <id|uuid>.")
registry.register("restore", cmd_restore, help_text="Restore a completed task: /restore <uuid>.")
registry.register("blocked", cmd_blocked, help_text="Show blocked tasks and what blocks them.")
registry.register("stats", cmd_stats, help_text="Show pending/overdue/priority counts.")
registry.register("tags", cmd_tags, help_text="List known tags.")
registry.register("projects", cmd_projects, help_text="List known projects.")
registry.register("sync", cmd_sync, help_text="Run task sync and reload everything.")
registry.register("refresh", cmd_refresh, help_text="Reload tasks, tags and projects.")
registry.register("settings", cmd_settings, help_text="Show or change urgency/sync settings.")
registry.register("context", cmd_context, help_text="Show or set the Taskwarrior context.")
