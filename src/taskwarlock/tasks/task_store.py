# src/taskwarlock/tasks/task_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import re
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from ..core.errors import TaskParseError, TaskwarriorError
from ..core.ports import SettingsProvider
from .task_models import Priority, Task, TaskAdd, TaskUpdate, normalize_tags

logger = logging.getLogger(__name__)

TW_DATE_FORMAT = "%Y%m%dT%H%M%SZ"

_CREATED_RE = re.compile(r"Created task (\d+)")
_CONTEXT_SHOW_RE = re.compile(r"Context '(.+)' is currently applied")


def parse_tw_date(raw: str) -> datetime:
    """Taskwarrior export format: 20251201T075959Z (always UTC)."""
    try:
        return datetime.strptime(raw, TW_DATE_FORMAT).replace(tzinfo=UTC)
    except (TypeError, ValueError):
        raise TaskParseError(f"Invalid Taskwarrior date: {raw!r}") from None


def format_tw_date(value: datetime) -> str:
    """Format for command-line arguments (YYYY-MM-DDTHH:MM:SSZ, UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def _opt_date(raw: dict[str, Any], key: str) -> datetime | None:
    val = raw.get(key)
    if val is None:
        return None
    return parse_tw_date(val)


def _str_list(raw: dict[str, Any], key: str) -> tuple[str, ...]:
    val = raw.get(key)
    if val is None:
        return ()
    # Taskwarrior < 2.6 exports depends as a comma-separated string.
    if isinstance(val, str):
        return tuple(p.strip() for p in val.split(",") if p.strip())
    if not isinstance(val, list) or not all(isinstance(v, str) for v in val):
        raise TaskParseError(f"Field {key!r} must be a list of strings")
    return tuple(val)


def task_from_export(raw: Any) -> Task:
    """Validate one `task export` object. Raises TaskParseError on any shape problem."""
    if not isinstance(raw, dict):
        raise TaskParseError("Task record must be a JSON object")

    uuid = raw.get("uuid")
    description = raw.get("description")
    urgency = raw.get("urgency")
    if not isinstance(uuid, str) or not uuid:
        raise TaskParseError("Task record without uuid")
    if not isinstance(description, str):
        raise TaskParseError(f"Task {uuid} has no description")
    if isinstance(urgency, bool) or not isinstance(urgency, (int, float)):
        raise TaskParseError(f"Task {uuid} has no numeric urgency")
    if "entry" not in raw:
        raise TaskParseError(f"Task {uuid} has no entry date")

    raw_id = raw.get("id")
    if raw_id is not None and (isinstance(raw_id, bool) or not isinstance(raw_id, int)):
        raise TaskParseError(f"Task {uuid} has a non-integer id")

    raw_priority = raw.get("priority")
    if raw_priority is not None and raw_priority not in ("H", "M", "L"):
        raise TaskParseError(f"Task {uuid} has invalid priority {raw_priority!r}")

    project = raw.get("project")
    if project is not None and not isinstance(project, str):
        raise TaskParseError(f"Task {uuid} has a non-string project")

    return Task(
        uuid=uuid,
        # Completed/deleted tasks are exported with id 0.
        id=raw_id or None,
        description=description,
        entry=parse_tw_date(raw["entry"]),
        end=_opt_date(raw, "end"),
        due=_opt_date(raw, "due"),
        modified=_opt_date(raw, "modified"),
        priority=Priority(raw_priority) if raw_priority else None,
        project=project or None,
        tags=_str_list(raw, "tags"),
        depends=_str_list(raw, "depends"),
        urgency=float(urgency),
    )


def parse_task_list(stdout: str) -> list[Task]:
    """All-or-nothing: one malformed record rejects the whole export."""
    if not stdout.strip():
        return []
    try:
        raw = json.loads(stdout)
    except ValueError as e:
        raise TaskParseError(f"task export did not return JSON: {e}") from e
    if not isinstance(raw, list):
        raise TaskParseError("task export did not return a JSON array")
    return [task_from_export(item) for item in raw]


def _split_lines(stdout: str) -> list[str]:
    return [line.strip() for line in stdout.splitlines() if line.strip()]


class TaskwarriorCLI:
    """
    Taskwarrior adapter: every operation is one (or a few) `task` subprocess calls.

    Queries raise TaskwarriorError / TaskParseError on failure so the cache can keep
    its current data. Mutations raise TaskwarriorError; the coordinator rolls back.

    Auto-sync (settings file "autoSync") runs `task sync` after a successful mutation;
    a failing auto-sync is logged and never fails the mutation itself.
    """

    def __init__(
        self,
        settings_provider: SettingsProvider,
        *,
        binary: str = "task",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._settings = settings_provider
        self._binary = binary
        self._timeout = float(timeout_seconds)

    # ---- low-level helpers ----

    async def _run(self, args: Sequence[str]) -> str:
        """Run `task <args>` and return stdout. Raises TaskwarriorError."""
        cmd = [self._binary, *args]
        logger.debug("exec: %s", " ".join(cmd))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TaskwarriorError(f"Cannot run {self._binary!r}: {e}", command=cmd) from e

        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            raise TaskwarriorError(
                f"{' '.join(cmd)} timed out after {self._timeout:.0f}s", command=cmd
            ) from None

        stdout = out.decode("utf-8", errors="replace")
        stderr = err.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            raise TaskwarriorError(
                f"{' '.join(cmd)} exited with {proc.returncode}: {stderr.strip()}",
                command=cmd,
                returncode=proc.returncode,
                stderr=stderr,
            )
        return stdout

    async def _auto_sync(self) -> None:
        if not self._settings.get_settings().auto_sync:
            return
        try:
            logger.info("Auto-sync enabled, running task sync...")
            await self._run(["sync"])
            logger.info("Task sync completed")
        except Exception:
            logger.exception("Error during auto-sync")

    # ---- queries ----

    async def get_all_tasks(self) -> list[Task]:
        tasks = parse_task_list(await self._run(["export"]))
        tasks.sort(key=lambda t: t.urgency, reverse=True)
        return tasks

    async def get_task(self, ref: str | int) -> Task | None:
        """Fetch one task by uuid or numeric id."""
        tasks = parse_task_list(await self._run([str(ref), "export"]))
        return tasks[0] if tasks else None

    async def get_tags(self) -> list[str]:
        tags: set[str] = set()
        for line in _split_lines(await self._run(["_unique", "tags"])):
            tags.update(t.strip() for t in line.split(",") if t.strip())
        return sorted(tags)

    async def get_projects(self) -> list[str]:
        return sorted(_split_lines(await self._run(["_projects"])))

    async def get_contexts(self) -> list[str]:
        contexts: set[str] = set()
        for line in _split_lines(await self._run(["context", "list"])):
            if "Context" in line or "---" in line or "Definition" in line:
                continue
            name = line.split()[0]
            if name.isdigit() or name in ("read", "write"):
                continue
            contexts.add(name)
        return sorted(contexts)

    async def current_context(self) -> str | None:
        m = _CONTEXT_SHOW_RE.search(await self._run(["context", "show"]))
        return m.group(1) if m else None

    async def set_context(self, name: str | None) -> bool:
        await self._run(["context", name or "none"])
        logger.info("Context set to %s", name or "none")
        return True

    # ---- mutations ----

    @staticmethod
    def build_add_args(data: TaskAdd) -> list[str]:
        args = ["add", data.description.strip()]
        if data.project:
            args.append(f"project:{data.project}")
        if data.priority:
            args.append(f"priority:{data.priority}")
        if data.due is not None:
            args.append(f"due:{format_tw_date(data.due)}")
        args.extend(f"+{t}" for t in normalize_tags(data.tags))
        if data.depends:
            args.append(f"depends:{','.join(data.depends)}")
        return args

    @staticmethod
    def build_modify_args(original: Task, updates: TaskUpdate) -> list[str]:
        """`<uuid> modify ...`; returns only [uuid, "modify"] when nothing changes."""
        args = [original.uuid, "modify"]
        if updates.description is not None:
            args.append(f"description:{updates.description.strip()}")
        if updates.project is not None:
            args.append(f"project:{updates.project.strip()}")
        if updates.priority is not None:
            args.append(f"priority:{updates.priority.strip().upper()}")
        if updates.clear_due:
            args.append("due:")
        elif updates.due is not None:
            args.append(f"due:{format_tw_date(updates.due)}")
        if updates.tags is not None:
            wanted = normalize_tags(updates.tags)
            args.extend(f"+{t}" for t in wanted if t not in original.tags)
            args.extend(f"-{t}" for t in original.tags if t not in wanted)
        return args

    async def add_task(self, data: TaskAdd) -> Task | None:
        stdout = await self._run(self.build_add_args(data))
        m = _CREATED_RE.search(stdout)
        if not m:
            logger.warning("task add succeeded but printed no task id: %r", stdout.strip())
            await self._auto_sync()
            return None

        await self._auto_sync()
        task_id = int(m.group(1))
        logger.info("Created task %s", task_id)
        return await self.get_task(task_id)

    async def update_task(self, original: Task, updates: TaskUpdate) -> Task | None:
        args = self.build_modify_args(original, updates)
        if len(args) > 2:
            await self._run(args)
            await self._auto_sync()
            logger.info("Modified task %s", original.uuid)
        return await self.get_task(original.uuid)

    async def complete_task(self, uuid: str) -> bool:
        await self._run([uuid, "done"])
        await self._auto_sync()
        logger.info("Completed task %s", uuid)
        return True

    async def restore_task(self, uuid: str) -> bool:
        await self._run([uuid, "modify", "status:pending"])
        await self._auto_sync()
        logger.info("Restored task %s", uuid)
        return True

    async def sync(self) -> bool:
        logger.info("Running task sync...")
        await self._run(["sync"])
        logger.info("Task sync completed successfully")
        return True

