# src/taskwarlock/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The coordinator and the cache depend on Protocols instead of concrete implementations.
This keeps the Taskwarrior adapter and the settings file swappable and makes testing easier.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..tasks.task_models import Task, TaskAdd, TaskUpdate
    from .settings_store import AppSettings

Clock = Callable[[], datetime]
# Wall clock used for predictions; must return timezone-aware UTC datetimes.

Fetcher = Callable[[], Awaitable[Any]]
# Authoritative query used by the cache to (re)load one collection.


class TaskBackend(Protocol):
    """
    The external task database.

    Queries raise on failure. Mutations either raise or return False on failure;
    add/update return the authoritative record when it could be read back.
    """

    # Queries
    async def get_all_tasks(self) -> list[Task]: ...
    async def get_tags(self) -> list[str]: ...
    async def get_projects(self) -> list[str]: ...

    # Mutations
    async def add_task(self, data: TaskAdd) -> Task | bool | None: ...
    async def update_task(self, original: Task, updates: TaskUpdate) -> Task | bool | None: ...
    async def complete_task(self, uuid: str) -> bool: ...
    async def restore_task(self, uuid: str) -> bool: ...
    async def sync(self) -> bool: ...

    # Contexts (named filters kept by the task database)
    async def get_contexts(self) -> list[str]: ...
    async def current_context(self) -> str | None: ...
    async def set_context(self, name: str | None) -> bool: ...


class SettingsProvider(Protocol):
    """Returns current user settings (defaults when nothing is configured)."""

    def get_settings(self) -> AppSettings: ...
