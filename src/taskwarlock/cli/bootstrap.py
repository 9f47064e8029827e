# src/taskwarlock/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (settings file, Taskwarrior adapter,
  query cache, mutation coordinator).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import TaskBackend
from ..core.settings_store import SettingsStore
from ..core.state import AppState, utc_now
from ..tasks.task_cache import PROJECTS_KEY, TAGS_KEY, TASKS_KEY, QueryCache
from ..tasks.task_coordinator import MutationCoordinator
from ..tasks.task_store import TaskwarriorCLI

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.settings_file.parent.mkdir(parents=True, exist_ok=True)


def register_fetchers(cache: QueryCache, backend: TaskBackend) -> None:
    cache.register(TASKS_KEY, backend.get_all_tasks)
    cache.register(TAGS_KEY, backend.get_tags)
    cache.register(PROJECTS_KEY, backend.get_projects)


def create_initial_state(*, settings=None, backend: TaskBackend | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the backend) injectable makes the app easier to test and avoids
    hidden global config reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    settings_store = SettingsStore(
        settings.settings_file,
        ttl_seconds=settings.settings_cache_ttl_seconds,
    )

    if backend is None:
        backend = TaskwarriorCLI(
            settings_store,
            binary=settings.task_binary,
            timeout_seconds=settings.command_timeout_seconds,
        )

    cache = QueryCache(stale_seconds=settings.query_stale_seconds)
    register_fetchers(cache, backend)

    coordinator = MutationCoordinator(cache, backend, settings_store, utc_now)

    logger.info(
        "State ready: task binary=%s settings file=%s", settings.task_binary, settings.settings_file
    )
    return AppState(
        settings=settings,
        settings_store=settings_store,
        backend=backend,
        cache=cache,
        coordinator=coordinator,
        clock=utc_now,
    )
