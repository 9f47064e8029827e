# src/taskwarlock/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from ..tasks.task_cache import QueryCache
from ..tasks.task_coordinator import MutationCoordinator
from .ports import Clock, SettingsProvider, TaskBackend


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class AppState:
    # Process settings (config.Settings); kept untyped so tests can pass a SimpleNamespace.
    settings: Any

    settings_store: SettingsProvider
    backend: TaskBackend
    cache: QueryCache
    coordinator: MutationCoordinator
    clock: Clock = utc_now
