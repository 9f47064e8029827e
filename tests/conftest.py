# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskwarlock.cli.bootstrap import register_fetchers
from taskwarlock.core.settings_store import SettingsStore
from taskwarlock.core.state import AppState
from taskwarlock.tasks.task_cache import QueryCache
from taskwarlock.tasks.task_coordinator import MutationCoordinator
from taskwarlock.tasks.task_models import Priority

from .fakes import FakeClock, FakeTaskBackend, StaticSettingsProvider, make_task


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal process settings compatible with AppState.

    A SimpleNamespace rather than config.Settings keeps tests independent
    of the environment and any .env file.
    """
    return SimpleNamespace(
        app_name="taskwarlock-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        task_binary="task",
        command_timeout_seconds=5.0,
        settings_file=tmp_path / "settings.json",
        settings_cache_ttl_seconds=0.0,
        query_stale_seconds=30.0,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def backend(clock: FakeClock) -> FakeTaskBackend:
    return FakeTaskBackend(
        [
            make_task("aaaa-1111", "write report", id=1, priority=Priority.H, project="work"),
            make_task("bbbb-2222", "buy milk", id=2, tags=("home",)),
            make_task("bbbc-3333", "call mom", id=3, depends=("aaaa-1111",)),
        ],
        clock=clock,
    )


@pytest.fixture()
def settings_provider() -> StaticSettingsProvider:
    return StaticSettingsProvider()


@pytest.fixture()
def cache(backend: FakeTaskBackend) -> QueryCache:
    cache = QueryCache(stale_seconds=30.0)
    register_fetchers(cache, backend)
    return cache


@pytest.fixture()
def coordinator(
    cache: QueryCache,
    backend: FakeTaskBackend,
    settings_provider: StaticSettingsProvider,
    clock: FakeClock,
) -> MutationCoordinator:
    return MutationCoordinator(cache, backend, settings_provider, clock)


@pytest.fixture()
def state(
    settings: SimpleNamespace, backend: FakeTaskBackend, cache: QueryCache, clock: FakeClock
) -> AppState:
    """AppState wired with the in-memory backend and a real settings file under tmp_path."""
    store = SettingsStore(settings.settings_file, ttl_seconds=0.0)
    return AppState(
        settings=settings,
        settings_store=store,
        backend=backend,
        cache=cache,
        coordinator=MutationCoordinator(cache, backend, store, clock),
        clock=clock,
    )
