# src/taskwarlock/tasks/task_cache.py

from __future__ import annotations

"""
Client-side query cache.

One entry per collection key ("tasks", "tags", "projects"), each loaded by a registered
async fetcher. The cache is the only shared mutable state on the client side:

- get_data / set_data: read and replace a collection (lists are stored as tuples,
  so a value read from the cache is an immutable snapshot).
- refetch: start a fresh authoritative load, superseding any load in flight.
- cancel: stop an in-flight load; a cancelled load never writes.
- invalidate: mark keys stale and refetch them.

Everything runs on one event loop, so there are no locks. Ordering is kept with a
per-key generation counter: a load only writes if nobody cancelled or superseded it.
A failed load leaves the cached value untouched.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..core.ports import Fetcher

logger = logging.getLogger(__name__)

TASKS_KEY = "tasks"
TAGS_KEY = "tags"
PROJECTS_KEY = "projects"
ALL_KEYS = (TASKS_KEY, TAGS_KEY, PROJECTS_KEY)


@dataclass(slots=True)
class _Entry:
    data: Any = None
    has_data: bool = False
    updated_at: float = 0.0
    stale: bool = True
    generation: int = 0
    error: BaseException | None = None
    loading: asyncio.Task[Any] | None = None


def _freeze(data: Any) -> Any:
    return tuple(data) if isinstance(data, list) else data


class QueryCache:
    def __init__(
        self,
        *,
        stale_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._stale_seconds = max(0.0, float(stale_seconds))
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._fetchers: dict[str, Fetcher] = {}

    def _entry(self, key: str) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        return entry

    def register(self, key: str, fetcher: Fetcher) -> None:
        self._fetchers[key] = fetcher

    # ---- synchronous access ----

    def get_data(self, key: str) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry is not None else None

    def has_data(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.has_data

    def set_data(self, key: str, data: Any) -> None:
        entry = self._entry(key)
        entry.data = _freeze(data)
        entry.has_data = True
        entry.updated_at = self._clock()

    def reset(self, key: str) -> None:
        """Forget the cached value (the key goes back to "never loaded")."""
        entry = self._entry(key)
        entry.data = None
        entry.has_data = False
        entry.stale = True

    def mark_stale(self, key: str) -> None:
        """Keep the value but make the next fetch reload it."""
        self._entry(key).stale = True

    def last_error(self, key: str) -> BaseException | None:
        entry = self._entries.get(key)
        return entry.error if entry is not None else None

    def is_stale(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None or not entry.has_data or entry.stale:
            return True
        return self._clock() - entry.updated_at >= self._stale_seconds

    def is_loading(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.loading is not None and not entry.loading.done()

    # ---- loading ----

    async def _load(self, key: str, generation: int) -> Any:
        entry = self._entry(key)
        fetcher = self._fetchers[key]
        try:
            data = await fetcher()
        except asyncio.CancelledError:
            logger.debug("Refresh of %s cancelled", key)
            raise
        except Exception as exc:
            # No data available: keep whatever the cache holds.
            logger.warning("Refresh of %s failed: %s", key, exc, exc_info=True)
            if entry.generation == generation:
                entry.error = exc
            return entry.data
        finally:
            if entry.loading is asyncio.current_task():
                entry.loading = None

        if entry.generation != generation:
            logger.debug("Discarding superseded refresh of %s", key)
            return entry.data

        entry.data = _freeze(data)
        entry.has_data = True
        entry.stale = False
        entry.error = None
        entry.updated_at = self._clock()
        return entry.data

    def _start_load(self, key: str) -> asyncio.Task[Any]:
        entry = self._entry(key)
        entry.generation += 1
        task = asyncio.get_running_loop().create_task(
            self._load(key, entry.generation), name=f"refresh:{key}"
        )
        entry.loading = task
        return task

    @staticmethod
    async def _join(task: asyncio.Task[Any]) -> Any:
        # asyncio.wait does not raise when `task` itself gets cancelled by someone else.
        await asyncio.wait([task])
        if task.cancelled():
            return None
        return task.result()

    async def refetch(self, key: str) -> Any:
        """Load `key` now, superseding (and cancelling) any refresh already in flight."""
        if key not in self._fetchers:
            raise KeyError(f"No fetcher registered for {key!r}")
        await self.cancel(key)
        return await self._join(self._start_load(key))

    def schedule_refetch(self, key: str) -> asyncio.Task[Any]:
        """Like refetch, but for callers that cannot wait (e.g. while being cancelled)."""
        if key not in self._fetchers:
            raise KeyError(f"No fetcher registered for {key!r}")
        entry = self._entry(key)
        if entry.loading is not None and not entry.loading.done():
            # _start_load bumps the generation, so the old load can no longer write.
            entry.loading.cancel()
        return self._start_load(key)

    async def fetch(self, key: str) -> Any:
        """Return cached data if fresh; otherwise join the in-flight load or start one."""
        if not self.is_stale(key):
            return self.get_data(key)
        entry = self._entry(key)
        if entry.loading is not None and not entry.loading.done():
            return await self._join(entry.loading)
        if key not in self._fetchers:
            raise KeyError(f"No fetcher registered for {key!r}")
        return await self._join(self._start_load(key))

    async def cancel(self, key: str) -> None:
        entry = self._entry(key)
        entry.generation += 1
        task = entry.loading
        entry.loading = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])

    async def invalidate(self, *keys: str) -> None:
        """Mark keys stale and refetch every one that has a fetcher (concurrently)."""
        targets = keys or tuple(self._entries)
        for key in targets:
            self._entry(key).stale = True
        to_load = [k for k in targets if k in self._fetchers]
        if to_load:
            await asyncio.gather(*(self.refetch(k) for k in to_load))
