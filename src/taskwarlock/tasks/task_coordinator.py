# src/taskwarlock/tasks/task_coordinator.py

from __future__ import annotations

"""
Optimistic mutation coordinator.

Every mutation goes through the same steps:
1. validate the request (nothing is touched on failure),
2. cancel any in-flight refresh of the task list and snapshot it,
3. write the predicted result into the cache (urgency recomputed locally),
4. await the external call,
5. success -> invalidate the affected collections and wait for the authoritative refetch;
   failure or cancellation -> take the prediction back out and mark the list stale.
   A mutation that ran alone restores its snapshot exactly. When mutations overlap,
   each failure reverts only its own record and the last one to settle reloads the list.
   Failures raise MutationFailedError; cancellation propagates.

Failed calls are never retried; the user has to trigger the action again.
"""

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any, TypeVar

from ..core.errors import MissingOriginalError, MutationFailedError
from ..core.ports import Clock, SettingsProvider, TaskBackend
from .task_cache import ALL_KEYS, TASKS_KEY, QueryCache
from .task_models import Task, TaskAdd, TaskUpdate, normalize_tags
from .urgency import estimate_urgency

logger = logging.getLogger(__name__)

TEMP_UUID_PREFIX = "temp-"

T = TypeVar("T")

AppliedListener = Callable[[Task], None]
# Called with the predicted record right after it is written to the cache.

Reverter = Callable[[tuple[Task, ...]], list[Task]]
# Takes one mutation's prediction back out of the current task list.


def is_temporary_uuid(uuid: str) -> bool:
    return uuid.startswith(TEMP_UUID_PREFIX)


class MutationCoordinator:
    def __init__(
        self,
        cache: QueryCache,
        backend: TaskBackend,
        settings_provider: SettingsProvider,
        clock: Clock,
    ) -> None:
        self._cache = cache
        self._backend = backend
        self._settings = settings_provider
        self._clock = clock
        self._temp_seq = itertools.count(1)
        self._in_flight = 0
        # Set once two mutations overlap; cleared when none is in flight.
        self._overlapped = False

    # ---- helpers ----

    def _score(self, task: Task) -> Task:
        # Settings are read on every call: coefficients may change between mutations.
        settings = self._settings.get_settings()
        urgency = estimate_urgency(
            task,
            settings.urgency_coefficients,
            settings.urgency_age_max,
            now=self._clock(),
        )
        return replace(task, urgency=urgency)

    def _cached_tasks(self) -> tuple[Task, ...]:
        return self._cache.get_data(TASKS_KEY) or ()

    def _new_temp_uuid(self) -> str:
        ms = int(self._clock().timestamp() * 1000)
        return f"{TEMP_UUID_PREFIX}{ms}-{next(self._temp_seq)}"

    async def _prepare(self) -> tuple[Task, ...] | None:
        """Cancel in-flight task refreshes, then snapshot the task list."""
        await self._cache.cancel(TASKS_KEY)
        if not self._cache.has_data(TASKS_KEY):
            return None
        return self._cached_tasks()

    def _rollback(self, snapshot: tuple[Task, ...] | None) -> None:
        if snapshot is None:
            # Nothing was loaded before the mutation.
            self._cache.reset(TASKS_KEY)
            return
        self._cache.set_data(TASKS_KEY, snapshot)

    def _enter(self) -> None:
        self._in_flight += 1
        if self._in_flight > 1:
            self._overlapped = True

    def _leave(self) -> None:
        self._in_flight -= 1
        if self._in_flight == 0:
            self._overlapped = False

    def _undo(self, snapshot: tuple[Task, ...] | None, revert: Reverter) -> bool:
        """
        Take this mutation's prediction back out of the cache.

        Alone: the snapshot goes back as it was. Overlapping with others: the snapshot
        may hold their predictions, so only this mutation's own change is reverted and
        the last one to settle reloads the list. Returns True when a reload is due.
        """
        others_pending = self._in_flight > 1
        overlapped = self._overlapped
        self._leave()
        if not overlapped:
            self._rollback(snapshot)
        elif self._cache.has_data(TASKS_KEY):
            self._cache.set_data(TASKS_KEY, revert(self._cached_tasks()))
        self._cache.mark_stale(TASKS_KEY)
        return overlapped and not others_pending

    async def _dispatch(
        self,
        operation: str,
        snapshot: tuple[Task, ...] | None,
        call: Callable[[], Awaitable[T]],
        invalidate: tuple[str, ...],
        revert: Reverter,
    ) -> T:
        self._enter()
        try:
            result = await call()
        except asyncio.CancelledError:
            if self._undo(snapshot, revert):
                self._cache.schedule_refetch(TASKS_KEY)
            logger.warning("%s cancelled, rolled back optimistic update", operation)
            raise
        except Exception as exc:
            cause: BaseException | None = exc
            message = str(exc) or exc.__class__.__name__
        else:
            if result is not False:
                self._leave()
                logger.debug("%s confirmed, refreshing %s", operation, ", ".join(invalidate))
                await self._cache.invalidate(*invalidate)
                return result
            cause, message = None, "rejected by the task database"

        reload = self._undo(snapshot, revert)
        logger.warning("%s failed, rolled back optimistic update: %s", operation, message)
        if reload:
            await self._cache.refetch(TASKS_KEY)
        raise MutationFailedError(operation, message) from cause

    def _find(self, uuid: str, operation: str) -> Task:
        for t in self._cached_tasks():
            if t.uuid == uuid:
                return t
        raise MissingOriginalError(f"{operation}: no cached task with uuid {uuid!r}")

    def _replace_in_cache(self, updated: Task) -> None:
        self._cache.set_data(
            TASKS_KEY,
            [updated if t.uuid == updated.uuid else t for t in self._cached_tasks()],
        )

    @staticmethod
    def _put_back(original: Task) -> Reverter:
        return lambda tasks: [original if t.uuid == original.uuid else t for t in tasks]

    # ---- mutations ----

    async def add_task(
        self, data: TaskAdd, *, on_applied: AppliedListener | None = None
    ) -> Task | None:
        data.validate()

        snapshot = await self._prepare()

        predicted = self._score(
            Task(
                uuid=self._new_temp_uuid(),
                id=None,
                description=data.description.strip(),
                entry=self._clock(),
                priority=data.priority,
                project=(data.project or "").strip() or None,
                due=data.due,
                tags=normalize_tags(data.tags),
                depends=tuple(data.depends),
            )
        )
        self._cache.set_data(TASKS_KEY, [predicted, *self._cached_tasks()])
        logger.info("add: predicted %s urgency=%.2f", predicted.uuid, predicted.urgency)
        if on_applied is not None:
            on_applied(predicted)

        result = await self._dispatch(
            "add",
            snapshot,
            lambda: self._backend.add_task(data),
            ALL_KEYS,
            lambda tasks: [t for t in tasks if t.uuid != predicted.uuid],
        )
        return result if isinstance(result, Task) else None

    async def edit_task(
        self,
        original: Task | None,
        updates: TaskUpdate,
        *,
        on_applied: AppliedListener | None = None,
    ) -> Task | None:
        if original is None:
            raise MissingOriginalError("edit: no original task data for the task being updated")
        updates.validate()

        # The cached copy must exist: editing something we cannot display would desync urgency.
        self._find(original.uuid, "edit")
        snapshot = await self._prepare()
        cached = self._find(original.uuid, "edit")
        predicted = self._score(cached.merged(updates))
        self._replace_in_cache(predicted)
        logger.info("edit: predicted %s urgency=%.2f", predicted.uuid, predicted.urgency)
        if on_applied is not None:
            on_applied(predicted)

        result = await self._dispatch(
            "edit",
            snapshot,
            lambda: self._backend.update_task(original, updates),
            ALL_KEYS,
            self._put_back(cached),
        )
        return result if isinstance(result, Task) else None

    async def complete_task(self, uuid: str, *, on_applied: AppliedListener | None = None) -> None:
        self._find(uuid, "complete")
        snapshot = await self._prepare()
        task = self._find(uuid, "complete")
        predicted = replace(task, end=self._clock())
        self._replace_in_cache(predicted)
        if on_applied is not None:
            on_applied(predicted)
        logger.info("complete: %s", uuid)
        await self._dispatch(
            "complete",
            snapshot,
            lambda: self._backend.complete_task(uuid),
            (TASKS_KEY,),
            self._put_back(task),
        )

    async def restore_task(self, uuid: str, *, on_applied: AppliedListener | None = None) -> None:
        self._find(uuid, "restore")
        snapshot = await self._prepare()
        task = self._find(uuid, "restore")
        predicted = replace(task, end=None)
        self._replace_in_cache(predicted)
        if on_applied is not None:
            on_applied(predicted)
        logger.info("restore: %s", uuid)
        await self._dispatch(
            "restore",
            snapshot,
            lambda: self._backend.restore_task(uuid),
            (TASKS_KEY,),
            self._put_back(task),
        )

    async def sync(self) -> None:
        """Not optimistic: nothing to predict, just refresh everything afterwards."""
        try:
            ok: Any = await self._backend.sync()
        except Exception as exc:
            logger.warning("sync failed: %s", exc)
            raise MutationFailedError("sync", str(exc) or exc.__class__.__name__) from exc
        if ok is False:
            raise MutationFailedError("sync", "rejected by the task database")
        logger.info("sync: done, refreshing all collections")
        await self._cache.invalidate(*ALL_KEYS)
