# src/tasktrack/tasks/task_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from ..core.clock import SystemClock
from ..core.ports import ChangeListener, Clock, KeyValueStore
from . import task_stats
from .task_filters import FilterCriteria, SortOption, apply_filters
from .task_models import (
    Task,
    TaskCategory,
    TaskPriority,
    TaskStatus,
    deserialize,
    serialize,
    with_changes,
)
from .task_stats import TaskStats

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "tasks"

_NEXT_STATUS = {
    TaskStatus.PENDING: TaskStatus.IN_PROGRESS,
    TaskStatus.IN_PROGRESS: TaskStatus.COMPLETED,
    TaskStatus.COMPLETED: TaskStatus.PENDING,
    TaskStatus.CANCELLED: TaskStatus.PENDING,
}


class DuplicateTaskError(ValueError):
    """add_task() was called with an id that is already in the collection."""


class TaskStore:
    """
    In-memory task collection with a derived filtered view.

    Every mutation is applied to memory first: the collection is updated, the
    filtered view recomputed, persistence scheduled, then listeners notified.

    Persistence:
    - the whole collection is stored as a JSON array under one key
    - with a running event loop, a single writer task pushes snapshots to the
      backend in a worker thread; back-to-back mutations coalesce and the last
      write always carries the current collection
    - without a running loop, the write happens inline
    - write failures are logged and never undo the in-memory change

    Unknown ids passed to update_task/delete_task/toggle_status are ignored.
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        *,
        clock: Clock | None = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        autoload: bool = True,
    ) -> None:
        self._kv = kv_store
        self._clock: Clock = clock or SystemClock()
        self._key = storage_key

        self._tasks: list[Task] = []
        self._criteria = FilterCriteria()
        self._filtered: list[Task] = []
        self._listeners: list[ChangeListener] = []

        self._loaded = False
        self._load_task: asyncio.Task[None] | None = None
        self._deleted_before_load: set[str] = set()

        self._writer: asyncio.Task[None] | None = None
        self._persist_pending = False
        self._warned_unloaded = False

        if autoload:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                self._finish_load(self._read_stored())
            else:
                self._load_task = loop.create_task(self.load())

    # ---- loading ----

    async def load(self) -> None:
        """Read the stored collection once. Later calls are ignored."""
        if self._loaded:
            logger.debug("TaskStore already loaded key=%s", self._key)
            return
        loaded = await asyncio.to_thread(self._read_stored)
        self._finish_load(loaded)

    async def wait_until_loaded(self) -> None:
        if self._load_task is not None:
            await self._load_task

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def _read_stored(self) -> list[Task]:
        try:
            raw = self._kv.read(self._key)
        except Exception:
            logger.exception("Failed to read stored tasks key=%s; starting empty", self._key)
            return []
        return self._decode(raw)

    def _decode(self, raw: str | None) -> list[Task]:
        if not raw:
            return []
        try:
            records = json.loads(raw)
        except json.JSONDecodeError:
            logger.exception("Stored tasks are not valid JSON key=%s; starting empty", self._key)
            return []
        if not isinstance(records, list):
            logger.error("Stored tasks key=%s is not a list; starting empty", self._key)
            return []

        tasks: list[Task] = []
        seen: set[str] = set()
        for idx, record in enumerate(records):
            try:
                # Older builds stored each record as its own JSON string.
                if isinstance(record, str):
                    record = json.loads(record)
                task = deserialize(record)
            except ValueError as e:
                logger.warning("Skipping malformed task record #%d: %s", idx, e)
                continue
            if task.id in seen:
                logger.warning("Skipping duplicate task record #%d id=%s", idx, task.id)
                continue
            seen.add(task.id)
            tasks.append(task)
        return tasks

    def _finish_load(self, loaded: list[Task]) -> None:
        if self._deleted_before_load:
            kept = [t for t in loaded if t.id not in self._deleted_before_load]
            if len(kept) != len(loaded):
                self._persist_pending = True
            loaded = kept
            self._deleted_before_load.clear()

        # Tasks added while a background load was in flight stay after the
        # stored ones and win on an id collision.
        if self._tasks:
            early_ids = {t.id for t in self._tasks}
            loaded = [t for t in loaded if t.id not in early_ids]

        self._tasks = loaded + self._tasks
        self._loaded = True
        logger.info("TaskStore loaded key=%s total=%d", self._key, len(self._tasks))

        self._refresh()
        self._notify()

        if self._persist_pending:
            self._schedule_persist()

    # ---- persistence ----

    def _encode(self) -> tuple[str, int]:
        records = [serialize(t) for t in self._tasks]
        return json.dumps(records, ensure_ascii=False), len(records)

    def _write_snapshot(self, payload: str, count: int) -> None:
        try:
            self._kv.write(self._key, payload)
            logger.debug("Persisted %d task(s) key=%s", count, self._key)
        except Exception:
            logger.exception("Failed to persist %d task(s) key=%s", count, self._key)

    def _schedule_persist(self) -> None:
        self._persist_pending = True
        if not self._loaded:
            # Flushed by _finish_load(); writing now would clobber stored tasks.
            if self._load_task is None and not self._warned_unloaded:
                self._warned_unloaded = True
                logger.warning("TaskStore key=%s not loaded yet; writes wait for load() or flush()", self._key)
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._persist_pending = False
            self._write_snapshot(*self._encode())
            return

        if self._writer is None or self._writer.done():
            self._writer = loop.create_task(self._run_writer())

    async def _run_writer(self) -> None:
        while self._persist_pending:
            self._persist_pending = False
            # Snapshot on the loop thread, write off it.
            payload, count = self._encode()
            await asyncio.to_thread(self._write_snapshot, payload, count)

    async def flush(self) -> None:
        """Wait for the pending load and every scheduled write. Loads first if nothing did."""
        if not self._loaded and self._load_task is None:
            self._load_task = asyncio.get_running_loop().create_task(self.load())
        await self.wait_until_loaded()
        while self._writer is not None and not self._writer.done():
            await self._writer

    async def close(self) -> None:
        await self.flush()
        self._listeners.clear()

    # ---- change notification ----

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Change listener %r failed", listener)

    def _refresh(self) -> None:
        self._filtered = apply_filters(self._tasks, self._criteria)

    def _commit(self) -> None:
        self._refresh()
        self._schedule_persist()
        self._notify()

    # ---- read surface ----

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(self._tasks)

    @property
    def filtered_tasks(self) -> tuple[Task, ...]:
        return tuple(self._filtered)

    @property
    def criteria(self) -> FilterCriteria:
        return self._criteria

    @property
    def search_query(self) -> str:
        return self._criteria.search_query

    @property
    def selected_category(self) -> TaskCategory | None:
        return self._criteria.selected_category

    @property
    def selected_status(self) -> TaskStatus | None:
        return self._criteria.selected_status

    @property
    def selected_priority(self) -> TaskPriority | None:
        return self._criteria.selected_priority

    @property
    def sort_option(self) -> SortOption:
        return self._criteria.sort_option

    @property
    def show_completed(self) -> bool:
        return self._criteria.show_completed

    def get_task(self, task_id: str) -> Task | None:
        idx = self._index_of(task_id)
        return self._tasks[idx] if idx is not None else None

    def _index_of(self, task_id: str) -> int | None:
        for idx, task in enumerate(self._tasks):
            if task.id == task_id:
                return idx
        return None

    # ---- statistics / queries ----

    def statistics(self) -> TaskStats:
        return task_stats.compute_stats(self._tasks, self._clock.now())

    def tasks_by_category(self, category: TaskCategory) -> list[Task]:
        return task_stats.tasks_by_category(self._tasks, category)

    def today_tasks(self) -> list[Task]:
        return task_stats.today_tasks(self._tasks, self._clock.now())

    def overdue_tasks(self) -> list[Task]:
        return task_stats.overdue_tasks(self._tasks, self._clock.now())

    def upcoming_tasks(self) -> list[Task]:
        return task_stats.upcoming_tasks(self._tasks, self._clock.now())

    # ---- mutations ----

    def add_task(self, task: Task) -> None:
        if self._index_of(task.id) is not None:
            raise DuplicateTaskError(f"task {task.id!r} already exists")

        self._tasks.append(task)
        logger.debug("Task added id=%s status=%s", task.id, task.status.value)
        self._commit()

    def update_task(self, task: Task) -> None:
        idx = self._index_of(task.id)
        if idx is None:
            logger.debug("update_task ignored: unknown id=%s", task.id)
            return

        previous = self._tasks[idx]
        changes: dict[str, Any] = {}
        if task.created_at != previous.created_at:
            changes["created_at"] = previous.created_at
        if (
            task.status == TaskStatus.COMPLETED
            and previous.status != TaskStatus.COMPLETED
            and task.completed_at is None
        ):
            changes["completed_at"] = self._clock.now()
        if changes:
            task = with_changes(task, changes)

        self._tasks[idx] = task
        logger.debug("Task updated id=%s status=%s", task.id, task.status.value)
        self._commit()

    def delete_task(self, task_id: str) -> None:
        if not self._loaded:
            self._deleted_before_load.add(task_id)

        remaining = [t for t in self._tasks if t.id != task_id]
        if len(remaining) == len(self._tasks):
            logger.debug("delete_task ignored: unknown id=%s", task_id)
            return

        self._tasks = remaining
        logger.debug("Task deleted id=%s", task_id)
        self._commit()

    def toggle_status(self, task_id: str) -> None:
        idx = self._index_of(task_id)
        if idx is None:
            logger.debug("toggle_status ignored: unknown id=%s", task_id)
            return

        task = self._tasks[idx]
        new_status = _NEXT_STATUS[task.status]
        changes: dict[str, Any] = {"status": new_status}
        if new_status == TaskStatus.COMPLETED:
            changes["completed_at"] = self._clock.now()

        self._tasks[idx] = with_changes(task, changes)
        logger.debug("Task %s -> %s", task_id, new_status.value)
        self._commit()

    # ---- criteria (never persisted) ----

    def _set_criteria(self, criteria: FilterCriteria) -> None:
        self._criteria = criteria
        self._refresh()
        self._notify()

    def set_search_query(self, query: str) -> None:
        self._set_criteria(replace(self._criteria, search_query=query))

    def set_selected_category(self, category: TaskCategory | None) -> None:
        self._set_criteria(replace(self._criteria, selected_category=category))

    def set_selected_status(self, status: TaskStatus | None) -> None:
        self._set_criteria(replace(self._criteria, selected_status=status))

    def set_selected_priority(self, priority: TaskPriority | None) -> None:
        self._set_criteria(replace(self._criteria, selected_priority=priority))

    def set_sort_option(self, option: SortOption) -> None:
        self._set_criteria(replace(self._criteria, sort_option=option))

    def set_show_completed(self, show: bool) -> None:
        self._set_criteria(replace(self._criteria, show_completed=bool(show)))

    def clear_filters(self) -> None:
        self._set_criteria(FilterCriteria())
