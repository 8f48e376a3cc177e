# tests/conftest.py

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest

from tasktrack.core.state import AppState
from tasktrack.tasks.task_models import Task
from tasktrack.tasks.task_store import TaskStore

from .fakes import FixedClock, InMemoryKeyValueStore

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture()
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture()
def store(kv: InMemoryKeyValueStore, clock: FixedClock) -> TaskStore:
    """TaskStore built outside an event loop, so it loads and writes inline."""
    return TaskStore(kv, clock=clock)


@pytest.fixture()
def make_task():
    """
    Factory for tasks with sensible defaults.

    created_at defaults to a day before NOW; pass due_in=timedelta(...) to set
    a due date relative to NOW.
    """

    def _make(task_id: str, title: str | None = None, *, due_in: timedelta | None = None, **fields) -> Task:
        fields.setdefault("created_at", NOW - timedelta(days=1))
        if due_in is not None:
            fields["due_date"] = NOW + due_in
        return Task(id=task_id, title=title or f"Task {task_id}", **fields)

    return _make


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tasktrack-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        storage_backend="sqlite",
        tasks_db_path=tmp_path / "tasks.sqlite3",
        tasks_json_path=tmp_path / "tasks.json",
        storage_key="tasks",
    )


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, clock: FixedClock) -> AppState:
    return AppState(settings=settings, clock=clock, task_store=store)
