# src/tasktrack/tasks/task_api.py

from __future__ import annotations

import logging
import uuid
from typing import Any

from ..core.ports import Clock
from .task_models import Task
from .task_store import TaskStore

logger = logging.getLogger(__name__)


def new_task(clock: Clock, title: str, **fields: Any) -> Task:
    """
    Build a fresh Task with a new unique id and created_at = now.

    Extra keyword arguments are passed through to Task (priority, due_date, ...).
    """
    return Task(
        id=uuid.uuid4().hex,
        title=title.strip(),
        created_at=clock.now(),
        **fields,
    )


def add_new_task(store: TaskStore, clock: Clock, title: str, **fields: Any) -> Task:
    """
    Convenience helper: create a task and add it to the store in one call.
    Returns the created Task so the caller can show its id.
    """
    task = new_task(clock, title, **fields)
    store.add_task(task)
    logger.info("Created task id=%s title=%r", task.id, task.title)
    return task
