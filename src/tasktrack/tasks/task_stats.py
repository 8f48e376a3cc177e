# src/tasktrack/tasks/task_stats.py

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from .task_models import Task, TaskCategory, TaskStatus

UPCOMING_WINDOW = timedelta(days=7)


@dataclass(frozen=True, slots=True)
class TaskStats:
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    in_progress_tasks: int
    overdue_tasks: int
    today_tasks: int
    completion_rate: float  # percent, 0..100


def compute_stats(tasks: Sequence[Task], now: datetime) -> TaskStats:
    """
    Summary counters over the whole collection.

    today_tasks counts every task due today regardless of status; the
    today_tasks() query below excludes completed ones.
    """
    total = len(tasks)
    completed = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
    rate = (completed / total) * 100 if total else 0.0

    return TaskStats(
        total_tasks=total,
        completed_tasks=completed,
        pending_tasks=sum(1 for t in tasks if t.status == TaskStatus.PENDING),
        in_progress_tasks=sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS),
        overdue_tasks=sum(1 for t in tasks if t.is_overdue(now)),
        today_tasks=sum(1 for t in tasks if t.is_due_today(now)),
        completion_rate=rate,
    )


def tasks_by_category(tasks: Iterable[Task], category: TaskCategory) -> list[Task]:
    return [t for t in tasks if t.category == category]


def today_tasks(tasks: Iterable[Task], now: datetime) -> list[Task]:
    return [t for t in tasks if t.is_due_today(now) and t.status != TaskStatus.COMPLETED]


def overdue_tasks(tasks: Iterable[Task], now: datetime) -> list[Task]:
    return [t for t in tasks if t.is_overdue(now)]


def upcoming_tasks(tasks: Iterable[Task], now: datetime) -> list[Task]:
    """Open tasks due strictly between now and now + 7 days."""
    horizon = now + UPCOMING_WINDOW
    return [
        t
        for t in tasks
        if t.due_date is not None
        and t.status != TaskStatus.COMPLETED
        and now < t.due_date < horizon
    ]
