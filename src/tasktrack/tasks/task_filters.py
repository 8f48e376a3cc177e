# src/tasktrack/tasks/task_filters.py

"""
Search / filter / sort pipeline.

apply_filters() is a pure function of (collection, criteria). TaskStore calls
it after every change and caches the result as the filtered view.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from .task_models import Task, TaskCategory, TaskPriority, TaskStatus


class SortOption(StrEnum):
    DUE_DATE = "dueDate"
    PRIORITY = "priority"
    TITLE = "title"
    CREATED_AT = "createdAt"
    STATUS = "status"


_PRIORITY_RANK = {
    TaskPriority.LOW: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.HIGH: 3,
    TaskPriority.URGENT: 4,
}

_STATUS_ORDER = {status: idx for idx, status in enumerate(TaskStatus)}


def priority_rank(priority: TaskPriority) -> int:
    return _PRIORITY_RANK[priority]


@dataclass(frozen=True, slots=True)
class FilterCriteria:
    search_query: str = ""
    selected_category: TaskCategory | None = None
    selected_status: TaskStatus | None = None
    selected_priority: TaskPriority | None = None
    sort_option: SortOption = SortOption.DUE_DATE
    show_completed: bool = True


def matches_query(task: Task, query: str) -> bool:
    """Case-insensitive substring match on title, description or any tag."""
    q = query.lower()
    if q in task.title.lower() or q in task.description.lower():
        return True
    return any(q in tag.lower() for tag in task.tags)


def _due_date_key(task: Task) -> tuple[int, Any]:
    # Undated tasks go last and compare equal to each other.
    if task.due_date is None:
        return (1, 0)
    return (0, task.due_date)


_SORT_KEYS: dict[SortOption, tuple[Callable[[Task], Any], bool]] = {
    SortOption.DUE_DATE: (_due_date_key, False),
    SortOption.PRIORITY: (lambda t: priority_rank(t.priority), True),
    SortOption.TITLE: (lambda t: t.title, False),
    SortOption.CREATED_AT: (lambda t: t.created_at, True),
    SortOption.STATUS: (lambda t: _STATUS_ORDER[t.status], False),
}


def sort_tasks(tasks: Iterable[Task], option: SortOption) -> list[Task]:
    # sorted() is stable, also with reverse=True.
    key, descending = _SORT_KEYS[option]
    return sorted(tasks, key=key, reverse=descending)


def apply_filters(tasks: Iterable[Task], criteria: FilterCriteria) -> list[Task]:
    filtered = list(tasks)

    if criteria.search_query:
        filtered = [t for t in filtered if matches_query(t, criteria.search_query)]

    if criteria.selected_category is not None:
        filtered = [t for t in filtered if t.category == criteria.selected_category]

    if criteria.selected_status is not None:
        filtered = [t for t in filtered if t.status == criteria.selected_status]

    if criteria.selected_priority is not None:
        filtered = [t for t in filtered if t.priority == criteria.selected_priority]

    if not criteria.show_completed:
        filtered = [t for t in filtered if t.status != TaskStatus.COMPLETED]

    return sort_tasks(filtered, criteria.sort_option)
