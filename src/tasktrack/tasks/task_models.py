# src/tasktrack/tasks/task_models.py

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any


class MalformedTaskRecord(ValueError):
    """A persisted record that cannot be turned into a Task."""


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def from_name(cls, raw: Any) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw)
        except ValueError:
            return cls.MEDIUM


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Declaration order matters: the status sort uses it
    (pending < inProgress < completed < cancelled).
    """

    PENDING = "pending"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def from_name(cls, raw: Any) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


class TaskCategory(StrEnum):
    WORK = "work"
    PERSONAL = "personal"
    HEALTH = "health"
    EDUCATION = "education"
    FINANCE = "finance"
    OTHER = "other"

    @classmethod
    def from_name(cls, raw: Any) -> TaskCategory:
        if not raw:
            return cls.PERSONAL
        try:
            return cls(raw)
        except ValueError:
            return cls.PERSONAL


def _calendar_day(ts: datetime, now: datetime):
    # Compare days in the caller's timezone when both sides are tz-aware.
    if ts.tzinfo is not None and now.tzinfo is not None:
        ts = ts.astimezone(now.tzinfo)
    return ts.date()


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    title: str
    created_at: datetime

    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    category: TaskCategory = TaskCategory.PERSONAL

    due_date: datetime | None = None
    completed_at: datetime | None = None

    tags: tuple[str, ...] = field(default_factory=tuple)
    estimated_minutes: int = 0
    actual_minutes: int = 0
    custom_color: int | None = None  # opaque ARGB value owned by the UI

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("id is required")
        if not self.title:
            raise ValueError("title is required")
        if self.estimated_minutes < 0 or self.actual_minutes < 0:
            raise ValueError("minutes must be non-negative")
        if not isinstance(self.tags, tuple):
            object.__setattr__(self, "tags", tuple(self.tags))
        # Naive datetimes are taken as local time.
        for name in ("created_at", "due_date", "completed_at"):
            ts = getattr(self, name)
            if ts is not None and ts.tzinfo is None:
                object.__setattr__(self, name, ts.astimezone())

    # ---- derived predicates (time is always passed in) ----

    def is_overdue(self, now: datetime) -> bool:
        if self.due_date is None or self.status == TaskStatus.COMPLETED:
            return False
        return self.due_date < now

    def is_due_today(self, now: datetime) -> bool:
        if self.due_date is None:
            return False
        return _calendar_day(self.due_date, now) == now.date()

    def is_due_tomorrow(self, now: datetime) -> bool:
        if self.due_date is None:
            return False
        tomorrow = now + timedelta(days=1)
        return _calendar_day(self.due_date, tomorrow) == tomorrow.date()

    def time_until_due(self, now: datetime) -> timedelta | None:
        if self.due_date is None:
            return None
        return self.due_date - now


_FIELD_NAMES = frozenset(f.name for f in dataclasses.fields(Task))


def with_changes(task: Task, changes: Mapping[str, Any] | None = None, **kwargs: Any) -> Task:
    """
    Return a copy of `task` where only the named fields are replaced.

    Keys present in `changes` (or passed as keywords) override even when the
    value is None, which is how optional fields get cleared.
    """
    merged: dict[str, Any] = dict(changes or {})
    merged.update(kwargs)

    unknown = set(merged) - _FIELD_NAMES
    if unknown:
        raise TypeError(f"unknown Task field(s): {', '.join(sorted(unknown))}")

    return dataclasses.replace(task, **merged)


# ---- serialization ----


def _ts_to_str(ts: datetime | None) -> str | None:
    return ts.isoformat() if ts is not None else None


def _str_to_ts(raw: Any, *, field_name: str) -> datetime | None:
    if raw is None:
        return None
    try:
        ts = datetime.fromisoformat(str(raw))
    except ValueError as e:
        raise MalformedTaskRecord(f"bad timestamp in {field_name}: {raw!r}") from e
    # Legacy records may carry naive timestamps; treat them as local time.
    if ts.tzinfo is None:
        ts = ts.astimezone()
    return ts


def _non_negative_int(raw: Any) -> int:
    try:
        return max(0, int(raw or 0))
    except (TypeError, ValueError):
        return 0


def serialize(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "priority": task.priority.value,
        "status": task.status.value,
        "category": task.category.value,
        "createdAt": _ts_to_str(task.created_at),
        "dueDate": _ts_to_str(task.due_date),
        "completedAt": _ts_to_str(task.completed_at),
        "tags": list(task.tags),
        "estimatedMinutes": task.estimated_minutes,
        "actualMinutes": task.actual_minutes,
        "customColor": task.custom_color,
    }


def deserialize(record: Any) -> Task:
    """
    Build a Task from a persisted record.

    Unknown enum names fall back to medium/pending/personal so that records
    written by a newer build still load. Missing id, title or createdAt is a
    hard failure.
    """
    if not isinstance(record, Mapping):
        raise MalformedTaskRecord(f"record is not a mapping: {type(record).__name__}")

    task_id = record.get("id")
    title = record.get("title")
    if not task_id or not isinstance(task_id, str):
        raise MalformedTaskRecord("record has no id")
    if not title or not isinstance(title, str):
        raise MalformedTaskRecord(f"record {task_id} has no title")

    created_at = _str_to_ts(record.get("createdAt"), field_name="createdAt")
    if created_at is None:
        raise MalformedTaskRecord(f"record {task_id} has no createdAt")

    raw_tags = record.get("tags") or []
    tags = tuple(str(t) for t in raw_tags) if isinstance(raw_tags, list | tuple) else ()

    raw_color = record.get("customColor")
    try:
        custom_color = int(raw_color) if raw_color is not None else None
    except (TypeError, ValueError):
        custom_color = None

    return Task(
        id=task_id,
        title=title,
        created_at=created_at,
        description=str(record.get("description") or ""),
        priority=TaskPriority.from_name(record.get("priority")),
        status=TaskStatus.from_name(record.get("status")),
        category=TaskCategory.from_name(record.get("category")),
        due_date=_str_to_ts(record.get("dueDate"), field_name="dueDate"),
        completed_at=_str_to_ts(record.get("completedAt"), field_name="completedAt"),
        tags=tags,
        estimated_minutes=_non_negative_int(record.get("estimatedMinutes")),
        actual_minutes=_non_negative_int(record.get("actualMinutes")),
        custom_color=custom_color,
    )
