# tests/test_task_models.py

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from tasktrack.tasks.task_models import (
    MalformedTaskRecord,
    Task,
    TaskCategory,
    TaskPriority,
    TaskStatus,
    deserialize,
    serialize,
    with_changes,
)

from .conftest import NOW


def _full_task() -> Task:
    return Task(
        id="t1",
        title="Write report",
        created_at=NOW - timedelta(days=2),
        description="Quarterly numbers",
        priority=TaskPriority.URGENT,
        status=TaskStatus.IN_PROGRESS,
        category=TaskCategory.WORK,
        due_date=NOW + timedelta(hours=5),
        completed_at=NOW - timedelta(hours=1),
        tags=["finance", "q3"],
        estimated_minutes=90,
        actual_minutes=30,
        custom_color=0xFF2196F3,
    )


def test_serialize_uses_symbolic_names_and_iso_timestamps() -> None:
    task = _full_task()
    record = serialize(task)

    assert record["priority"] == "urgent"
    assert record["status"] == "inProgress"
    assert record["category"] == "work"
    assert record["createdAt"] == task.created_at.isoformat()
    assert record["dueDate"] == task.due_date.isoformat()
    assert record["tags"] == ["finance", "q3"]
    assert record["estimatedMinutes"] == 90
    assert record["actualMinutes"] == 30
    assert record["customColor"] == 0xFF2196F3


def test_serialize_marks_unset_optionals_as_none() -> None:
    record = serialize(Task(id="t2", title="Plain", created_at=NOW))

    assert record["dueDate"] is None
    assert record["completedAt"] is None
    assert record["customColor"] is None
    assert record["tags"] == []
    assert record["description"] == ""


def test_round_trip_preserves_every_field() -> None:
    task = _full_task()
    assert deserialize(serialize(task)) == task

    plain = Task(id="t2", title="Plain", created_at=NOW)
    assert deserialize(serialize(plain)) == plain


def test_round_trip_keeps_non_utc_offsets() -> None:
    tz = timezone(timedelta(hours=3))
    task = Task(id="t3", title="Offset", created_at=datetime(2026, 1, 2, 3, 4, 5, 678, tzinfo=tz))
    back = deserialize(serialize(task))
    assert back == task
    assert back.created_at.utcoffset() == timedelta(hours=3)


def test_unknown_enum_names_fall_back_to_defaults() -> None:
    record = serialize(_full_task())
    record["priority"] = "critical"
    record["status"] = "archived"
    record["category"] = "hobby"

    task = deserialize(record)
    assert task.priority == TaskPriority.MEDIUM
    assert task.status == TaskStatus.PENDING
    assert task.category == TaskCategory.PERSONAL


def test_missing_optional_fields_use_defaults() -> None:
    task = deserialize({"id": "x", "title": "Minimal", "createdAt": NOW.isoformat()})

    assert task.description == ""
    assert task.tags == ()
    assert task.estimated_minutes == 0
    assert task.actual_minutes == 0
    assert task.priority == TaskPriority.MEDIUM
    assert task.status == TaskStatus.PENDING
    assert task.category == TaskCategory.PERSONAL
    assert task.due_date is None


def test_negative_minutes_are_clamped() -> None:
    task = deserialize(
        {"id": "x", "title": "T", "createdAt": NOW.isoformat(), "estimatedMinutes": -5, "actualMinutes": "7"}
    )
    assert task.estimated_minutes == 0
    assert task.actual_minutes == 7


@pytest.mark.parametrize(
    "record",
    [
        {"title": "No id", "createdAt": NOW.isoformat()},
        {"id": "x", "createdAt": NOW.isoformat()},
        {"id": "x", "title": "", "createdAt": NOW.isoformat()},
        {"id": "x", "title": "No created"},
        {"id": "x", "title": "Bad due", "createdAt": NOW.isoformat(), "dueDate": "tomorrow-ish"},
        ["not", "a", "mapping"],
    ],
)
def test_malformed_records_raise(record) -> None:
    with pytest.raises(MalformedTaskRecord):
        deserialize(record)


def test_naive_legacy_timestamps_become_aware() -> None:
    task = deserialize({"id": "x", "title": "Legacy", "createdAt": "2024-05-01T10:00:00.000"})
    assert task.created_at.tzinfo is not None


def test_whitespace_title_is_kept() -> None:
    task = deserialize({"id": "x", "title": "  ", "createdAt": NOW.isoformat()})
    assert task.title == "  "


def test_naive_datetimes_are_normalized_to_local_time() -> None:
    naive = datetime(2026, 1, 1, 9, 0)
    task = Task(id="a", title="x", created_at=naive, due_date=naive, completed_at=naive)

    assert task.created_at.tzinfo is not None
    assert task.due_date.tzinfo is not None
    assert task.completed_at.tzinfo is not None
    assert task.created_at == naive.astimezone()
    assert deserialize(serialize(task)) == task

    changed = with_changes(task, due_date=datetime(2026, 1, 2, 9, 0))
    assert changed.due_date.tzinfo is not None


def test_task_rejects_invalid_values() -> None:
    with pytest.raises(ValueError):
        Task(id="", title="t", created_at=NOW)
    with pytest.raises(ValueError):
        Task(id="a", title="", created_at=NOW)
    with pytest.raises(ValueError):
        Task(id="a", title="t", created_at=NOW, estimated_minutes=-1)


def test_with_changes_replaces_only_named_fields() -> None:
    task = _full_task()
    changed = with_changes(task, {"title": "Renamed"}, priority=TaskPriority.LOW)

    assert changed.id == task.id
    assert changed.title == "Renamed"
    assert changed.priority == TaskPriority.LOW
    assert changed.due_date == task.due_date
    assert changed.tags == task.tags
    # input untouched
    assert task.title == "Write report"
    assert task.priority == TaskPriority.URGENT


def test_with_changes_explicit_none_clears_optional() -> None:
    changed = with_changes(_full_task(), completed_at=None, due_date=None)
    assert changed.completed_at is None
    assert changed.due_date is None


def test_with_changes_rejects_unknown_fields() -> None:
    with pytest.raises(TypeError):
        with_changes(_full_task(), colour=1)


def test_tags_are_stored_as_tuple() -> None:
    task = Task(id="a", title="t", created_at=NOW, tags=["x", "y"])
    assert task.tags == ("x", "y")


def test_is_overdue() -> None:
    past = Task(id="a", title="t", created_at=NOW, due_date=NOW - timedelta(minutes=1))
    assert past.is_overdue(NOW)
    assert not with_changes(past, status=TaskStatus.COMPLETED).is_overdue(NOW)
    # cancelled tasks still count
    assert with_changes(past, status=TaskStatus.CANCELLED).is_overdue(NOW)

    exactly_now = Task(id="b", title="t", created_at=NOW, due_date=NOW)
    assert not exactly_now.is_overdue(NOW)
    assert not Task(id="c", title="t", created_at=NOW).is_overdue(NOW)


def test_due_today_and_tomorrow_ignore_time_of_day_and_status() -> None:
    early = Task(id="a", title="t", created_at=NOW, due_date=datetime(2026, 10, 18, 0, 5, tzinfo=UTC))
    late = Task(
        id="b",
        title="t",
        created_at=NOW,
        due_date=datetime(2026, 10, 18, 23, 55, tzinfo=UTC),
        status=TaskStatus.COMPLETED,
    )
    tomorrow = Task(id="c", title="t", created_at=NOW, due_date=datetime(2026, 10, 19, 8, 0, tzinfo=UTC))

    assert early.is_due_today(NOW)
    assert late.is_due_today(NOW)
    assert not tomorrow.is_due_today(NOW)
    assert tomorrow.is_due_tomorrow(NOW)
    assert not early.is_due_tomorrow(NOW)


def test_due_today_compares_days_in_callers_timezone() -> None:
    # 2026-10-18 23:30 at UTC-5 is already 2026-10-19 in UTC.
    minus5 = timezone(timedelta(hours=-5))
    now = datetime(2026, 10, 18, 20, 0, tzinfo=minus5)
    task = Task(id="a", title="t", created_at=now, due_date=datetime(2026, 10, 19, 4, 30, tzinfo=UTC))
    assert task.is_due_today(now)


def test_time_until_due_is_signed() -> None:
    task = Task(id="a", title="t", created_at=NOW, due_date=NOW + timedelta(hours=2))
    assert task.time_until_due(NOW) == timedelta(hours=2)
    assert task.time_until_due(NOW + timedelta(hours=3)) == timedelta(hours=-1)
    assert Task(id="b", title="t", created_at=NOW).time_until_due(NOW) is None
