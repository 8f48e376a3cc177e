# tests/test_task_store_async.py

from __future__ import annotations

import asyncio
import json
import logging
import threading

import pytest

from tasktrack.tasks.task_models import serialize
from tasktrack.tasks.task_store import TaskStore

from .fakes import ChangeCounter, InMemoryKeyValueStore


def _stored_ids(kv: InMemoryKeyValueStore) -> list[str]:
    return [r["id"] for r in json.loads(kv.data["tasks"])]


@pytest.mark.asyncio
async def test_autoload_runs_in_background_inside_event_loop(kv, clock, make_task) -> None:
    kv.data["tasks"] = json.dumps([serialize(make_task("a")), serialize(make_task("b"))])
    counter = ChangeCounter()

    store = TaskStore(kv, clock=clock)
    store.subscribe(counter)
    assert not store.is_loaded

    await store.wait_until_loaded()

    assert store.is_loaded
    assert [t.id for t in store.tasks] == ["a", "b"]
    assert counter.calls == 1


@pytest.mark.asyncio
async def test_mutation_is_visible_before_write_completes(kv, clock, make_task) -> None:
    store = TaskStore(kv, clock=clock)
    await store.wait_until_loaded()

    kv.gate = threading.Event()
    store.add_task(make_task("a"))

    # memory and view are already updated while the write is blocked
    assert [t.id for t in store.tasks] == ["a"]
    assert [t.id for t in store.filtered_tasks] == ["a"]

    kv.gate.set()
    await store.flush()
    assert _stored_ids(kv) == ["a"]


@pytest.mark.asyncio
async def test_writes_follow_mutation_order_and_last_write_is_current(kv, clock, make_task) -> None:
    store = TaskStore(kv, clock=clock)
    await store.wait_until_loaded()

    kv.gate = threading.Event()
    store.add_task(make_task("a"))
    await asyncio.sleep(0.01)  # first write is now in flight and blocked
    store.add_task(make_task("b"))
    store.toggle_status("a")
    store.delete_task("b")
    store.add_task(make_task("c"))

    kv.gate.set()
    await store.flush()

    # the in-flight write plus one coalesced write with the final state
    assert 1 <= len(kv.writes) <= 2
    assert _stored_ids(kv) == ["a", "c"]
    stored_a = json.loads(kv.data["tasks"])[0]
    assert stored_a["status"] == "inProgress"


@pytest.mark.asyncio
async def test_write_failure_is_logged_not_raised(kv, clock, make_task, caplog) -> None:
    store = TaskStore(kv, clock=clock)
    await store.wait_until_loaded()
    kv.fail_writes = True

    with caplog.at_level(logging.ERROR, logger="tasktrack.tasks.task_store"):
        store.add_task(make_task("a"))
        await store.flush()

    assert [t.id for t in store.tasks] == ["a"]
    assert "Failed to persist" in caplog.text

    # storage recovers on the next mutation
    kv.fail_writes = False
    store.add_task(make_task("b"))
    await store.flush()
    assert _stored_ids(kv) == ["a", "b"]


@pytest.mark.asyncio
async def test_mutations_before_load_do_not_clobber_storage(clock, make_task) -> None:
    kv = InMemoryKeyValueStore()
    kv.data["tasks"] = json.dumps(
        [serialize(make_task("stored-1")), serialize(make_task("stored-2")), serialize(make_task("dup", "old"))]
    )

    store = TaskStore(kv, clock=clock)
    # load task has not run yet
    store.add_task(make_task("early"))
    store.add_task(make_task("dup", "new"))
    store.delete_task("stored-2")
    assert kv.writes == []

    await store.flush()

    assert [t.id for t in store.tasks] == ["stored-1", "early", "dup"]
    assert store.get_task("dup").title == "new"
    assert _stored_ids(kv) == ["stored-1", "early", "dup"]


@pytest.mark.asyncio
async def test_explicit_load_without_autoload(kv, clock, make_task) -> None:
    kv.data["tasks"] = json.dumps([serialize(make_task("a"))])

    store = TaskStore(kv, clock=clock, autoload=False)
    assert not store.is_loaded
    assert kv.reads == 0

    await store.load()
    await store.load()  # second call is ignored

    assert kv.reads == 1
    assert [t.id for t in store.tasks] == ["a"]


@pytest.mark.asyncio
async def test_close_flushes_and_drops_listeners(kv, clock, make_task) -> None:
    store = TaskStore(kv, clock=clock)
    counter = ChangeCounter()
    store.subscribe(counter)
    await store.wait_until_loaded()

    store.add_task(make_task("a"))
    await store.close()

    assert _stored_ids(kv) == ["a"]
    calls = counter.calls
    store.toggle_status("a")
    assert counter.calls == calls
    await store.flush()


@pytest.mark.asyncio
async def test_flush_loads_unloaded_store_before_writing(kv, clock, make_task, caplog) -> None:
    kv.data["tasks"] = json.dumps([serialize(make_task("stored"))])
    store = TaskStore(kv, clock=clock, autoload=False)

    with caplog.at_level(logging.WARNING, logger="tasktrack.tasks.task_store"):
        store.add_task(make_task("a"))
        store.add_task(make_task("b"))

    assert kv.writes == []
    assert caplog.text.count("not loaded yet") == 1

    await store.flush()

    assert store.is_loaded
    assert [t.id for t in store.tasks] == ["stored", "a", "b"]
    assert _stored_ids(kv) == ["stored", "a", "b"]
