# tests/test_task_store.py

from __future__ import annotations

import asyncio

import pytest

from taskboard.core.errors import AlertChannel, RemoteError, SchemaMismatchError
from taskboard.tasks.task_models import ChangeKind, FetchStrategy, TaskChange
from taskboard.tasks.task_store import TaskStore, fetch_tasks

from .fakes import FakeTaskSource, make_task


@pytest.mark.asyncio
async def test_reload_replaces_collection(store, source, alerts) -> None:
    seen = []
    store.add_listener(lambda tasks: seen.append(len(tasks)))

    ok = await store.reload("p1", source, alerts)

    assert ok is True
    assert store.project_id == "p1"
    assert {t.id for t in store} == {"t1", "t2", "t3", "t4"}
    assert seen[-1] == 4
    assert not alerts


@pytest.mark.asyncio
async def test_reload_failure_clears_store_and_reports(store, source, alerts) -> None:
    await store.reload("p1", source, alerts)
    source.fail = RemoteError("connection refused")

    ok = await store.reload("p1", source, alerts)

    assert ok is False
    assert len(store) == 0
    assert alerts.message(AlertChannel.TASKS) == "connection refused"


@pytest.mark.asyncio
async def test_fetch_falls_back_to_reduced_fields() -> None:
    source = FakeTaskSource([make_task("t1")])
    source.reject = {FetchStrategy.FULL}

    tasks = await fetch_tasks(source, "p1")

    assert [t.id for t in tasks] == ["t1"]
    assert [call[1][1] for call in source.calls] == [FetchStrategy.FULL, FetchStrategy.REDUCED]


@pytest.mark.asyncio
async def test_fetch_gives_up_after_last_strategy(store, alerts) -> None:
    source = FakeTaskSource([make_task("t1")])
    source.reject = {FetchStrategy.FULL, FetchStrategy.REDUCED}

    with pytest.raises(SchemaMismatchError):
        await fetch_tasks(source, "p1")

    assert await store.reload("p1", source, alerts) is False
    assert alerts.get(AlertChannel.TASKS) is not None


@pytest.mark.asyncio
async def test_fetch_without_strategies_raises_remote_error() -> None:
    source = FakeTaskSource([make_task("t1")])

    with pytest.raises(RemoteError, match="no fetch strategy"):
        await fetch_tasks(source, "p1", strategies=())

    assert not source.calls


@pytest.mark.asyncio
async def test_stale_reload_is_discarded(store, alerts) -> None:
    source = FakeTaskSource([make_task("a1", project_id="pa"), make_task("b1", project_id="pb")])
    gate = asyncio.Event()
    source.hold["pa"] = gate

    slow = asyncio.create_task(store.reload("pa", source, alerts))
    await asyncio.sleep(0)
    await store.reload("pb", source, alerts)
    gate.set()
    assert await slow is False

    assert store.project_id == "pb"
    assert [t.id for t in store] == ["b1"]


def test_duplicate_insert_keeps_one_copy() -> None:
    store = TaskStore()
    store.clear("p1")
    change = TaskChange(ChangeKind.INSERT, make_task("t9"))

    assert store.apply_remote_event(change) is True
    assert store.apply_remote_event(change) is False

    assert [t.id for t in store] == ["t9"]


def test_insert_prepends_update_replaces_delete_removes() -> None:
    store = TaskStore()
    store.clear("p1")
    store.apply_remote_event(TaskChange(ChangeKind.INSERT, make_task("a")))
    store.apply_remote_event(TaskChange(ChangeKind.INSERT, make_task("b")))
    assert [t.id for t in store] == ["b", "a"]

    store.apply_remote_event(TaskChange(ChangeKind.UPDATE, make_task("a", title="renamed", completed=True)))
    a = store.get("a")
    assert a is not None and a.title == "renamed" and a.completed is True
    assert [t.id for t in store] == ["b", "a"]

    store.apply_remote_event(TaskChange(ChangeKind.DELETE, make_task("b")))
    assert [t.id for t in store] == ["a"]


def test_events_for_other_projects_or_no_project_are_ignored() -> None:
    store = TaskStore()
    assert store.apply_remote_event(TaskChange(ChangeKind.INSERT, make_task("x"))) is False
    assert len(store) == 0

    store.clear("p1")
    assert store.apply_remote_event(TaskChange(ChangeKind.INSERT, make_task("y", project_id="p2"))) is False
    assert len(store) == 0


def test_update_and_delete_of_unknown_task_change_nothing() -> None:
    store = TaskStore()
    store.clear("p1")
    calls = []
    store.add_listener(lambda tasks: calls.append(tasks))

    assert store.apply_remote_event(TaskChange(ChangeKind.UPDATE, make_task("ghost"))) is False
    assert store.apply_remote_event(TaskChange(ChangeKind.DELETE, make_task("ghost"))) is False
    assert calls == []


def test_listener_failure_does_not_break_the_store() -> None:
    store = TaskStore()
    store.clear("p1")

    def boom(_tasks) -> None:
        raise RuntimeError("listener bug")

    store.add_listener(boom)
    assert store.prepend_task(make_task("t1")) is True
    assert "t1" in store
