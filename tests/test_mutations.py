# tests/test_mutations.py

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio

from taskboard.core.errors import AlertChannel, AlertKind, RemoteError
from taskboard.tasks.mutations import (
    NO_EFFECT_MESSAGE,
    MutationCoordinator,
    MutationOutcome,
    NewTaskDraft,
    normalize_tags,
)
from taskboard.tasks.task_models import Member, Priority

from .fakes import FakeClock


@pytest_asyncio.fixture()
async def loaded_store(store, source, alerts):
    await store.reload("p1", source, alerts)
    return store


@pytest.fixture()
def coordinator(loaded_store, source, alerts, now) -> MutationCoordinator:
    return MutationCoordinator(
        loaded_store,
        source,
        alerts,
        user_id="u1",
        user_email="me@example.com",
        clock=FakeClock(now),
    )


@pytest.mark.asyncio
async def test_completing_sets_timestamp_from_clock(coordinator, loaded_store, now) -> None:
    outcome = await coordinator.toggle_completion(loaded_store.get("t1"))

    assert outcome is MutationOutcome.APPLIED
    task = loaded_store.get("t1")
    assert task.completed is True
    assert task.completed_at == now
    assert task.updated_by == "u1"


@pytest.mark.asyncio
async def test_reopening_clears_timestamp(coordinator, loaded_store) -> None:
    outcome = await coordinator.toggle_completion(loaded_store.get("t3"))

    assert outcome is MutationOutcome.APPLIED
    assert loaded_store.get("t3").completed is False
    assert loaded_store.get("t3").completed_at is None


@pytest.mark.asyncio
async def test_no_effect_keeps_task_and_alerts(coordinator, loaded_store, source, alerts) -> None:
    before = loaded_store.get("t1")
    source.no_effect = True

    outcome = await coordinator.toggle_completion(before)

    assert outcome is MutationOutcome.NO_EFFECT
    assert loaded_store.get("t1") == before
    alert = alerts.get(AlertChannel.TASKS)
    assert alert.kind is AlertKind.NO_EFFECT
    assert alert.message == NO_EFFECT_MESSAGE


@pytest.mark.asyncio
async def test_failure_leaves_store_untouched(coordinator, loaded_store, source, alerts) -> None:
    before = loaded_store.tasks
    source.fail = RemoteError("network down")

    outcome = await coordinator.change_priority(loaded_store.get("t2"), Priority.HIGH)

    assert outcome is MutationOutcome.FAILED
    assert loaded_store.tasks == before
    assert alerts.message(AlertChannel.TASKS) == "network down"
    assert not coordinator.pending_task_ids


@pytest.mark.asyncio
async def test_pending_id_exposed_while_in_flight(coordinator, loaded_store, source) -> None:
    gate = asyncio.Event()
    original = source.update_task
    seen: list[bool] = []

    async def slow_update(*args, **kwargs):
        seen.append(coordinator.is_pending("t2"))
        await gate.wait()
        return await original(*args, **kwargs)

    source.update_task = slow_update
    pending = asyncio.create_task(coordinator.change_effort(loaded_store.get("t2"), "l"))
    await asyncio.sleep(0)
    assert coordinator.pending_task_ids == {"t2"}

    gate.set()
    assert await pending is MutationOutcome.APPLIED
    assert seen == [True]
    assert not coordinator.is_pending("t2")


@pytest.mark.asyncio
async def test_overlapping_writes_each_stay_pending_until_done(coordinator, loaded_store, source) -> None:
    gates = {"t2": asyncio.Event(), "t3": asyncio.Event()}
    original = source.update_task

    async def gated_update(task_id, *args, **kwargs):
        await gates[task_id].wait()
        return await original(task_id, *args, **kwargs)

    source.update_task = gated_update
    first = asyncio.create_task(coordinator.change_priority(loaded_store.get("t2"), Priority.HIGH))
    second = asyncio.create_task(coordinator.change_priority(loaded_store.get("t3"), Priority.LOW))
    await asyncio.sleep(0)
    assert coordinator.pending_task_ids == {"t2", "t3"}

    gates["t2"].set()
    assert await first is MutationOutcome.APPLIED
    assert not coordinator.is_pending("t2")
    assert coordinator.is_pending("t3")

    gates["t3"].set()
    assert await second is MutationOutcome.APPLIED
    assert not coordinator.pending_task_ids

@pytest.mark.asyncio
async def test_writes_are_scoped_by_project(coordinator, loaded_store, source) -> None:
    await coordinator.change_epic(loaded_store.get("t2"), "  Docs  ")

    name, (task_id, project_id, patch) = source.calls[-1]
    assert (name, task_id, project_id) == ("update_task", "t2", "p1")
    assert patch == {"epic": "Docs", "updated_by": "u1"}


@pytest.mark.asyncio
async def test_reassign_to_unknown_member_unassigns(coordinator, loaded_store) -> None:
    members = [Member(member_id="u1", label="me"), Member(member_id="u2", label="ana")]

    assert await coordinator.reassign(loaded_store.get("t1"), "u2", members) is MutationOutcome.APPLIED
    assert loaded_store.get("t1").assigned_to == "u2"

    await coordinator.reassign(loaded_store.get("t1"), "ghost", members)
    assert loaded_store.get("t1").assigned_to is None
    assert coordinator.assigning_task_id is None


@pytest.mark.asyncio
async def test_tags_and_due_date(coordinator, loaded_store, alerts) -> None:
    await coordinator.change_tags(loaded_store.get("t4"), "Bug, ui ,bug,")
    assert loaded_store.get("t4").tags == ("bug", "ui")

    await coordinator.change_due_date(loaded_store.get("t4"), "2026-04-01")
    assert loaded_store.get("t4").due_date.date().isoformat() == "2026-04-01"

    await coordinator.change_due_date(loaded_store.get("t4"), "")
    assert loaded_store.get("t4").due_date is None

    assert await coordinator.change_due_date(loaded_store.get("t4"), "soon") is MutationOutcome.FAILED
    assert "Invalid date" in alerts.message(AlertChannel.TASKS)


@pytest.mark.asyncio
async def test_delete_removes_only_after_confirmation(coordinator, loaded_store, source, alerts) -> None:
    source.no_effect = True
    assert await coordinator.delete_task(loaded_store.get("t2")) is MutationOutcome.NO_EFFECT
    assert "t2" in loaded_store
    assert alerts.get(AlertChannel.TASKS).kind is AlertKind.NO_EFFECT

    source.no_effect = False
    assert await coordinator.delete_task(loaded_store.get("t2")) is MutationOutcome.APPLIED
    assert "t2" not in loaded_store


@pytest.mark.asyncio
async def test_create_prepends_confirmed_task(coordinator, loaded_store, source) -> None:
    created = await coordinator.create_task(NewTaskDraft(title="  New one ", due_date="2026-03-12", priority=Priority.HIGH))

    assert created is not None
    assert loaded_store.tasks[0] == created
    payload = source.calls[-1][1]
    assert payload["title"] == "New one"
    assert payload["owner_email"] == "me@example.com"
    assert payload["created_by"] == "u1"
    assert payload["priority"] == "high"
    assert coordinator.adding_task is False


@pytest.mark.asyncio
async def test_create_retries_without_owner_email(coordinator, loaded_store, source) -> None:
    source.reject_insert_fields = {"owner_email"}

    created = await coordinator.create_task(NewTaskDraft(title="Legacy"))

    assert created is not None
    inserts = [payload for name, payload in source.calls if name == "insert_task"]
    assert len(inserts) == 2
    assert "owner_email" not in inserts[1]
    assert loaded_store.get(created.id) == created


@pytest.mark.asyncio
async def test_create_requires_title(coordinator, source) -> None:
    assert await coordinator.create_task(NewTaskDraft(title="   ")) is None
    assert "insert_task" not in source.call_names()


@pytest.mark.asyncio
async def test_bulk_completion_replaces_confirmed(coordinator, loaded_store, now) -> None:
    outcome = await coordinator.bulk_set_completion(["t1", "t2"], True)

    assert outcome is MutationOutcome.APPLIED
    assert all(loaded_store.get(i).completed for i in ("t1", "t2"))
    assert loaded_store.get("t1").completed_at == now


@pytest.mark.asyncio
async def test_bulk_without_matches_reports_no_effect(coordinator, loaded_store, source) -> None:
    source.no_effect = True
    before = loaded_store.tasks

    assert await coordinator.bulk_set_priority(["t1"], "low") is MutationOutcome.NO_EFFECT
    assert loaded_store.tasks == before
    assert await coordinator.bulk_set_priority([], "low") is MutationOutcome.SKIPPED


def test_normalize_tags() -> None:
    assert normalize_tags(None) == []
    assert normalize_tags(["A", " a", "b "]) == ["a", "b"]
