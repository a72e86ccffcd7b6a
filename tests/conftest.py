# tests/conftest.py

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from taskboard.core.errors import Alerts
from taskboard.core.session import TaskViewSession
from taskboard.tasks.task_models import Member, Priority, Subtask, Task
from taskboard.tasks.task_store import TaskStore

from .fakes import NOW, FakeClock, FakeHost, FakeMembers, FakeSlot, FakeSubtaskSource, FakeTaskSource, make_task


@pytest.fixture()
def now() -> datetime:
    """Fixed UTC noon; every time-dependent computation in the tests is relative to it."""
    return NOW


@pytest.fixture()
def alerts() -> Alerts:
    return Alerts()


@pytest.fixture()
def tasks(now: datetime) -> list[Task]:
    day = timedelta(days=1)
    return [
        make_task("t1", title="Fix login", priority=Priority.HIGH, due_date=now - day, inserted_at=now - 3 * day),
        make_task("t2", title="Write docs", due_date=now + 2 * day, inserted_at=now - 4 * day, assigned_to="u1"),
        make_task(
            "t3",
            title="Ship release",
            completed=True,
            completed_at=now - day,
            due_date=now,
            inserted_at=now - 5 * day,
        ),
        make_task("t4", title="Someday", inserted_at=now - 6 * day, tags=("bug",)),
    ]


@pytest.fixture()
def source(tasks: list[Task]) -> FakeTaskSource:
    return FakeTaskSource(tasks)


@pytest.fixture()
def subtask_source() -> FakeSubtaskSource:
    return FakeSubtaskSource(
        [
            Subtask(id="s1", task_id="t1", title="Reproduce", completed=True),
            Subtask(id="s2", task_id="t1", title="Patch"),
            Subtask(id="s3", task_id="t2", title="Outline"),
        ]
    )


@pytest.fixture()
def members() -> FakeMembers:
    return FakeMembers(
        {
            "p1": [
                Member(member_id="u1", label="me@example.com", role="owner"),
                Member(member_id="u2", label="ana@example.com"),
            ]
        }
    )


@pytest.fixture()
def slot() -> FakeSlot:
    return FakeSlot()


@pytest.fixture()
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture()
def store() -> TaskStore:
    return TaskStore()


@pytest.fixture()
def session(
    source: FakeTaskSource,
    subtask_source: FakeSubtaskSource,
    members: FakeMembers,
    slot: FakeSlot,
    host: FakeHost,
    now: datetime,
) -> TaskViewSession:
    """Session over fakes, no push feed, acting as user u1 with a frozen clock."""
    return TaskViewSession(
        tasks=source,
        subtasks=subtask_source,
        members=members,
        prefs_slot=slot,
        host=host,
        user_id="u1",
        user_email="me@example.com",
        clock=FakeClock(now),
    )
