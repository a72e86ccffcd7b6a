# src/taskboard/remote/memory_backend.py

"""
Offline backend.

Keeps every table in process memory and implements the same ports as the REST
backend, plus a push-event feed: each confirmed write is broadcast to the
subscribers of the task's project, the way a realtime channel would echo it.

Used when no REST URL is configured (demo mode) and by the tests.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

from ..core.errors import SchemaMismatchError
from ..core.ports import TaskPatch
from ..tasks.dates import format_timestamp
from ..tasks.task_models import ChangeKind, FetchStrategy, Member, Subtask, Task, TaskChange

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryBackend:
    def __init__(self, *, columns: Iterable[str] | None = None) -> None:
        """
        `columns` restricts the task fields this backend "knows"; a fetch or
        insert touching any other field fails with SchemaMismatchError, like an
        unmigrated database would.
        """
        self._columns = frozenset(columns) if columns is not None else None
        self._tasks: dict[str, dict[str, Any]] = {}
        self._order: list[str] = []
        self._subtasks: dict[str, dict[str, Any]] = {}
        self._members: dict[str, list[Member]] = {}
        self._subscribers: dict[str, list[asyncio.Queue[TaskChange]]] = {}

    # ---- seeding / inspection ----

    def add_task(self, task: Task) -> Task:
        self._tasks[task.id] = task.to_record()
        if task.id not in self._order:
            self._order.insert(0, task.id)
        return task

    def add_subtask(self, subtask: Subtask) -> Subtask:
        self._subtasks[subtask.id] = subtask.to_record()
        return subtask

    def set_members(self, project_id: str, members: Iterable[Member]) -> None:
        self._members[project_id] = list(members)

    def task_record(self, task_id: str) -> dict[str, Any] | None:
        rec = self._tasks.get(task_id)
        return dict(rec) if rec is not None else None

    def subscriber_count(self, project_id: str) -> int:
        return len(self._subscribers.get(project_id, []))

    # ---- push feed ----

    async def subscribe(self, project_id: str) -> AsyncIterator[TaskChange]:
        queue: asyncio.Queue[TaskChange] = asyncio.Queue()
        self._subscribers.setdefault(project_id, []).append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            subs = self._subscribers.get(project_id, [])
            if queue in subs:
                subs.remove(queue)

    def publish(self, change: TaskChange, project_id: str | None = None) -> None:
        target = project_id or change.task.project_id
        if not target:
            return
        for queue in list(self._subscribers.get(target, [])):
            queue.put_nowait(change)

    # ---- tasks ----

    def _check_columns(self, names: Iterable[str]) -> None:
        if self._columns is None:
            return
        unknown = sorted(set(names) - self._columns)
        if unknown:
            raise SchemaMismatchError(f'column tasks.{unknown[0]} does not exist', code="42703")

    async def list_tasks(self, project_id: str, *, strategy: FetchStrategy = FetchStrategy.FULL) -> list[Task]:
        self._check_columns(strategy.columns)
        out = []
        for task_id in self._order:
            rec = self._tasks[task_id]
            if rec.get("project_id") != project_id:
                continue
            out.append(Task.from_record({k: rec.get(k) for k in strategy.columns}))
        return out

    async def insert_task(self, payload: TaskPatch) -> Task | None:
        self._check_columns(payload)
        now = format_timestamp(_utcnow())
        rec = {"id": _new_id(), "completed": False, "inserted_at": now, "updated_at": now, "tags": []}
        rec.update(payload)
        task = Task.from_record(rec)
        self.add_task(task)
        self.publish(TaskChange(ChangeKind.INSERT, task))
        return task

    def _patch(self, task_id: str, project_id: str, patch: TaskPatch) -> Task | None:
        rec = self._tasks.get(task_id)
        if rec is None or rec.get("project_id") != project_id:
            return None
        rec.update(patch)
        rec["updated_at"] = format_timestamp(_utcnow())
        task = Task.from_record(rec)
        self._tasks[task_id] = task.to_record()
        self.publish(TaskChange(ChangeKind.UPDATE, task))
        return task

    async def update_task(self, task_id: str, project_id: str, patch: TaskPatch) -> Task | None:
        self._check_columns(patch)
        return self._patch(task_id, project_id, patch)

    async def update_tasks(self, task_ids: Iterable[str], project_id: str, patch: TaskPatch) -> list[Task]:
        self._check_columns(patch)
        out = []
        for task_id in task_ids:
            task = self._patch(task_id, project_id, patch)
            if task is not None:
                out.append(task)
        return out

    async def delete_task(self, task_id: str, project_id: str) -> bool:
        rec = self._tasks.get(task_id)
        if rec is None or rec.get("project_id") != project_id:
            return False
        del self._tasks[task_id]
        self._order.remove(task_id)
        for sid in [sid for sid, s in self._subtasks.items() if s["task_id"] == task_id]:
            del self._subtasks[sid]
        self.publish(TaskChange(ChangeKind.DELETE, Task(id=task_id, title="", project_id=project_id)))
        return True

    # ---- subtasks ----

    async def list_subtasks(self, task_id: str) -> list[Subtask]:
        items = [Subtask.from_record(s) for s in self._subtasks.values() if s["task_id"] == task_id]
        items.sort(key=lambda s: s.created_at or datetime.min.replace(tzinfo=UTC))
        return items

    async def list_subtask_flags(self, project_id: str, *, limit: int = 2000) -> list[tuple[str, bool]]:
        out = []
        for s in self._subtasks.values():
            parent = self._tasks.get(s["task_id"])
            if parent is None or parent.get("project_id") != project_id:
                continue
            out.append((s["task_id"], bool(s.get("completed"))))
            if len(out) >= limit:
                break
        return out

    async def create_subtask(self, task_id: str, title: str, *, updated_by: str | None = None) -> Subtask | None:
        if task_id not in self._tasks:
            return None
        # Strictly increasing creation stamps keep insertion order stable.
        created = _utcnow() + timedelta(microseconds=len(self._subtasks))
        subtask = Subtask(
            id=_new_id(),
            task_id=task_id,
            title=title,
            created_at=created,
            updated_at=created,
            updated_by=updated_by,
        )
        return self.add_subtask(subtask)

    async def update_subtask(self, subtask_id: str, task_id: str, patch: TaskPatch) -> Subtask | None:
        rec = self._subtasks.get(subtask_id)
        if rec is None or rec["task_id"] != task_id:
            return None
        rec.update(patch)
        rec["updated_at"] = format_timestamp(_utcnow())
        return Subtask.from_record(rec)

    async def delete_subtask(self, subtask_id: str, task_id: str) -> None:
        rec = self._subtasks.get(subtask_id)
        if rec is not None and rec["task_id"] == task_id:
            del self._subtasks[subtask_id]

    # ---- members ----

    async def list_members(self, project_id: str) -> list[Member]:
        return list(self._members.get(project_id, []))


def seed_demo(backend: InMemoryBackend, project_id: str, user_id: str, *, now: datetime | None = None) -> None:
    """A small project to click around in when no backend is configured."""
    now = now or _utcnow()
    day = timedelta(days=1)

    backend.set_members(
        project_id,
        [
            Member(member_id=user_id, label="you@example.com", role="owner"),
            Member(member_id="demo-ana", label="ana@example.com"),
            Member(member_id="demo-li", label="li@example.com"),
        ],
    )

    rows = [
        ("Fix login redirect", now - day, "high", "s", "Auth", ["bug", "frontend"], "demo-ana", False),
        ("Write release notes", now + 2 * day, "medium", "s", "Release", ["docs"], user_id, False),
        ("Migrate task table", now + 9 * day, "high", "l", "Backend", ["db"], "demo-li", False),
        ("Polish kanban cards", now + 4 * day, "low", "m", "UI", ["frontend"], None, False),
        ("Triage inbox", None, "medium", "s", None, [], user_id, False),
        ("Set up CI cache", now - 3 * day, "medium", "m", "Backend", ["infra"], user_id, True),
    ]
    for i, (title, due, priority, effort, epic, tags, assignee, completed) in enumerate(rows):
        inserted = now - (len(rows) - i) * day
        task = Task.from_record(
            {
                "id": f"demo-{i + 1}",
                "title": title,
                "project_id": project_id,
                "created_by": user_id,
                "assigned_to": assignee,
                "completed": completed,
                "completed_at": format_timestamp(now - day) if completed else None,
                "inserted_at": format_timestamp(inserted),
                "updated_at": format_timestamp(inserted),
                "due_date": format_timestamp(due),
                "priority": priority,
                "effort": effort,
                "epic": epic,
                "tags": tags,
            }
        )
        backend.add_task(task)

    for j, title in enumerate(["Reproduce", "Patch", "Verify on staging"]):
        backend.add_subtask(
            Subtask(
                id=f"demo-sub-{j + 1}",
                task_id="demo-1",
                title=title,
                completed=j == 0,
                created_at=now - timedelta(minutes=10 - j),
            )
        )
    logger.info("Seeded demo project=%s tasks=%d", project_id, len(rows))
