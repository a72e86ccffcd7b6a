# src/taskboard/tasks/mutations.py

"""
Mutation coordinator.

Every task-level write is confirmation-only:

1. check that the task and the project are known
2. send the write scoped by (task id, project id)
3. a returned record replaces the task wholesale in the store
4. no returned record means the scoping predicate matched nothing: report a
   "no effect" alert (the local task stays as it is)
5. a RemoteError is reported and the store is left untouched

While a write is in flight its task id is in `pending_task_ids` (see `is_pending`),
so a view can render a spinner instead of a checkbox that might silently revert.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from ..core.errors import AlertChannel, AlertKind, Alerts, RemoteError, SchemaMismatchError
from ..core.ports import TaskPatch, TaskSource
from .dates import format_timestamp, local_now, parse_date_input
from .task_models import Effort, Member, Priority, Task
from .task_store import TaskStore

logger = logging.getLogger(__name__)

NO_EFFECT_MESSAGE = "Could not update the task. Does it still belong to you?"
NO_EFFECT_DELETE_MESSAGE = "Could not delete the task. Does it still belong to you?"


class MutationOutcome(StrEnum):
    APPLIED = "applied"
    NO_EFFECT = "no_effect"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(slots=True, frozen=True)
class NewTaskDraft:
    """What the "new task" form holds until it is submitted."""

    title: str = ""
    due_date: str = ""  # "YYYY-MM-DD", empty = none
    priority: Priority = Priority.MEDIUM
    effort: Effort = Effort.M


def normalize_tags(raw: Iterable[str] | str | None) -> list[str]:
    if raw is None:
        return []
    items = raw.split(",") if isinstance(raw, str) else list(raw)
    out: list[str] = []
    for item in items:
        tag = str(item).strip().lower()
        if tag and tag not in out:
            out.append(tag)
    return out


class MutationCoordinator:
    def __init__(
        self,
        store: TaskStore,
        source: TaskSource,
        alerts: Alerts,
        *,
        user_id: str | None,
        user_email: str | None = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._store = store
        self._source = source
        self._alerts = alerts
        self.user_id = user_id
        self.user_email = user_email
        self._clock = clock

        self._pending: Counter[str] = Counter()
        self.assigning_task_id: str | None = None
        self.adding_task = False

    @property
    def pending_task_ids(self) -> frozenset[str]:
        return frozenset(self._pending)

    def is_pending(self, task_id: str) -> bool:
        return self._pending[task_id] > 0

    # ---- single-task writes ----

    async def toggle_completion(self, task: Task) -> MutationOutcome:
        """Completion timestamp is decided here, not by the backend."""
        nxt = not task.completed
        patch: TaskPatch = {
            "completed": nxt,
            "completed_at": format_timestamp(self._clock()) if nxt else None,
        }
        return await self._write(task, patch, op="toggle_completion")

    async def reassign(self, task: Task, assignee_id: str | None, members: Sequence[Member]) -> MutationOutcome:
        """Unknown member ids (and empty input) unassign the task."""
        member = next((m for m in members if assignee_id and m.member_id == assignee_id), None)
        assigned_to = member.member_id if member else None

        self.assigning_task_id = task.id
        try:
            return await self._write(task, {"assigned_to": assigned_to}, op="reassign")
        finally:
            self.assigning_task_id = None

    async def change_priority(self, task: Task, priority: Priority | str) -> MutationOutcome:
        value = Priority.from_raw(str(priority))
        return await self._write(task, {"priority": value.value}, op="change_priority")

    async def change_effort(self, task: Task, effort: Effort | str) -> MutationOutcome:
        value = Effort.from_raw(str(effort))
        return await self._write(task, {"effort": value.value}, op="change_effort")

    async def change_epic(self, task: Task, epic: str | None) -> MutationOutcome:
        value = (epic or "").strip() or None
        return await self._write(task, {"epic": value}, op="change_epic")

    async def change_tags(self, task: Task, tags: Iterable[str] | str | None) -> MutationOutcome:
        return await self._write(task, {"tags": normalize_tags(tags)}, op="change_tags")

    async def change_due_date(self, task: Task, due: str) -> MutationOutcome:
        parsed = parse_date_input(due)
        if due and parsed is None:
            self._alerts.report(AlertChannel.TASKS, f"Invalid date: {due}")
            return MutationOutcome.FAILED
        return await self._write(task, {"due_date": format_timestamp(parsed)}, op="change_due_date")

    async def delete_task(self, task: Task) -> MutationOutcome:
        project_id = self._store.project_id
        if not task.id or not project_id:
            return MutationOutcome.SKIPPED

        self._alerts.dismiss(AlertChannel.TASKS)
        self._pending[task.id] += 1
        try:
            removed = await self._source.delete_task(task.id, project_id)
        except RemoteError as e:
            logger.warning("delete_task failed task=%s: %s", task.id, e)
            self._alerts.report(AlertChannel.TASKS, str(e))
            return MutationOutcome.FAILED
        finally:
            self._release(task.id)

        if not removed:
            logger.warning("delete_task had no effect task=%s project=%s", task.id, project_id)
            self._alerts.report(AlertChannel.TASKS, NO_EFFECT_DELETE_MESSAGE, kind=AlertKind.NO_EFFECT)
            return MutationOutcome.NO_EFFECT

        self._store.remove_task(task.id)
        return MutationOutcome.APPLIED

    # ---- creation ----

    async def create_task(self, draft: NewTaskDraft) -> Task | None:
        """
        Insert a task built from the draft and prepend the confirmed record.

        Backends without an owner_email column get a second attempt without it.
        """
        title = draft.title.strip()
        project_id = self._store.project_id
        if not title or not project_id or not self.user_id:
            return None

        due = parse_date_input(draft.due_date)
        payload: TaskPatch = {
            "title": title,
            "project_id": project_id,
            "owner_email": self.user_email,
            "created_by": self.user_id,
            "updated_by": self.user_id,
            "due_date": format_timestamp(due),
            "priority": Priority.from_raw(str(draft.priority)).value,
            "effort": Effort.from_raw(str(draft.effort)).value,
        }

        self._alerts.dismiss(AlertChannel.TASKS)
        self.adding_task = True
        try:
            try:
                created = await self._source.insert_task(payload)
            except SchemaMismatchError as e:
                logger.info("insert rejected (%s); retrying without owner_email", e)
                payload.pop("owner_email", None)
                created = await self._source.insert_task(payload)
        except RemoteError as e:
            logger.warning("create_task failed project=%s: %s", project_id, e)
            self._alerts.report(AlertChannel.TASKS, str(e))
            return None
        finally:
            self.adding_task = False

        if created is None:
            return None

        self._store.prepend_task(created)
        logger.info("created task=%s project=%s", created.id, project_id)
        return created

    # ---- bulk ----

    async def bulk_set_completion(self, task_ids: Sequence[str], completed: bool) -> MutationOutcome:
        patch: TaskPatch = {
            "completed": completed,
            "completed_at": format_timestamp(self._clock()) if completed else None,
        }
        return await self.bulk_update(task_ids, patch)

    async def bulk_set_priority(self, task_ids: Sequence[str], priority: Priority | str) -> MutationOutcome:
        if not priority:
            return MutationOutcome.SKIPPED
        return await self.bulk_update(task_ids, {"priority": Priority.from_raw(str(priority)).value})

    async def bulk_set_assignee(
        self,
        task_ids: Sequence[str],
        assignee_id: str | None,
        members: Sequence[Member],
    ) -> MutationOutcome:
        member = next((m for m in members if assignee_id and m.member_id == assignee_id), None)
        return await self.bulk_update(task_ids, {"assigned_to": member.member_id if member else None})

    async def bulk_update(self, task_ids: Sequence[str], patch: TaskPatch) -> MutationOutcome:
        """Confirmed records replace their counterparts; NO_EFFECT when none came back."""
        project_id = self._store.project_id
        ids = [i for i in task_ids if i]
        if not ids or not project_id or not self.user_id:
            return MutationOutcome.SKIPPED

        self._alerts.dismiss(AlertChannel.TASKS)
        body = {**patch, "updated_by": self.user_id}
        try:
            updated = await self._source.update_tasks(ids, project_id, body)
        except RemoteError as e:
            logger.warning("bulk update failed ids=%d: %s", len(ids), e)
            self._alerts.report(AlertChannel.TASKS, str(e))
            return MutationOutcome.FAILED

        if not updated:
            logger.warning("bulk update had no effect ids=%d project=%s", len(ids), project_id)
            return MutationOutcome.NO_EFFECT

        self._store.replace_many(updated)
        logger.info("bulk update applied to %d/%d tasks", len(updated), len(ids))
        return MutationOutcome.APPLIED

    # ---- internals ----

    def _release(self, task_id: str) -> None:
        # Same-task writes may overlap; the id stays pending until the last one ends.
        self._pending[task_id] -= 1
        if self._pending[task_id] <= 0:
            del self._pending[task_id]


    async def _write(self, task: Task, patch: TaskPatch, *, op: str) -> MutationOutcome:
        project_id = self._store.project_id
        if not task.id or not project_id:
            return MutationOutcome.SKIPPED

        self._alerts.dismiss(AlertChannel.TASKS)
        self._pending[task.id] += 1
        body = {**patch, "updated_by": self.user_id}
        try:
            updated = await self._source.update_task(task.id, project_id, body)
        except RemoteError as e:
            logger.warning("%s failed task=%s: %s", op, task.id, e)
            self._alerts.report(AlertChannel.TASKS, str(e))
            return MutationOutcome.FAILED
        finally:
            self._release(task.id)

        if updated is None:
            logger.warning("%s had no effect task=%s project=%s", op, task.id, project_id)
            self._alerts.report(AlertChannel.TASKS, NO_EFFECT_MESSAGE, kind=AlertKind.NO_EFFECT)
            return MutationOutcome.NO_EFFECT

        self._store.replace_task(updated)
        logger.debug("%s applied task=%s", op, task.id)
        return MutationOutcome.APPLIED
