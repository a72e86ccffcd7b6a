# src/taskboard/tasks/subtasks.py

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace

from ..core.errors import AlertChannel, AlertKind, Alerts, RemoteError
from ..core.ports import SubtaskSource
from .task_models import Subtask

logger = logging.getLogger(__name__)

NO_EFFECT_SUBTASK_MESSAGE = "Could not update the subtask. Was it removed?"


@dataclass(slots=True, frozen=True)
class SubtaskCounts:
    total: int = 0
    completed: int = 0

    @classmethod
    def of(cls, subtasks: Iterable[Subtask]) -> SubtaskCounts:
        items = list(subtasks)
        return cls(total=len(items), completed=sum(1 for s in items if s.completed))


class SubtaskAggregator:
    """
    Subtask caches for the active project.

    Two views of the same data:
    - counts: task_id -> SubtaskCounts for every task (one bulk, project-scoped fetch)
    - details: task_id -> ordered subtask list, fetched lazily per opened task

    Whenever a detail list is loaded, its counts entry is derived from it, so the
    two never disagree. Failures go to the "subtasks" alert channel.
    """

    def __init__(
        self,
        source: SubtaskSource,
        alerts: Alerts,
        *,
        user_id: str | None = None,
        meta_limit: int = 2000,
    ) -> None:
        self._source = source
        self._alerts = alerts
        self._user_id = user_id
        self._meta_limit = meta_limit

        self._counts: dict[str, SubtaskCounts] = {}
        self._details: dict[str, list[Subtask]] = {}
        self._loading: set[str] = set()
        self._project_id: str | None = None
        self._generation = 0

    # ---- read API ----

    def counts(self, task_id: str) -> SubtaskCounts:
        return self._counts.get(task_id, SubtaskCounts())

    def counts_map(self) -> dict[str, SubtaskCounts]:
        return dict(self._counts)

    def details(self, task_id: str) -> list[Subtask] | None:
        items = self._details.get(task_id)
        return list(items) if items is not None else None

    def is_loaded(self, task_id: str) -> bool:
        return task_id in self._details

    def is_loading(self, task_id: str) -> bool:
        return task_id in self._loading

    # ---- loading ----

    def reset(self, project_id: str | None = None) -> None:
        self._generation += 1
        self._project_id = project_id
        self._counts.clear()
        self._details.clear()
        self._loading.clear()

    async def load_counts(self, project_id: str | None) -> bool:
        """Eager path: fold every subtask of the project into the counts map."""
        self._generation += 1
        generation = self._generation
        self._project_id = project_id

        if not project_id:
            self._counts.clear()
            return True

        try:
            flags = await self._source.list_subtask_flags(project_id, limit=self._meta_limit)
        except RemoteError as e:
            if generation != self._generation:
                return False
            logger.warning("subtask counts failed project=%s: %s", project_id, e)
            self._counts.clear()
            self._alerts.report(AlertChannel.SUBTASKS, str(e))
            return False

        if generation != self._generation:
            logger.debug("discarding stale subtask counts project=%s", project_id)
            return False

        totals: dict[str, list[int]] = {}
        for task_id, completed in flags:
            entry = totals.setdefault(task_id, [0, 0])
            entry[0] += 1
            if completed:
                entry[1] += 1

        self._counts = {tid: SubtaskCounts(total=t, completed=c) for tid, (t, c) in totals.items()}
        # Loaded detail lists stay authoritative for their tasks.
        for task_id in self._details:
            self._recalc(task_id)
        logger.debug("subtask counts loaded project=%s tasks=%d", project_id, len(self._counts))
        return True

    async def ensure_loaded(
        self,
        task_id: str | None,
        *,
        is_current: Callable[[str], bool] | None = None,
        force: bool = False,
    ) -> bool:
        """
        Lazy path: fetch the detail list for one task unless it is cached.

        `is_current` is asked once the response arrives; if the user has moved
        on to another task (or project) meanwhile, the result is dropped.
        """
        if not task_id:
            return False
        if not force and task_id in self._details:
            return True

        generation = self._generation
        self._loading.add(task_id)
        self._alerts.dismiss(AlertChannel.SUBTASKS)
        try:
            items = await self._source.list_subtasks(task_id)
        except RemoteError as e:
            self._loading.discard(task_id)
            if generation != self._generation or (is_current is not None and not is_current(task_id)):
                return False
            logger.warning("subtask list failed task=%s: %s", task_id, e)
            self._alerts.report(AlertChannel.SUBTASKS, str(e))
            return False

        self._loading.discard(task_id)
        if generation != self._generation or (is_current is not None and not is_current(task_id)):
            logger.debug("discarding stale subtask list task=%s", task_id)
            return False

        self._details[task_id] = list(items)
        self._recalc(task_id)
        return True

    async def refresh(self, task_id: str, *, is_current: Callable[[str], bool] | None = None) -> bool:
        return await self.ensure_loaded(task_id, is_current=is_current, force=True)

    # ---- mutations ----

    async def create_subtask(self, task_id: str, title: str) -> Subtask | None:
        title = (title or "").strip()
        if not task_id or not title:
            return None

        try:
            created = await self._source.create_subtask(task_id, title, updated_by=self._user_id)
        except RemoteError as e:
            logger.warning("create subtask failed task=%s: %s", task_id, e)
            self._alerts.report(AlertChannel.SUBTASKS, str(e))
            return None

        if created is None:
            return None

        if task_id in self._details:
            self._details[task_id].append(created)
            self._recalc(task_id)
        else:
            # Detail list never fetched: keep it unloaded so the next open fetches every subtask.
            current = self.counts(task_id)
            self._counts[task_id] = SubtaskCounts(total=current.total + 1, completed=current.completed)
        return created

    async def toggle_subtask(self, subtask: Subtask) -> bool:
        """Optimistic: flip locally first, restore the snapshot if the write fails."""
        task_id = subtask.task_id
        snapshot_items = list(self._details.get(task_id, []))
        snapshot_counts = self._counts.get(task_id)
        was_loaded = task_id in self._details

        flipped = replace(subtask, completed=not subtask.completed, updated_by=self._user_id)
        if was_loaded:
            self._details[task_id] = [flipped if s.id == subtask.id else s for s in snapshot_items]
            self._recalc(task_id)
        else:
            self._bump_completed(task_id, 1 if flipped.completed else -1)

        try:
            confirmed = await self._source.update_subtask(
                subtask.id,
                task_id,
                {"completed": flipped.completed, "updated_by": self._user_id},
            )
        except RemoteError as e:
            logger.warning("toggle subtask failed id=%s: %s", subtask.id, e)
            self._rollback(task_id, snapshot_items if was_loaded else None, snapshot_counts)
            self._alerts.report(AlertChannel.SUBTASKS, str(e))
            return False

        if confirmed is None:
            logger.warning("toggle subtask had no effect id=%s task=%s", subtask.id, task_id)
            self._rollback(task_id, snapshot_items if was_loaded else None, snapshot_counts)
            self._alerts.report(AlertChannel.SUBTASKS, NO_EFFECT_SUBTASK_MESSAGE, kind=AlertKind.NO_EFFECT)
            return False

        if was_loaded and task_id in self._details:
            self._details[task_id] = [confirmed if s.id == confirmed.id else s for s in self._details[task_id]]
            self._recalc(task_id)
        return True

    async def delete_subtask(self, subtask: Subtask) -> bool:
        task_id = subtask.task_id
        try:
            await self._source.delete_subtask(subtask.id, task_id)
        except RemoteError as e:
            logger.warning("delete subtask failed id=%s: %s", subtask.id, e)
            self._alerts.report(AlertChannel.SUBTASKS, str(e))
            return False

        if task_id in self._details:
            self._details[task_id] = [s for s in self._details[task_id] if s.id != subtask.id]
            self._recalc(task_id)
        else:
            current = self.counts(task_id)
            self._counts[task_id] = SubtaskCounts(
                total=max(0, current.total - 1),
                completed=max(0, current.completed - (1 if subtask.completed else 0)),
            )
        return True

    def forget(self, task_id: str) -> None:
        """Drop caches for a task that left the store."""
        self._details.pop(task_id, None)
        self._counts.pop(task_id, None)
        self._loading.discard(task_id)

    # ---- internals ----

    def _recalc(self, task_id: str) -> None:
        self._counts[task_id] = SubtaskCounts.of(self._details.get(task_id, []))

    def _bump_completed(self, task_id: str, delta: int) -> None:
        current = self.counts(task_id)
        completed = min(current.total, max(0, current.completed + delta))
        self._counts[task_id] = SubtaskCounts(total=current.total, completed=completed)

    def _rollback(
        self,
        task_id: str,
        items: list[Subtask] | None,
        counts: SubtaskCounts | None,
    ) -> None:
        if items is None:
            self._details.pop(task_id, None)
        else:
            self._details[task_id] = items
        if counts is None:
            self._counts.pop(task_id, None)
        else:
            self._counts[task_id] = counts
