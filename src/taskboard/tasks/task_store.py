# src/taskboard/tasks/task_store.py

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence

from ..core.errors import AlertChannel, Alerts, RemoteError, SchemaMismatchError
from ..core.ports import TaskSource
from .task_models import FETCH_STRATEGIES, ChangeKind, FetchStrategy, Task, TaskChange

logger = logging.getLogger(__name__)

StoreListener = Callable[[tuple[Task, ...]], None]


async def fetch_tasks(
    source: TaskSource,
    project_id: str,
    *,
    strategies: Sequence[FetchStrategy] = FETCH_STRATEGIES,
) -> list[Task]:
    """
    List a project's tasks, degrading the field set on schema mismatch.

    Strategies are tried in order (full, then reduced by default). Any other error, or a
    mismatch on the last strategy, propagates to the caller.
    """
    last_exc: SchemaMismatchError | None = None
    for strategy in strategies:
        try:
            tasks = await source.list_tasks(project_id, strategy=strategy)
        except SchemaMismatchError as e:
            logger.warning(
                "list_tasks rejected strategy=%s project=%s (%s); trying next",
                strategy.name,
                project_id,
                e,
            )
            last_exc = e
            continue
        if last_exc is not None:
            logger.info("list_tasks served with strategy=%s project=%s", strategy.name, project_id)
        return tasks
    if last_exc is None:
        raise RemoteError(f"no fetch strategy to list tasks of project {project_id}")
    raise last_exc


class TaskStore:
    """
    Canonical in-memory task collection for the active project, newest first.

    Writers:
    - reload() and apply_remote_event() (sync reconciler)
    - replace/prepend/remove (mutation coordinator, after remote confirmation)

    With no project selected the store is empty and inert: events are ignored.
    Every structural change notifies the listeners (summary recompute).
    """

    def __init__(self) -> None:
        self._project_id: str | None = None
        self._tasks: list[Task] = []
        self._generation = 0
        self._listeners: list[StoreListener] = []
        self.loading = False

    # ---- read API ----

    @property
    def project_id(self) -> str | None:
        return self._project_id

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(tuple(self._tasks))

    def __contains__(self, task_id: object) -> bool:
        return any(t.id == task_id for t in self._tasks)

    def get(self, task_id: str | None) -> Task | None:
        if not task_id:
            return None
        for t in self._tasks:
            if t.id == task_id:
                return t
        return None

    def add_listener(self, listener: StoreListener) -> None:
        self._listeners.append(listener)

    # ---- sync reconciler ----

    async def reload(self, project_id: str | None, source: TaskSource, alerts: Alerts) -> bool:
        """
        Replace the whole collection with a fresh fetch.

        On failure the store is cleared (never a partial merge) and the error
        goes to the tasks alert channel. A response that arrives after another
        reload (or a project switch) has started is discarded.
        """
        self._generation += 1
        generation = self._generation
        self._project_id = project_id

        if not project_id:
            self.loading = False
            self._set_tasks([])
            return True

        self.loading = True
        alerts.dismiss(AlertChannel.TASKS)
        try:
            fetched = await fetch_tasks(source, project_id)
        except RemoteError as e:
            if generation != self._generation:
                logger.debug("discarding stale reload failure project=%s", project_id)
                return False
            logger.warning("reload failed project=%s: %s", project_id, e)
            self.loading = False
            self._set_tasks([])
            alerts.report(AlertChannel.TASKS, str(e))
            return False

        if generation != self._generation:
            logger.debug("discarding stale reload result project=%s", project_id)
            return False

        self.loading = False
        self._set_tasks(fetched)
        logger.info("reloaded project=%s tasks=%d", project_id, len(fetched))
        return True

    def clear(self, project_id: str | None = None) -> None:
        """Drop everything and invalidate any in-flight reload."""
        self._generation += 1
        self._project_id = project_id
        self.loading = False
        self._set_tasks([])

    def apply_remote_event(self, change: TaskChange) -> bool:
        """
        Apply one push event in delivery order. Returns True if the store changed.

        - INSERT prepends unless the id is already present (overlapping reload + push)
        - UPDATE replaces the matching task wholesale, in place
        - DELETE removes the matching task
        Events carrying another project's id are leftovers from an older
        subscription and are dropped.
        """
        if self._project_id is None:
            return False

        task = change.task
        if task.project_id is not None and task.project_id != self._project_id:
            logger.debug(
                "ignoring %s for task=%s project=%s (active=%s)",
                change.kind.value,
                task.id,
                task.project_id,
                self._project_id,
            )
            return False

        if change.kind == ChangeKind.INSERT:
            if task.id in self:
                logger.debug("duplicate INSERT task=%s ignored", task.id)
                return False
            self._tasks.insert(0, task)
        elif change.kind == ChangeKind.UPDATE:
            if not self._replace(task):
                return False
        elif change.kind == ChangeKind.DELETE:
            if not self._remove(task.id):
                return False
        else:
            return False

        logger.debug("applied %s task=%s", change.kind.value, task.id)
        self._notify()
        return True

    # ---- mutation write-through ----

    def replace_task(self, task: Task) -> bool:
        if not self._replace(task):
            return False
        self._notify()
        return True

    def replace_many(self, tasks: list[Task]) -> int:
        by_id = {t.id: t for t in tasks}
        changed = 0
        for i, current in enumerate(self._tasks):
            nxt = by_id.get(current.id)
            if nxt is not None:
                self._tasks[i] = nxt
                changed += 1
        if changed:
            self._notify()
        return changed

    def prepend_task(self, task: Task) -> bool:
        if task.id in self:
            return self.replace_task(task)
        self._tasks.insert(0, task)
        self._notify()
        return True

    def remove_task(self, task_id: str) -> bool:
        if not self._remove(task_id):
            return False
        self._notify()
        return True

    # ---- internals ----

    def _replace(self, task: Task) -> bool:
        for i, current in enumerate(self._tasks):
            if current.id == task.id:
                self._tasks[i] = task
                return True
        return False

    def _remove(self, task_id: str) -> bool:
        before = len(self._tasks)
        self._tasks = [t for t in self._tasks if t.id != task_id]
        return len(self._tasks) != before

    def _set_tasks(self, tasks: list[Task]) -> None:
        self._tasks = list(tasks)
        self._notify()

    def _notify(self) -> None:
        snapshot = tuple(self._tasks)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("store listener failed")
