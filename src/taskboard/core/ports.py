# src/taskboard/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the task view engine.

The engine depends on Protocols instead of concrete backends.
This keeps the REST backend and the in-memory backend swappable and makes
testing easier.

Failure contract for every async call: raise RemoteError (SchemaMismatchError
when the requested field set is unknown to the backend). Never return partial data.
"""

from collections.abc import AsyncIterator, Iterable
from typing import Any, Protocol

from ..tasks.task_models import FetchStrategy, Member, Subtask, Task, TaskChange, ViewMode

TaskPatch = dict[str, Any]


class TaskSource(Protocol):
    """Remote task collection."""

    async def list_tasks(
            self,
            project_id: str,
            *,
            strategy: FetchStrategy = FetchStrategy.FULL,
    ) -> list[Task]: ...

    async def insert_task(self, payload: TaskPatch) -> Task | None: ...

    async def update_task(self, task_id: str, project_id: str, patch: TaskPatch) -> Task | None:
        """Scoped by both ids; None when no row matched (no effect)."""
        ...

    async def update_tasks(
            self,
            task_ids: Iterable[str],
            project_id: str,
            patch: TaskPatch,
    ) -> list[Task]: ...

    async def delete_task(self, task_id: str, project_id: str) -> bool: ...


class TaskEventFeed(Protocol):
    """Push-based change events scoped to a project, delivered in order."""

    def subscribe(self, project_id: str) -> AsyncIterator[TaskChange]: ...


class SubtaskSource(Protocol):
    async def list_subtasks(self, task_id: str) -> list[Subtask]: ...

    async def list_subtask_flags(self, project_id: str, *, limit: int = 2000) -> list[tuple[str, bool]]:
        """(task_id, completed) for every subtask of every task in the project."""
        ...

    async def create_subtask(self, task_id: str, title: str, *, updated_by: str | None = None) -> Subtask | None: ...

    async def update_subtask(self, subtask_id: str, task_id: str, patch: TaskPatch) -> Subtask | None: ...

    async def delete_subtask(self, subtask_id: str, task_id: str) -> None: ...


class MemberDirectory(Protocol):
    async def list_members(self, project_id: str) -> list[Member]: ...


class KeyValueSlot(Protocol):
    """Synchronous string slot (browser localStorage equivalent)."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...


class ViewHost(Protocol):
    """
    The hosting dashboard.

    The session calls these; the host decides what to do with them
    (redraw a tab strip, refresh a counter badge, move the cursor).
    """

    def view_mode_changed(self, mode: ViewMode) -> None: ...
    def summary_changed(self, summary: dict[str, int]) -> None: ...
    def focus_new_task_input(self) -> None: ...
