# src/taskboard/core/session.py

"""
Task view session.

One TaskViewSession serves one user and, at any time, at most one project. It
owns the task store, the subtask caches, the view state and the preference
slot, and wires them together:

- open_project() switches the active project (cancel the old event feed,
  clear caches, load preferences, tasks, members and subtask counts)
- push events from the feed are applied to the store in delivery order
- every store change recomputes the summary; the host hears about it only
  when {total, pending, completed} moved
- every preference change is written back once preferences were loaded

Derived data (filtered tasks and the four projections) is recomputed on
demand from explicit inputs; nothing is cached between calls.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Any

from ..tasks.dates import local_now
from ..tasks.filter_prefs import FilterPersistence
from ..tasks.filters import FilterState, QuickFilter, SortMode, available_tags, filter_tasks, quick_filters, sort_tasks
from ..tasks.mutations import MutationCoordinator, MutationOutcome, NewTaskDraft
from ..tasks.subtasks import SubtaskAggregator
from ..tasks.summary import SummaryAggregator, SummaryReport, TaskSummary, build_report
from ..tasks.task_models import ChangeKind, Effort, Member, Priority, Subtask, Task, TaskChange, ViewMode
from ..tasks.task_store import TaskStore
from ..tasks.views import (
    RECENT_DAYS,
    SOON_DAYS,
    TIMELINE_DAYS,
    KanbanColumn,
    KanbanView,
    ListView,
    Section,
    SectionGrouping,
    TimelineView,
    epic_for_section,
    materialize_kanban,
    materialize_list,
    materialize_sections,
    materialize_timeline,
)
from . import state as st
from .errors import AlertChannel, Alerts, RemoteError
from .ports import KeyValueSlot, MemberDirectory, SubtaskSource, TaskEventFeed, TaskSource, ViewHost

logger = logging.getLogger(__name__)


class TaskViewSession:
    def __init__(
        self,
        *,
        tasks: TaskSource,
        subtasks: SubtaskSource,
        members: MemberDirectory | None = None,
        feed: TaskEventFeed | None = None,
        prefs_slot: KeyValueSlot | None = None,
        host: ViewHost | None = None,
        user_id: str | None = None,
        user_email: str | None = None,
        clock: Callable[[], datetime] = local_now,
        timeline_days: int = TIMELINE_DAYS,
        recent_days: int = RECENT_DAYS,
        soon_days: int = SOON_DAYS,
        subtask_meta_limit: int = 2000,
    ) -> None:
        self._source = tasks
        self._members = members
        self._feed = feed
        self._host = host
        self._clock = clock

        self.timeline_days = timeline_days
        self.recent_days = recent_days
        self.soon_days = soon_days

        self.alerts = Alerts()
        self.state = st.TaskViewState(user_id=user_id)
        self.store = TaskStore()
        self.subtasks = SubtaskAggregator(subtasks, self.alerts, user_id=user_id, meta_limit=subtask_meta_limit)
        self.mutations = MutationCoordinator(
            self.store,
            tasks,
            self.alerts,
            user_id=user_id,
            user_email=user_email,
            clock=clock,
        )
        self.persistence = FilterPersistence(prefs_slot, self.alerts)
        self.summary = SummaryAggregator(self._on_summary)

        self._pump: asyncio.Task[None] | None = None
        self._open_generation = 0

        self.store.add_listener(self._on_store_change)

    # ---- basic accessors ----

    @property
    def user_id(self) -> str | None:
        return self.state.user_id

    @property
    def project_id(self) -> str | None:
        return self.state.project_id

    @property
    def loading(self) -> bool:
        return self.store.loading

    @property
    def live(self) -> bool:
        return self._pump is not None and not self._pump.done()

    def now(self) -> datetime:
        return self._clock()

    # ---- project lifecycle ----

    async def open_project(self, project_id: str | None) -> bool:
        """Make `project_id` the active project. Returns False if the load failed or was superseded."""
        self._open_generation += 1
        generation = self._open_generation

        await self._stop_pump()
        self.alerts.clear()
        self.store.clear(project_id)
        self.subtasks.reset(project_id)

        prefs = self.persistence.load(self.user_id, project_id)
        previous_mode = self.state.view_mode
        self.state = st.for_project(self.state, project_id, prefs)
        if self.state.view_mode != previous_mode:
            self._notify_view_mode()

        logger.info("Opening project=%s user=%s", project_id, self.user_id)
        if not project_id:
            return True

        ok = await self.store.reload(project_id, self._source, self.alerts)
        if generation != self._open_generation:
            return False

        await self._load_members(project_id)
        if generation != self._open_generation:
            return False

        await self.subtasks.load_counts(project_id)
        if generation != self._open_generation:
            return False

        self._start_pump(project_id)
        return ok

    async def refresh(self) -> bool:
        """Full reload of the active project's tasks, members and subtask counts."""
        project_id = self.project_id
        if not project_id:
            return False
        ok = await self.store.reload(project_id, self._source, self.alerts)
        if project_id != self.project_id:
            return False
        await self._load_members(project_id)
        await self.subtasks.load_counts(project_id)
        selected = self.state.selected_task_id
        if selected and selected in self.store:
            await self.subtasks.refresh(selected, is_current=self._is_selected)
        return ok

    async def close(self) -> None:
        await self._stop_pump()

    async def _load_members(self, project_id: str) -> None:
        if self._members is None:
            return
        try:
            members = await self._members.list_members(project_id)
        except RemoteError as e:
            # Keep the current filter: an unreachable directory is not an empty one.
            logger.warning("list_members failed project=%s: %s", project_id, e)
            return
        if project_id != self.project_id:
            return
        self.set_members(members)

    # ---- push events ----

    def _start_pump(self, project_id: str) -> None:
        feed = self._feed
        if feed is None:
            return
        self._pump = asyncio.create_task(self._run_pump(feed, project_id), name=f"taskboard-feed-{project_id}")

    async def _stop_pump(self) -> None:
        pump, self._pump = self._pump, None
        if pump is None or pump.done():
            return
        pump.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await pump

    async def _run_pump(self, feed: TaskEventFeed, project_id: str) -> None:
        logger.debug("Subscribed to task events project=%s", project_id)
        try:
            async for change in feed.subscribe(project_id):
                self.apply_remote_event(change)
        except asyncio.CancelledError:
            logger.debug("Task event feed cancelled project=%s", project_id)
            raise
        except Exception:
            logger.exception("Task event feed failed project=%s", project_id)
            self.alerts.report(AlertChannel.TASKS, "Live updates stopped. Use refresh to reload.")

    def apply_remote_event(self, change: TaskChange) -> bool:
        changed = self.store.apply_remote_event(change)
        if changed and change.kind == ChangeKind.DELETE:
            self.subtasks.forget(change.task.id)
        return changed

    # ---- store / summary listeners ----

    def _on_store_change(self, tasks: tuple[Task, ...]) -> None:
        self.summary.recompute(tasks)
        self.state = st.retain_existing(self.state, (t.id for t in tasks))

    def _on_summary(self, summary: TaskSummary) -> None:
        if self._host is not None:
            self._host.summary_changed(summary.as_dict())

    def _notify_view_mode(self) -> None:
        if self._host is not None:
            self._host.view_mode_changed(self.state.view_mode)

    def _persist(self) -> None:
        self.persistence.save(self.state.prefs)

    # ---- filters and presentation ----

    def set_filters(self, filters: FilterState | None = None, **changes: Any) -> FilterState:
        base = filters if filters is not None else self.state.filters
        self.state = st.with_filters(self.state, replace(base, **changes) if changes else base)
        self._persist()
        return self.state.filters

    def reset_filters(self) -> FilterState:
        self.state = st.reset_filters(self.state)
        self._persist()
        return self.state.filters

    def set_sort_mode(self, mode: SortMode | str) -> None:
        self.set_filters(sort_mode=SortMode(mode))

    def quick_filters(self) -> list[QuickFilter]:
        return quick_filters(user_id=self.user_id, members=self.state.members, tags=self.available_tags())

    def apply_quick_filter(self, preset_id: str) -> bool:
        preset = next((p for p in self.quick_filters() if p.id == preset_id), None)
        if preset is None:
            return False
        self.state = st.apply_quick_filter(self.state, preset)
        self._persist()
        return True

    def set_view_mode(self, mode: ViewMode | str) -> ViewMode:
        nxt = ViewMode(mode)
        if nxt != self.state.view_mode:
            self.state = st.with_view_mode(self.state, nxt)
            self._persist()
            self._notify_view_mode()
        return self.state.view_mode

    def cycle_view_mode(self) -> ViewMode:
        self.state = st.cycle_view_mode(self.state)
        self._persist()
        self._notify_view_mode()
        return self.state.view_mode

    def set_sections_grouping(self, grouping: SectionGrouping | str) -> SectionGrouping:
        self.state = st.with_grouping(self.state, grouping)
        self._persist()
        return self.state.sections_grouping

    def focus_new_task_input(self) -> None:
        self.state = st.request_focus(self.state)
        if self._host is not None:
            self._host.focus_new_task_input()

    def set_members(self, members: Sequence[Member]) -> None:
        before = self.state.filters
        self.state = st.with_members(self.state, members)
        if self.state.filters != before:
            self._persist()

    # ---- derived data ----

    def filtered_tasks(self) -> list[Task]:
        return filter_tasks(self.store.tasks, self.state.filters, tz=self.now().tzinfo)

    def presented_tasks(self) -> list[Task]:
        return sort_tasks(self.filtered_tasks(), self.state.filters.sort_mode)

    def available_tags(self) -> list[str]:
        return available_tags(self.store.tasks)

    def list_view(self) -> ListView:
        return materialize_list(self.presented_tasks(), self.now())

    def kanban_view(self) -> KanbanView:
        return materialize_kanban(self.presented_tasks())

    def timeline_view(self) -> TimelineView:
        return materialize_timeline(self.filtered_tasks(), self.now(), days=self.timeline_days)

    def sections_view(self) -> list[Section]:
        return materialize_sections(
            self.filtered_tasks(),
            self.now(),
            grouping=self.state.sections_grouping,
            recent_days=self.recent_days,
            soon_days=self.soon_days,
        )

    def report(self) -> SummaryReport:
        return build_report(self.store.tasks, self.filtered_tasks(), self.now(), user_id=self.user_id)

    # ---- selection ----

    def _is_selected(self, task_id: str) -> bool:
        return self.state.selected_task_id == task_id

    async def select_task(self, task_id: str | None) -> Task | None:
        """Open a task's detail; its subtask list is fetched unless cached."""
        task = self.store.get(task_id)
        self.state = st.select_task(self.state, task.id if task else None)
        if task is not None:
            await self.subtasks.ensure_loaded(task.id, is_current=self._is_selected)
        return task

    def selected_task(self) -> Task | None:
        return self.store.get(self.state.selected_task_id)

    def toggle_selected(self, task_id: str) -> frozenset[str]:
        if task_id in self.store:
            self.state = st.toggle_selected(self.state, task_id)
        return self.state.selected_ids

    def clear_selection(self) -> None:
        self.state = st.clear_selection(self.state)

    # ---- task mutations ----

    def _task(self, task_id: str) -> Task | None:
        task = self.store.get(task_id)
        if task is None:
            logger.debug("Mutation skipped: unknown task=%s", task_id)
        return task

    async def toggle_completion(self, task_id: str) -> MutationOutcome:
        task = self._task(task_id)
        if task is None:
            return MutationOutcome.SKIPPED
        return await self.mutations.toggle_completion(task)

    async def reassign(self, task_id: str, assignee_id: str | None) -> MutationOutcome:
        task = self._task(task_id)
        if task is None:
            return MutationOutcome.SKIPPED
        return await self.mutations.reassign(task, assignee_id, self.state.members)

    async def change_priority(self, task_id: str, priority: Priority | str) -> MutationOutcome:
        task = self._task(task_id)
        if task is None:
            return MutationOutcome.SKIPPED
        return await self.mutations.change_priority(task, priority)

    async def change_effort(self, task_id: str, effort: Effort | str) -> MutationOutcome:
        task = self._task(task_id)
        if task is None:
            return MutationOutcome.SKIPPED
        return await self.mutations.change_effort(task, effort)

    async def change_epic(self, task_id: str, epic: str | None) -> MutationOutcome:
        task = self._task(task_id)
        if task is None:
            return MutationOutcome.SKIPPED
        return await self.mutations.change_epic(task, epic)

    async def change_tags(self, task_id: str, tags: Sequence[str] | str | None) -> MutationOutcome:
        task = self._task(task_id)
        if task is None:
            return MutationOutcome.SKIPPED
        return await self.mutations.change_tags(task, tags)

    async def change_due_date(self, task_id: str, due: str) -> MutationOutcome:
        task = self._task(task_id)
        if task is None:
            return MutationOutcome.SKIPPED
        return await self.mutations.change_due_date(task, due)

    async def delete_task(self, task_id: str) -> MutationOutcome:
        task = self._task(task_id)
        if task is None:
            return MutationOutcome.SKIPPED
        outcome = await self.mutations.delete_task(task)
        if outcome == MutationOutcome.APPLIED:
            self.subtasks.forget(task_id)
        return outcome

    async def move_task_to_column(self, task_id: str, column: KanbanColumn | str) -> MutationOutcome:
        """Dropping a card on the other kanban column toggles its completion."""
        task = self._task(task_id)
        if task is None:
            return MutationOutcome.SKIPPED
        want_completed = KanbanColumn(column) == KanbanColumn.COMPLETED
        if task.completed == want_completed:
            return MutationOutcome.SKIPPED
        return await self.mutations.toggle_completion(task)

    async def move_task_to_section(self, task_id: str, section_id: str) -> MutationOutcome:
        """Only epic sections are writable; date sections are derived from dates."""
        task = self._task(task_id)
        if task is None or self.state.sections_grouping != SectionGrouping.EPIC:
            return MutationOutcome.SKIPPED
        section = next((s for s in self.sections_view() if s.id == section_id), None)
        if section is None:
            return MutationOutcome.SKIPPED
        epic = epic_for_section(section)
        if (task.epic or "").strip() == (epic or ""):
            return MutationOutcome.SKIPPED
        return await self.mutations.change_epic(task, epic)

    # ---- new task ----

    def update_draft(self, **changes: Any) -> NewTaskDraft:
        self.state = st.with_draft(self.state, replace(self.state.draft, **changes))
        return self.state.draft

    async def submit_new_task(self, draft: NewTaskDraft | None = None) -> Task | None:
        if draft is not None:
            self.state = st.with_draft(self.state, draft)
        created = await self.mutations.create_task(self.state.draft)
        if created is not None:
            self.state = st.reset_draft(self.state)
        return created

    # ---- bulk ----

    async def _bulk(self, outcome: MutationOutcome) -> MutationOutcome:
        if outcome == MutationOutcome.APPLIED:
            self.clear_selection()
        return outcome

    async def bulk_set_completion(self, completed: bool) -> MutationOutcome:
        ids = sorted(self.state.selected_ids)
        return await self._bulk(await self.mutations.bulk_set_completion(ids, completed))

    async def bulk_set_priority(self, priority: Priority | str) -> MutationOutcome:
        ids = sorted(self.state.selected_ids)
        return await self._bulk(await self.mutations.bulk_set_priority(ids, priority))

    async def bulk_set_assignee(self, assignee_id: str | None) -> MutationOutcome:
        ids = sorted(self.state.selected_ids)
        return await self._bulk(await self.mutations.bulk_set_assignee(ids, assignee_id, self.state.members))

    # ---- subtasks of the selected task ----

    def selected_subtasks(self) -> list[Subtask]:
        task_id = self.state.selected_task_id
        return (self.subtasks.details(task_id) or []) if task_id else []

    def _selected_subtask(self, subtask_id: str) -> Subtask | None:
        return next((s for s in self.selected_subtasks() if s.id == subtask_id), None)

    async def add_subtask(self, title: str) -> Subtask | None:
        task_id = self.state.selected_task_id
        if not task_id:
            return None
        return await self.subtasks.create_subtask(task_id, title)

    async def toggle_subtask(self, subtask_id: str) -> bool:
        subtask = self._selected_subtask(subtask_id)
        if subtask is None:
            return False
        return await self.subtasks.toggle_subtask(subtask)

    async def delete_subtask(self, subtask_id: str) -> bool:
        subtask = self._selected_subtask(subtask_id)
        if subtask is None:
            return False
        return await self.subtasks.delete_subtask(subtask)
