# src/taskboard/core/state.py

"""
View state aggregate.

TaskViewState holds the user-facing choices of one session (filters, view
mode, grouping, selection, the new-task draft, the member list). It is
immutable; every transition below returns a new instance, so a caller never
observes a half-applied change.

The task collection and the subtask caches are not part of it: they are owned
by TaskStore and SubtaskAggregator respectively.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace

from ..tasks.filter_prefs import ViewPrefs
from ..tasks.filters import FilterState, QuickFilter, prune_assignee_filter
from ..tasks.mutations import NewTaskDraft
from ..tasks.task_models import Member, ViewMode, next_view_mode
from ..tasks.views import SectionGrouping


@dataclass(slots=True, frozen=True)
class TaskViewState:
    user_id: str | None = None
    project_id: str | None = None

    filters: FilterState = field(default_factory=FilterState)
    view_mode: ViewMode = ViewMode.LIST
    sections_grouping: SectionGrouping = SectionGrouping.DATES

    members: tuple[Member, ...] = ()
    selected_task_id: str | None = None
    selected_ids: frozenset[str] = frozenset()

    draft: NewTaskDraft = field(default_factory=NewTaskDraft)
    focus_requests: int = 0

    @property
    def prefs(self) -> ViewPrefs:
        return ViewPrefs(
            filters=self.filters,
            view_mode=self.view_mode,
            sections_grouping=self.sections_grouping,
        )

    def member(self, member_id: str | None) -> Member | None:
        if not member_id:
            return None
        return next((m for m in self.members if m.member_id == member_id), None)

    def member_label(self, member_id: str | None) -> str:
        m = self.member(member_id)
        if m is not None:
            return m.label
        return member_id or "Unassigned"


# ---- transitions ----


def for_project(state: TaskViewState, project_id: str | None, prefs: ViewPrefs) -> TaskViewState:
    """Enter another project: its stored preferences apply, everything else resets."""
    return TaskViewState(
        user_id=state.user_id,
        project_id=project_id,
        filters=prefs.filters,
        view_mode=prefs.view_mode,
        sections_grouping=prefs.sections_grouping,
        focus_requests=state.focus_requests,
    )


def with_filters(state: TaskViewState, filters: FilterState) -> TaskViewState:
    return replace(state, filters=prune_assignee_filter(filters, state.members) if state.members else filters)


def reset_filters(state: TaskViewState) -> TaskViewState:
    """Back to defaults; the sort mode is a presentation choice and survives."""
    return replace(state, filters=FilterState(sort_mode=state.filters.sort_mode))


def apply_quick_filter(state: TaskViewState, preset: QuickFilter) -> TaskViewState:
    return replace(state, filters=replace(preset.filters, sort_mode=state.filters.sort_mode))


def with_view_mode(state: TaskViewState, mode: ViewMode | str) -> TaskViewState:
    return replace(state, view_mode=ViewMode(mode))


def cycle_view_mode(state: TaskViewState) -> TaskViewState:
    return replace(state, view_mode=next_view_mode(state.view_mode))


def with_grouping(state: TaskViewState, grouping: SectionGrouping | str) -> TaskViewState:
    return replace(state, sections_grouping=SectionGrouping(grouping))


def with_members(state: TaskViewState, members: Sequence[Member]) -> TaskViewState:
    """Replace the member list and drop an assignee filter that no longer resolves."""
    members = tuple(members)
    return replace(state, members=members, filters=prune_assignee_filter(state.filters, members))


def select_task(state: TaskViewState, task_id: str | None) -> TaskViewState:
    return replace(state, selected_task_id=task_id or None)


def toggle_selected(state: TaskViewState, task_id: str) -> TaskViewState:
    ids = set(state.selected_ids)
    if task_id in ids:
        ids.discard(task_id)
    else:
        ids.add(task_id)
    return replace(state, selected_ids=frozenset(ids))


def clear_selection(state: TaskViewState) -> TaskViewState:
    return replace(state, selected_ids=frozenset())


def retain_existing(state: TaskViewState, task_ids: Iterable[str]) -> TaskViewState:
    """Forget selections pointing at tasks that left the store."""
    alive = set(task_ids)
    selected = state.selected_task_id if state.selected_task_id in alive else None
    ids = frozenset(i for i in state.selected_ids if i in alive)
    if selected == state.selected_task_id and ids == state.selected_ids:
        return state
    return replace(state, selected_task_id=selected, selected_ids=ids)


def with_draft(state: TaskViewState, draft: NewTaskDraft) -> TaskViewState:
    return replace(state, draft=draft)


def reset_draft(state: TaskViewState) -> TaskViewState:
    return replace(state, draft=NewTaskDraft())


def request_focus(state: TaskViewState) -> TaskViewState:
    return replace(state, focus_requests=state.focus_requests + 1)
