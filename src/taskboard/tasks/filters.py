# src/taskboard/tasks/filters.py

"""
Filter pipeline.

filter_tasks() is a pure function of (tasks, FilterState). Every dimension is a
separate predicate and all of them must hold; a default value in a dimension
means "no constraint". The function is idempotent: filtering an already
filtered list with the same state returns it unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, tzinfo
from enum import StrEnum

from .dates import parse_date_input
from .task_models import Effort, Member, Priority, Task

logger = logging.getLogger(__name__)

ALL = "all"
UNASSIGNED = "unassigned"


class StatusFilter(StrEnum):
    ALL = "all"
    PENDING = "pending"
    COMPLETED = "completed"


class SortMode(StrEnum):
    DEFAULT = "default"
    PRIORITY = "priority"
    DUE_DATE = "due_date"
    LAST_ACTIVITY = "last_activity"


PRIORITY_CHOICES = frozenset({ALL, *(p.value for p in Priority)})
EFFORT_CHOICES = frozenset({ALL, *(e.value for e in Effort)})


@dataclass(slots=True, frozen=True)
class FilterState:
    status: StatusFilter = StatusFilter.ALL
    assignee: str = ALL  # "all" | "unassigned" | member id
    priority: str = ALL
    effort: str = ALL
    tag: str = ""
    query: str = ""
    # Day inputs ("YYYY-MM-DD"), empty = no boundary.
    created_from: str = ""
    created_to: str = ""
    due_before: str = ""
    completed_before: str = ""
    sort_mode: SortMode = SortMode.DEFAULT

    def is_default(self) -> bool:
        return self == FilterState(sort_mode=self.sort_mode)


@dataclass(slots=True, frozen=True)
class _Bounds:
    created_from: datetime | None
    created_to: datetime | None
    due_before: datetime | None
    completed_before: datetime | None


def _bounds(filters: FilterState, tz: tzinfo | None) -> _Bounds:
    return _Bounds(
        created_from=parse_date_input(filters.created_from, tz=tz),
        created_to=parse_date_input(filters.created_to, end_of_day=True, tz=tz),
        due_before=parse_date_input(filters.due_before, end_of_day=True, tz=tz),
        completed_before=parse_date_input(filters.completed_before, end_of_day=True, tz=tz),
    )


def _matches(task: Task, f: FilterState, b: _Bounds, query: str, tag: str) -> bool:
    if f.status == StatusFilter.COMPLETED and not task.completed:
        return False
    if f.status == StatusFilter.PENDING and task.completed:
        return False

    if f.assignee == UNASSIGNED:
        if task.assigned_to:
            return False
    elif f.assignee != ALL and task.assigned_to != f.assignee:
        return False

    if f.priority != ALL and task.priority.value != f.priority:
        return False

    if f.effort != ALL and task.effort.value != f.effort:
        return False

    if tag and not any(t.strip().lower() == tag for t in task.tags):
        return False

    if query:
        title = (task.title or "").lower()
        description = (task.description or "").lower()
        if query not in title and query not in description:
            return False

    if b.created_from is not None:
        if task.inserted_at is None or task.inserted_at < b.created_from:
            return False

    if b.created_to is not None:
        if task.inserted_at is None or task.inserted_at > b.created_to:
            return False

    # A task without a due date cannot satisfy "due before X".
    if b.due_before is not None:
        if task.due_date is None or task.due_date > b.due_before:
            return False

    if b.completed_before is not None:
        if not task.completed or task.completed_at is None:
            return False
        if task.completed_at > b.completed_before:
            return False

    return True


def filter_tasks(
    tasks: Iterable[Task],
    filters: FilterState,
    *,
    tz: tzinfo | None = None,
) -> list[Task]:
    """Order-preserving AND of every active predicate. An empty result is a valid state."""
    bounds = _bounds(filters, tz)
    query = filters.query.strip().lower()
    tag = filters.tag.strip().lower()
    return [t for t in tasks if _matches(t, filters, bounds, query, tag)]


def prune_assignee_filter(filters: FilterState, members: Sequence[Member]) -> FilterState:
    """Reset an assignee filter that points at someone no longer in the project."""
    if filters.assignee in (ALL, UNASSIGNED):
        return filters
    if any(m.member_id == filters.assignee for m in members):
        return filters
    logger.info("Assignee filter %s no longer a project member; resetting to all", filters.assignee)
    return replace(filters, assignee=ALL)


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


def _ts(dt: datetime | None, missing: float) -> float:
    return dt.timestamp() if dt is not None else missing


def sort_tasks(tasks: Sequence[Task], mode: SortMode | str) -> list[Task]:
    """
    Presentation order for list/kanban. DEFAULT keeps store order (newest first).

    Python's sort is stable, so ties keep their filtered order.
    """
    out = list(tasks)
    if not out:
        return out

    inf = float("inf")

    if mode == SortMode.PRIORITY:
        out.sort(
            key=lambda t: (
                _PRIORITY_RANK.get(t.priority, 1),
                _ts(t.due_date, inf),
                -_ts(t.inserted_at, 0.0),
            )
        )
    elif mode == SortMode.DUE_DATE:
        out.sort(key=lambda t: (_ts(t.due_date, inf), -_ts(t.inserted_at, 0.0)))
    elif mode == SortMode.LAST_ACTIVITY:
        out.sort(key=lambda t: -_ts(t.last_activity, 0.0))

    return out


def available_tags(tasks: Iterable[Task]) -> list[str]:
    tags = {t.strip().lower() for task in tasks for t in task.tags if t.strip()}
    return sorted(tags, key=str.casefold)


@dataclass(slots=True, frozen=True)
class QuickFilter:
    id: str
    label: str
    filters: FilterState


def quick_filters(
    *,
    user_id: str | None,
    members: Sequence[Member],
    tags: Sequence[str],
) -> list[QuickFilter]:
    presets = [
        QuickFilter("all", "Show everything", FilterState()),
        QuickFilter("pending", "Pending only", FilterState(status=StatusFilter.PENDING)),
        QuickFilter(
            "pending-unassigned",
            "Pending without assignee",
            FilterState(status=StatusFilter.PENDING, assignee=UNASSIGNED),
        ),
        QuickFilter("completed", "Completed only", FilterState(status=StatusFilter.COMPLETED)),
        QuickFilter("high-all", "High priority only", FilterState(priority=Priority.HIGH.value)),
        QuickFilter(
            "high-pending",
            "Pending, high priority",
            FilterState(status=StatusFilter.PENDING, priority=Priority.HIGH.value),
        ),
    ]

    if user_id and any(m.member_id == user_id for m in members):
        presets.append(QuickFilter("assigned-to-me", "Assigned to me", FilterState(assignee=user_id)))

    if "bug" in tags:
        presets.append(QuickFilter("tag-bug", "Bugs only", FilterState(tag="bug")))
    if "frontend" in tags:
        presets.append(QuickFilter("tag-frontend", "Frontend only", FilterState(tag="frontend")))

    return presets
