# src/taskboard/tasks/views.py

"""
View materializers.

Four pure projections over the filtered task list: list, kanban, timeline and
sections. None of them reads ambient state; "now" and the window sizes are
explicit parameters so two calls with the same inputs always agree.

Timeline and sections both partition their input: every task lands in exactly
one bucket.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import StrEnum

from .dates import add_days, day_key, end_of_day, start_of_day
from .task_models import Task

# ---- list ----


@dataclass(slots=True, frozen=True)
class ListRow:
    task: Task
    overdue: bool


@dataclass(slots=True, frozen=True)
class ListView:
    rows: list[ListRow]
    visible_completed: int
    visible_pending: int

    @property
    def tasks(self) -> list[Task]:
        return [r.task for r in self.rows]


def materialize_list(tasks: Sequence[Task], now: datetime) -> ListView:
    rows = [ListRow(task=t, overdue=t.is_overdue(now)) for t in tasks]
    completed = sum(1 for t in tasks if t.completed)
    return ListView(rows=rows, visible_completed=completed, visible_pending=len(tasks) - completed)


# ---- kanban ----


class KanbanColumn(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"


@dataclass(slots=True, frozen=True)
class KanbanView:
    pending: list[Task]
    completed: list[Task]

    def columns(self) -> dict[KanbanColumn, list[Task]]:
        return {KanbanColumn.PENDING: self.pending, KanbanColumn.COMPLETED: self.completed}


def materialize_kanban(tasks: Sequence[Task]) -> KanbanView:
    return KanbanView(
        pending=[t for t in tasks if not t.completed],
        completed=[t for t in tasks if t.completed],
    )


# ---- timeline ----

TIMELINE_DAYS = 14
WEEK_DAYS = 7


@dataclass(slots=True)
class TimelineView:
    start: datetime
    end: datetime
    days: list[date]
    day_map: dict[str, list[Task]]
    overdue: list[Task] = field(default_factory=list)
    undated: list[Task] = field(default_factory=list)
    later: list[Task] = field(default_factory=list)

    @property
    def day_keys(self) -> list[str]:
        return [d.isoformat() for d in self.days]

    @property
    def weeks(self) -> list[list[date]]:
        return [self.days[i : i + WEEK_DAYS] for i in range(0, len(self.days), WEEK_DAYS)]

    def tasks_on(self, day: date | str) -> list[Task]:
        key = day if isinstance(day, str) else day.isoformat()
        return self.day_map.get(key, [])

    def bucket_count(self) -> int:
        return sum(len(v) for v in self.day_map.values()) + len(self.overdue) + len(self.undated) + len(self.later)


def materialize_timeline(
    tasks: Sequence[Task],
    now: datetime,
    *,
    days: int = TIMELINE_DAYS,
) -> TimelineView:
    """
    Bucket tasks into a window of `days` days starting at today's midnight.

    - no due date           -> undated
    - due < window start    -> overdue
    - due > window end      -> later (end is 23:59:59.999 of the last day)
    - otherwise             -> the day's bucket, sorted by due time ascending
    """
    days = max(1, int(days))
    start = start_of_day(now)
    day_list = [add_days(start, i).date() for i in range(days)]
    end = end_of_day(add_days(start, days - 1))

    view = TimelineView(
        start=start,
        end=end,
        days=day_list,
        day_map={d.isoformat(): [] for d in day_list},
    )

    for task in tasks:
        due = task.due_date
        if due is None:
            view.undated.append(task)
        elif due < start:
            view.overdue.append(task)
        elif due > end:
            view.later.append(task)
        else:
            view.day_map.setdefault(day_key(due, now.tzinfo), []).append(task)

    for bucket in view.day_map.values():
        bucket.sort(key=lambda t: t.due_date.timestamp())  # type: ignore[union-attr]

    return view


# ---- sections ----


class SectionGrouping(StrEnum):
    DATES = "dates"
    EPIC = "epic"


@dataclass(slots=True, frozen=True)
class Section:
    id: str
    title: str
    empty_label: str
    tasks: list[Task]


@dataclass(slots=True, frozen=True)
class SectionRule:
    id: str
    title: str
    empty_label: str
    match: Callable[[Task], bool]


RECENT_DAYS = 2
SOON_DAYS = 7


def date_section_rules(
    now: datetime,
    *,
    recent_days: int = RECENT_DAYS,
    soon_days: int = SOON_DAYS,
) -> list[SectionRule]:
    """
    Ordered rules for the date grouping. Order matters: the first rule that
    matches claims the task (a recently touched task due today stays "recent").
    """
    today_start = start_of_day(now)
    tomorrow_start = add_days(today_start, 1)
    soon_end = end_of_day(add_days(today_start, soon_days))
    recent_threshold = now - timedelta(days=recent_days)

    def recent(task: Task) -> bool:
        ref = task.last_activity
        return ref is not None and ref >= recent_threshold

    def today(task: Task) -> bool:
        return task.due_date is not None and today_start <= task.due_date < tomorrow_start

    def soon(task: Task) -> bool:
        return task.due_date is not None and tomorrow_start <= task.due_date <= soon_end

    return [
        SectionRule("recent", "Recently assigned", "No recent tasks.", recent),
        SectionRule("today", "To do today", "Nothing due today.", today),
        SectionRule("soon", "Coming up", "Nothing scheduled for the next days.", soon),
        SectionRule("later", "For later", "All caught up.", lambda _task: True),
    ]


def assign_sections(tasks: Sequence[Task], rules: Sequence[SectionRule]) -> list[Section]:
    """First-match-wins partition: each task is removed from the pool once claimed."""
    pool = list(tasks)
    out: list[Section] = []
    for rule in rules:
        claimed: list[Task] = []
        remaining: list[Task] = []
        for task in pool:
            (claimed if rule.match(task) else remaining).append(task)
        pool = remaining
        out.append(Section(id=rule.id, title=rule.title, empty_label=rule.empty_label, tasks=claimed))
    return out


UNGROUPED_EPIC_LABEL = "No epic / group"


def epic_slug(label: str) -> str:
    slug = re.sub(r"\s+", "-", label.lower())
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    return slug or "no-epic"


def epic_sections(tasks: Sequence[Task]) -> list[Section]:
    groups: dict[str, list[Task]] = {}
    for task in tasks:
        label = (task.epic or "").strip() or UNGROUPED_EPIC_LABEL
        groups.setdefault(label, []).append(task)

    return [
        Section(
            id=f"epic-{epic_slug(label)}",
            title=label,
            empty_label="No tasks in this group.",
            tasks=group,
        )
        for label, group in sorted(groups.items(), key=lambda kv: kv[0].casefold())
    ]


def epic_for_section(section: Section) -> str | None:
    """The epic value a task takes when moved into `section` (None = ungrouped)."""
    return None if section.title == UNGROUPED_EPIC_LABEL else section.title


def materialize_sections(
    tasks: Sequence[Task],
    now: datetime,
    *,
    grouping: SectionGrouping | str = SectionGrouping.DATES,
    recent_days: int = RECENT_DAYS,
    soon_days: int = SOON_DAYS,
) -> list[Section]:
    if grouping == SectionGrouping.EPIC:
        return epic_sections(tasks)
    return assign_sections(tasks, date_section_rules(now, recent_days=recent_days, soon_days=soon_days))
