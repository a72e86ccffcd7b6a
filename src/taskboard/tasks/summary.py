# src/taskboard/tasks/summary.py

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta

from .dates import add_days, start_of_day
from .task_models import Priority, Task

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TaskSummary:
    total: int = 0
    pending: int = 0
    completed: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class HighPriorityStats:
    overdue: int = 0
    due_today: int = 0


@dataclass(slots=True, frozen=True)
class CompletionStats:
    on_time: int = 0
    late: int = 0


@dataclass(slots=True, frozen=True)
class SummaryReport:
    summary: TaskSummary
    visible: TaskSummary
    high_priority: HighPriorityStats
    completion: CompletionStats
    streak: int
    is_empty: bool
    is_filtered_empty: bool


def summarize(tasks: Sequence[Task]) -> TaskSummary:
    completed = sum(1 for t in tasks if t.completed)
    return TaskSummary(total=len(tasks), pending=len(tasks) - completed, completed=completed)


def high_priority_stats(tasks: Iterable[Task], now: datetime) -> HighPriorityStats:
    """Open high-priority tasks due before today (overdue) or during today."""
    today_start = start_of_day(now)
    today_end = add_days(today_start, 1)
    overdue = due_today = 0
    for t in tasks:
        if t.priority != Priority.HIGH or t.completed or t.due_date is None:
            continue
        if t.due_date < today_start:
            overdue += 1
        elif t.due_date < today_end:
            due_today += 1
    return HighPriorityStats(overdue=overdue, due_today=due_today)


def completion_stats(tasks: Iterable[Task]) -> CompletionStats:
    on_time = late = 0
    for t in tasks:
        if not t.completed or t.due_date is None or t.completed_at is None:
            continue
        if t.completed_at <= t.due_date:
            on_time += 1
        else:
            late += 1
    return CompletionStats(on_time=on_time, late=late)


def completion_streak(completed_dates: Iterable[datetime], today: date) -> int:
    """
    Consecutive days (ending today or yesterday) with at least one completion.

    A gap of more than one day before today breaks the streak entirely.
    """
    days = sorted({d.date() for d in completed_dates}, reverse=True)
    if not days:
        return 0
    if days[0] not in (today, today - timedelta(days=1)):
        return 0

    streak = 0
    expected = days[0]
    for d in days:
        if d != expected:
            break
        streak += 1
        expected = d - timedelta(days=1)
    return streak


def build_report(
    tasks: Sequence[Task],
    filtered: Sequence[Task],
    now: datetime,
    *,
    user_id: str | None = None,
) -> SummaryReport:
    mine = [
        t.completed_at.astimezone(now.tzinfo)
        for t in tasks
        if t.completed and t.completed_at is not None and user_id and t.assigned_to == user_id
    ]
    return SummaryReport(
        summary=summarize(tasks),
        visible=summarize(filtered),
        high_priority=high_priority_stats(tasks, now),
        completion=completion_stats(tasks),
        streak=completion_streak(mine, now.date()),
        is_empty=not tasks,
        is_filtered_empty=bool(tasks) and not filtered,
    )


SummaryListener = Callable[[TaskSummary], None]


class SummaryAggregator:
    """
    Keeps the unfiltered {total, pending, completed} and tells the listener
    (the hosting dashboard) only when that composition actually changed.
    """

    def __init__(self, listener: SummaryListener | None = None) -> None:
        self._listener = listener
        self._current: TaskSummary | None = None

    @property
    def current(self) -> TaskSummary:
        return self._current or TaskSummary()

    def recompute(self, tasks: Sequence[Task]) -> TaskSummary:
        nxt = summarize(tasks)
        if nxt == self._current:
            return nxt
        self._current = nxt
        logger.debug("summary changed total=%d pending=%d completed=%d", nxt.total, nxt.pending, nxt.completed)
        if self._listener is not None:
            try:
                self._listener(nxt)
            except Exception:
                logger.exception("summary listener failed")
        return nxt
