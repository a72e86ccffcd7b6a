# tests/test_summary.py

from __future__ import annotations

from datetime import timedelta

from taskboard.tasks.summary import (
    SummaryAggregator,
    TaskSummary,
    build_report,
    completion_stats,
    completion_streak,
    high_priority_stats,
    summarize,
)
from taskboard.tasks.task_models import Priority

from .fakes import make_task

DAY = timedelta(days=1)


def test_summarize_counts(tasks) -> None:
    assert summarize(tasks) == TaskSummary(total=4, pending=3, completed=1)
    assert summarize([]).as_dict() == {"total": 0, "pending": 0, "completed": 0}


def test_high_priority_overdue_and_today(now) -> None:
    tasks = [
        make_task("a", priority=Priority.HIGH, due_date=now - DAY),
        make_task("b", priority=Priority.HIGH, due_date=now.replace(hour=18)),
        make_task("c", priority=Priority.HIGH, due_date=now - DAY, completed=True),
        make_task("d", priority=Priority.LOW, due_date=now - DAY),
        make_task("e", priority=Priority.HIGH),
    ]
    stats = high_priority_stats(tasks, now)
    assert (stats.overdue, stats.due_today) == (1, 1)


def test_completion_on_time_versus_late(now) -> None:
    tasks = [
        make_task("a", completed=True, due_date=now, completed_at=now - DAY),
        make_task("b", completed=True, due_date=now - DAY, completed_at=now),
        make_task("c", completed=True, completed_at=now),
        make_task("d", due_date=now),
    ]
    stats = completion_stats(tasks)
    assert (stats.on_time, stats.late) == (1, 1)


def test_streak_counts_consecutive_days(now) -> None:
    today = now.date()
    stamps = [now, now - DAY, now - 2 * DAY, now - 4 * DAY]
    assert completion_streak(stamps, today) == 3


def test_streak_may_end_yesterday_but_not_earlier(now) -> None:
    today = now.date()
    assert completion_streak([now - DAY, now - 2 * DAY], today) == 2
    assert completion_streak([now - 2 * DAY], today) == 0
    assert completion_streak([], today) == 0


def test_report_flags_filtered_empty(tasks, now) -> None:
    report = build_report(tasks, [], now, user_id="u1")
    assert report.is_filtered_empty is True
    assert report.is_empty is False
    assert report.visible == TaskSummary()

    empty = build_report([], [], now)
    assert empty.is_empty is True
    assert empty.is_filtered_empty is False


def test_report_streak_only_counts_own_tasks(now) -> None:
    tasks = [
        make_task("mine", completed=True, completed_at=now, assigned_to="u1"),
        make_task("theirs", completed=True, completed_at=now - DAY, assigned_to="u2"),
    ]
    assert build_report(tasks, tasks, now, user_id="u1").streak == 1


def test_aggregator_notifies_only_on_change(tasks) -> None:
    seen: list[TaskSummary] = []
    aggregator = SummaryAggregator(seen.append)

    aggregator.recompute(tasks)
    aggregator.recompute(list(tasks))
    assert len(seen) == 1

    aggregator.recompute(tasks[:2])
    assert seen[-1] == TaskSummary(total=2, pending=2, completed=0)
    assert aggregator.current == seen[-1]


def test_aggregator_survives_listener_failure(tasks) -> None:
    def broken(_summary: TaskSummary) -> None:
        raise RuntimeError("host gone")

    aggregator = SummaryAggregator(broken)
    assert aggregator.recompute(tasks).total == 4
