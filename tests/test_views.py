# tests/test_views.py

from __future__ import annotations

from datetime import timedelta

from taskboard.tasks.views import (
    UNGROUPED_EPIC_LABEL,
    KanbanColumn,
    SectionGrouping,
    epic_for_section,
    epic_slug,
    materialize_kanban,
    materialize_list,
    materialize_sections,
    materialize_timeline,
)

from .fakes import make_task

DAY = timedelta(days=1)


def test_list_flags_overdue_and_counts(tasks, now) -> None:
    view = materialize_list(tasks, now)
    flags = {row.task.id: row.overdue for row in view.rows}
    assert flags == {"t1": True, "t2": False, "t3": False, "t4": False}
    assert (view.visible_completed, view.visible_pending) == (1, 3)
    assert view.tasks == tasks


def test_completed_task_past_due_is_not_overdue(now) -> None:
    view = materialize_list([make_task("a", completed=True, due_date=now - 3 * DAY)], now)
    assert view.rows[0].overdue is False


def test_kanban_splits_by_completion(tasks) -> None:
    view = materialize_kanban(tasks)
    assert [t.id for t in view.pending] == ["t1", "t2", "t4"]
    assert [t.id for t in view.completed] == ["t3"]
    assert set(view.columns()) == {KanbanColumn.PENDING, KanbanColumn.COMPLETED}


def test_timeline_scenario_from_yesterday_to_next_week(now) -> None:
    tasks = [
        make_task("yesterday", due_date=now - DAY),
        make_task("today", due_date=now),
        make_task("plus-20", due_date=now + 20 * DAY),
        make_task("undated"),
    ]
    view = materialize_timeline(tasks, now, days=14)

    assert [t.id for t in view.overdue] == ["yesterday"]
    assert [t.id for t in view.tasks_on(now.date())] == ["today"]
    assert [t.id for t in view.later] == ["plus-20"]
    assert [t.id for t in view.undated] == ["undated"]


def test_timeline_window_shape(now) -> None:
    view = materialize_timeline([], now, days=14)
    assert len(view.days) == 14
    assert view.days[0] == now.date()
    assert [len(w) for w in view.weeks] == [7, 7]
    assert view.start.hour == 0
    assert view.end.date() == (now + 13 * DAY).date()


def test_timeline_partitions_every_task_once(now) -> None:
    tasks = [make_task(f"t{i}", due_date=now + (i - 5) * DAY) for i in range(25)] + [make_task("x")]
    view = materialize_timeline(tasks, now, days=14)
    assert view.bucket_count() == len(tasks)


def test_timeline_day_bucket_sorted_by_due_time(now) -> None:
    evening = now.replace(hour=20)
    morning = now.replace(hour=8)
    view = materialize_timeline([make_task("evening", due_date=evening), make_task("morning", due_date=morning)], now)
    assert [t.id for t in view.tasks_on(now.date().isoformat())] == ["morning", "evening"]


def test_timeline_last_day_is_inclusive(now) -> None:
    last = (now + 13 * DAY).replace(hour=23, minute=59)
    view = materialize_timeline([make_task("edge", due_date=last)], now, days=14)
    assert view.later == []
    assert [t.id for t in view.tasks_on(last.date())] == ["edge"]


def test_sections_first_match_wins(now) -> None:
    tasks = [
        make_task("fresh-due-today", inserted_at=now - timedelta(hours=3), due_date=now),
        make_task("due-today", inserted_at=now - 10 * DAY, due_date=now),
        make_task("due-soon", inserted_at=now - 10 * DAY, due_date=now + 3 * DAY),
        make_task("due-far", inserted_at=now - 10 * DAY, due_date=now + 30 * DAY),
        make_task("undated", inserted_at=now - 10 * DAY),
    ]
    sections = materialize_sections(tasks, now)
    by_id = {s.id: [t.id for t in s.tasks] for s in sections}

    assert [s.id for s in sections] == ["recent", "today", "soon", "later"]
    assert by_id["recent"] == ["fresh-due-today"]
    assert by_id["today"] == ["due-today"]
    assert by_id["soon"] == ["due-soon"]
    assert by_id["later"] == ["due-far", "undated"]
    assert sum(len(v) for v in by_id.values()) == len(tasks)


def test_sections_recent_uses_latest_activity(now) -> None:
    task = make_task("touched", inserted_at=now - 30 * DAY, updated_at=now - timedelta(hours=1))
    sections = materialize_sections([task], now)
    assert [t.id for t in sections[0].tasks] == ["touched"]


def test_sections_soon_ends_after_horizon_day(now) -> None:
    inside = (now + 7 * DAY).replace(hour=23)
    outside = now + 8 * DAY
    old = now - 10 * DAY
    sections = materialize_sections(
        [make_task("inside", due_date=inside, inserted_at=old), make_task("outside", due_date=outside, inserted_at=old)],
        now,
        soon_days=7,
    )
    by_id = {s.id: [t.id for t in s.tasks] for s in sections}
    assert by_id["soon"] == ["inside"]
    assert by_id["later"] == ["outside"]


def test_epic_grouping_sorted_with_ungrouped_bucket(now) -> None:
    tasks = [
        make_task("a", epic="Payments v2"),
        make_task("b"),
        make_task("c", epic="  "),
        make_task("d", epic="Auth"),
    ]
    sections = materialize_sections(tasks, now, grouping=SectionGrouping.EPIC)

    assert [s.title for s in sections] == ["Auth", UNGROUPED_EPIC_LABEL, "Payments v2"]
    assert [s.id for s in sections] == ["epic-auth", "epic-no-epic--group", "epic-payments-v2"]
    assert [t.id for t in sections[1].tasks] == ["b", "c"]
    assert epic_for_section(sections[1]) is None
    assert epic_for_section(sections[2]) == "Payments v2"


def test_epic_slug_falls_back_for_symbols() -> None:
    assert epic_slug("!!!") == "no-epic"
    assert epic_slug("Q3 Launch") == "q3-launch"
