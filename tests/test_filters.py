# tests/test_filters.py

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

from taskboard.tasks.filters import (
    ALL,
    UNASSIGNED,
    FilterState,
    SortMode,
    StatusFilter,
    available_tags,
    filter_tasks,
    prune_assignee_filter,
    quick_filters,
    sort_tasks,
)
from taskboard.tasks.task_models import Effort, Member, Priority

from .fakes import make_task


def test_status_and_priority_combine_with_and() -> None:
    tasks = [
        make_task("a", completed=False, priority=Priority.HIGH),
        make_task("b", completed=True, priority=Priority.HIGH),
        make_task("c", completed=False, priority=Priority.LOW),
    ]
    out = filter_tasks(tasks, FilterState(status=StatusFilter.PENDING, priority="high"))
    assert [t.id for t in out] == ["a"]


def test_filter_is_idempotent(tasks, now) -> None:
    f = FilterState(status=StatusFilter.PENDING, query="o", created_from=(now - timedelta(days=10)).date().isoformat())
    once = filter_tasks(tasks, f, tz=now.tzinfo)
    assert filter_tasks(once, f, tz=now.tzinfo) == once


def test_default_filters_keep_everything_in_order(tasks) -> None:
    assert filter_tasks(tasks, FilterState()) == tasks


def test_assignee_all_unassigned_and_member() -> None:
    tasks = [make_task("a", assigned_to="u1"), make_task("b"), make_task("c", assigned_to="u2")]
    assert [t.id for t in filter_tasks(tasks, FilterState(assignee=UNASSIGNED))] == ["b"]
    assert [t.id for t in filter_tasks(tasks, FilterState(assignee="u2"))] == ["c"]
    assert len(filter_tasks(tasks, FilterState(assignee=ALL))) == 3


def test_effort_and_tag_dimensions() -> None:
    tasks = [
        make_task("a", effort=Effort.S, tags=("Bug", "ui")),
        make_task("b", effort=Effort.L, tags=("bug",)),
        make_task("c", tags=("docs",)),
    ]
    assert [t.id for t in filter_tasks(tasks, FilterState(effort="m"))] == ["c"]
    assert [t.id for t in filter_tasks(tasks, FilterState(tag=" BUG "))] == ["a", "b"]


def test_query_matches_title_or_description_case_insensitive() -> None:
    tasks = [make_task("a", title="Fix LOGIN"), make_task("b", title="x", description="login flow"), make_task("c")]
    assert [t.id for t in filter_tasks(tasks, FilterState(query="  login "))] == ["a", "b"]


def test_due_before_excludes_tasks_without_due_date(now) -> None:
    tasks = [make_task("a", due_date=now), make_task("b")]
    out = filter_tasks(tasks, FilterState(due_before=now.date().isoformat()), tz=now.tzinfo)
    assert [t.id for t in out] == ["a"]


def test_due_before_is_inclusive_of_the_whole_day(now) -> None:
    late_evening = now.replace(hour=23, minute=30)
    tomorrow = now + timedelta(days=1)
    tasks = [make_task("a", due_date=late_evening), make_task("b", due_date=tomorrow)]
    out = filter_tasks(tasks, FilterState(due_before=now.date().isoformat()), tz=now.tzinfo)
    assert [t.id for t in out] == ["a"]


def test_created_range_bounds(now) -> None:
    day = timedelta(days=1)
    tasks = [
        make_task("old", inserted_at=now - 5 * day),
        make_task("mid", inserted_at=now - 2 * day),
        make_task("new", inserted_at=now),
        make_task("none"),
    ]
    f = FilterState(created_from=(now - 3 * day).date().isoformat(), created_to=(now - day).date().isoformat())
    assert [t.id for t in filter_tasks(tasks, f, tz=now.tzinfo)] == ["mid"]


def test_completed_before_requires_completion_timestamp(now) -> None:
    tasks = [
        make_task("done", completed=True, completed_at=now - timedelta(days=2)),
        make_task("done-no-ts", completed=True),
        make_task("open"),
    ]
    f = FilterState(completed_before=now.date().isoformat())
    assert [t.id for t in filter_tasks(tasks, f, tz=now.tzinfo)] == ["done"]


def test_invalid_date_input_means_no_boundary(tasks) -> None:
    assert filter_tasks(tasks, FilterState(due_before="not-a-date")) == tasks


def test_prune_resets_removed_member() -> None:
    f = FilterState(assignee="u9")
    members = [Member(member_id="u1", label="one")]
    assert prune_assignee_filter(f, members).assignee == ALL
    assert prune_assignee_filter(FilterState(assignee="u1"), members).assignee == "u1"
    assert prune_assignee_filter(FilterState(assignee=UNASSIGNED), []).assignee == UNASSIGNED


def test_is_default_ignores_sort_mode() -> None:
    assert FilterState(sort_mode=SortMode.PRIORITY).is_default()
    assert not replace(FilterState(), tag="x").is_default()


def test_sort_priority_then_due_then_newest(now) -> None:
    day = timedelta(days=1)
    tasks = [
        make_task("low", priority=Priority.LOW, due_date=now),
        make_task("high-late", priority=Priority.HIGH, due_date=now + 3 * day),
        make_task("high-undated", priority=Priority.HIGH),
        make_task("high-soon", priority=Priority.HIGH, due_date=now + day),
        make_task("med", priority=Priority.MEDIUM),
    ]
    out = sort_tasks(tasks, SortMode.PRIORITY)
    assert [t.id for t in out] == ["high-soon", "high-late", "high-undated", "med", "low"]


def test_sort_due_date_puts_undated_last_and_default_keeps_order(now) -> None:
    day = timedelta(days=1)
    tasks = [make_task("x"), make_task("b", due_date=now + day), make_task("a", due_date=now)]
    assert [t.id for t in sort_tasks(tasks, SortMode.DUE_DATE)] == ["a", "b", "x"]
    assert sort_tasks(tasks, SortMode.DEFAULT) == tasks


def test_sort_last_activity_uses_latest_stamp(now) -> None:
    day = timedelta(days=1)
    tasks = [
        make_task("a", inserted_at=now - 5 * day, updated_at=now),
        make_task("b", inserted_at=now - day),
        make_task("c"),
    ]
    assert [t.id for t in sort_tasks(tasks, SortMode.LAST_ACTIVITY)] == ["a", "b", "c"]


def test_available_tags_sorted_and_deduplicated() -> None:
    tasks = [make_task("a", tags=("Bug", "ui")), make_task("b", tags=("bug", " ", "api"))]
    assert available_tags(tasks) == ["api", "bug", "ui"]


def test_quick_filters_depend_on_membership_and_tags() -> None:
    members = [Member(member_id="u1", label="me")]
    ids = [p.id for p in quick_filters(user_id="u1", members=members, tags=["bug"])]
    assert "assigned-to-me" in ids
    assert "tag-bug" in ids
    assert "tag-frontend" not in ids

    ids = [p.id for p in quick_filters(user_id="u9", members=members, tags=[])]
    assert "assigned-to-me" not in ids
    assert ids[0] == "all"
