# src/taskboard/cli/render.py

"""Plain-text rendering of the session's projections for the console."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from ..core.errors import AlertKind
from ..core.session import TaskViewSession
from ..tasks.subtasks import SubtaskCounts
from ..tasks.task_models import Priority, Task, ViewMode

_PRIORITY_MARK = {Priority.HIGH: "!!", Priority.MEDIUM: "! ", Priority.LOW: ". "}


def _due(dt: datetime | None) -> str:
    return dt.strftime("%Y-%m-%d") if dt is not None else "-"


def _counts(counts: SubtaskCounts) -> str:
    return f" [{counts.completed}/{counts.total}]" if counts.total else ""


def task_line(session: TaskViewSession, task: Task, *, index: int | None = None, overdue: bool = False) -> str:
    box = "[x]" if task.completed else "[ ]"
    if session.mutations.is_pending(task.id):
        box = "[~]"
    prefix = f"{index:>3}. " if index is not None else "  - "
    who = session.state.member_label(task.assigned_to) if task.assigned_to else "unassigned"
    flags = " OVERDUE" if overdue else ""
    tags = f" #{' #'.join(task.tags)}" if task.tags else ""
    return (
        f"{prefix}{box} {_PRIORITY_MARK.get(task.priority, '  ')} {task.title}"
        f"  (due {_due(task.due_date)}, {who}, {task.effort.value.upper()})"
        f"{_counts(session.subtasks.counts(task.id))}{tags}{flags}"
    )


def _numbered(session: TaskViewSession) -> dict[str, int]:
    return {t.id: i for i, t in enumerate(session.presented_tasks(), start=1)}


def _lines(session: TaskViewSession, tasks: Sequence[Task], numbers: dict[str, int], *, now: datetime) -> list[str]:
    return [task_line(session, t, index=numbers.get(t.id), overdue=t.is_overdue(now)) for t in tasks]


def render_list(session: TaskViewSession) -> str:
    view = session.list_view()
    lines = [f"List: {view.visible_pending} pending, {view.visible_completed} completed"]
    for i, row in enumerate(view.rows, start=1):
        lines.append(task_line(session, row.task, index=i, overdue=row.overdue))
    return "\n".join(lines)


def render_kanban(session: TaskViewSession) -> str:
    view = session.kanban_view()
    numbers = _numbered(session)
    now = session.now()
    lines: list[str] = []
    for column, tasks in view.columns().items():
        lines.append(f"== {column.value.upper()} ({len(tasks)})")
        lines.extend(_lines(session, tasks, numbers, now=now) or ["  (empty)"])
    return "\n".join(lines)


def render_timeline(session: TaskViewSession) -> str:
    view = session.timeline_view()
    numbers = _numbered(session)
    now = session.now()
    lines: list[str] = []
    if view.overdue:
        lines.append(f"== Overdue ({len(view.overdue)})")
        lines.extend(_lines(session, view.overdue, numbers, now=now))
    for week in view.weeks:
        lines.append(f"== Week of {week[0].isoformat()}")
        for day in week:
            tasks = view.tasks_on(day)
            if tasks:
                lines.append(f"  {day.strftime('%a %d %b')}")
                lines.extend("  " + line for line in _lines(session, tasks, numbers, now=now))
    if view.later:
        lines.append(f"== Later ({len(view.later)})")
        lines.extend(_lines(session, view.later, numbers, now=now))
    if view.undated:
        lines.append(f"== No due date ({len(view.undated)})")
        lines.extend(_lines(session, view.undated, numbers, now=now))
    return "\n".join(lines) or "Timeline is empty."


def render_sections(session: TaskViewSession) -> str:
    numbers = _numbered(session)
    now = session.now()
    lines: list[str] = []
    for section in session.sections_view():
        lines.append(f"== {section.title} ({len(section.tasks)})  [{section.id}]")
        lines.extend(_lines(session, section.tasks, numbers, now=now) or [f"  {section.empty_label}"])
    return "\n".join(lines)


_RENDERERS = {
    ViewMode.LIST: render_list,
    ViewMode.KANBAN: render_kanban,
    ViewMode.TIMELINE: render_timeline,
    ViewMode.SECTIONS: render_sections,
}


def render_view(session: TaskViewSession, mode: ViewMode | None = None) -> str:
    report = session.report()
    if report.is_empty:
        body = "No tasks in this project yet. Use /add <title> to create one."
    elif report.is_filtered_empty:
        body = "No task matches the current filters. Use /reset to clear them."
    else:
        body = _RENDERERS[mode or session.state.view_mode](session)
    return "\n".join([*render_alerts(session), body])


def render_alerts(session: TaskViewSession) -> list[str]:
    out = []
    for alert in session.alerts.active():
        tag = "NO EFFECT" if alert.kind == AlertKind.NO_EFFECT else "ERROR"
        out.append(f"[{tag}][{alert.channel.value}] {alert.message}")
    return out


def render_detail(session: TaskViewSession, task: Task) -> str:
    s = session.state
    lines = [
        f"{task.title}  ({'completed' if task.completed else 'pending'})",
        f"  id:        {task.id}",
        f"  assignee:  {s.member_label(task.assigned_to) if task.assigned_to else 'unassigned'}",
        f"  priority:  {task.priority.value}   effort: {task.effort.value}",
        f"  due:       {_due(task.due_date)}",
        f"  epic:      {task.epic or '-'}",
        f"  tags:      {', '.join(task.tags) or '-'}",
    ]
    if task.description:
        lines.append(f"  {task.description}")

    counts = session.subtasks.counts(task.id)
    lines.append(f"  subtasks:  {counts.completed}/{counts.total}")
    for i, sub in enumerate(session.selected_subtasks(), start=1):
        lines.append(f"    {i}. {'[x]' if sub.completed else '[ ]'} {sub.title}")
    lines.extend(render_alerts(session))
    return "\n".join(lines)


def render_status(session: TaskViewSession) -> str:
    report = session.report()
    f = session.state.filters
    active = [
        f"{name}={value}"
        for name, value in (
            ("status", f.status.value),
            ("assignee", f.assignee),
            ("priority", f.priority),
            ("effort", f.effort),
            ("tag", f.tag),
            ("q", f.query),
            ("from", f.created_from),
            ("to", f.created_to),
            ("due", f.due_before),
            ("done", f.completed_before),
        )
        if value and value != "all"
    ]
    return "\n".join(
        [
            f"Project: {session.project_id or '-'}   user: {session.user_id or '-'}   live: {'yes' if session.live else 'no'}",
            f"View: {session.state.view_mode.value}   sort: {f.sort_mode.value}   grouping: {session.state.sections_grouping.value}",
            f"Filters: {', '.join(active) or 'none'}",
            (
                f"Tasks: {report.summary.total} total, {report.summary.pending} pending, "
                f"{report.summary.completed} completed ({report.visible.total} visible)"
            ),
            (
                f"High priority: {report.high_priority.overdue} overdue, {report.high_priority.due_today} due today;"
                f" on time {report.completion.on_time}, late {report.completion.late}; streak {report.streak}d"
            ),
            *render_alerts(session),
        ]
    )
