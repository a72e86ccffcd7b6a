# src/taskboard/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, cast

from ..core.errors import AlertChannel
from ..core.session import TaskViewSession
from ..tasks.filters import ALL, EFFORT_CHOICES, PRIORITY_CHOICES, UNASSIGNED, SortMode, StatusFilter
from ..tasks.mutations import MutationOutcome
from ..tasks.task_models import Effort, Priority, Task, ViewMode
from ..tasks.views import KanbanColumn, SectionGrouping
from .render import render_detail, render_status, render_view

if TYPE_CHECKING:
    from .bootstrap import App

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[["App", list[str]], CommandResult]
CommandHandler3 = Callable[["App", list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /view, /done, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, app: App, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            result = cast(CommandHandler3, handler)(app, args, emit)
        else:
            result = cast(CommandHandler2, handler)(app, args)

        if inspect.isawaitable(result):
            return await result
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def resolve_task(session: TaskViewSession, ref: str) -> Task | None:
    """A task by its number in the current list order, or by a unique id prefix."""
    ref = ref.strip()
    if not ref:
        return None
    if ref.isdigit():
        tasks = session.presented_tasks()
        idx = int(ref) - 1
        return tasks[idx] if 0 <= idx < len(tasks) else None
    exact = session.store.get(ref)
    if exact is not None:
        return exact
    matches = [t for t in session.store.tasks if t.id.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


def _outcome(session: TaskViewSession, outcome: MutationOutcome, done: str) -> str:
    if outcome == MutationOutcome.APPLIED:
        return done
    if outcome == MutationOutcome.SKIPPED:
        return "Nothing to do."
    return session.alerts.message(AlertChannel.TASKS) or "The change was not applied."


def _member_arg(app: App, raw: str) -> str | None:
    raw = raw.strip()
    if raw.lower() in ("", "none", "-", "nobody"):
        return None
    if raw.lower() == "me":
        return app.session.user_id
    for m in app.session.state.members:
        if raw in (m.member_id, m.label):
            return m.member_id
    return raw


# ---- session / project ----


def cmd_help(app: App, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(app: App, args: list[str]) -> str:
    backend = "in-memory demo" if app.demo else f"REST {app.settings.rest_url}"
    return f"Status ({_ts_local()}, {backend}):\n" + render_status(app.session)


async def cmd_project(app: App, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /project       -> show the active project
    /project <id>  -> switch project
    """
    if not args:
        return f"Active project: {app.session.project_id or '-'}"
    if emit:
        emit(f"Loading project {args[0]}...")
    ok = await app.session.open_project(args[0])
    report = app.session.report()
    if not ok:
        return f"Project {args[0]} opened with errors.\n" + render_status(app.session)
    return f"Project {args[0]}: {report.summary.total} tasks ({report.summary.pending} pending)."


async def cmd_refresh(app: App, args: list[str]) -> str:
    ok = await app.session.refresh()
    if not ok:
        return app.session.alerts.message(AlertChannel.TASKS) or "Nothing to refresh (no project)."
    return f"Reloaded {len(app.session.store)} tasks."


def cmd_dismiss(app: App, args: list[str]) -> str:
    """
    /dismiss            -> clear every alert
    /dismiss <channel>  -> tasks | subtasks | preferences
    """
    if not args:
        app.session.alerts.clear()
        return "Alerts cleared."
    try:
        channel = AlertChannel(args[0].lower())
    except ValueError:
        return "Usage: /dismiss [tasks|subtasks|preferences]"
    app.session.alerts.dismiss(channel)
    return f"Dismissed {channel.value} alert."


# ---- presentation ----


def cmd_view(app: App, args: list[str]) -> str:
    """
    /view         -> cycle list -> kanban -> timeline -> sections
    /view <mode>  -> switch directly
    """
    session = app.session
    if not args or args[0].lower() == "next":
        mode = session.cycle_view_mode()
    else:
        try:
            mode = session.set_view_mode(args[0].lower())
        except ValueError:
            return "Usage: /view [list|kanban|timeline|sections|next]"
    return render_view(session, mode)


def cmd_show(app: App, args: list[str]) -> str:
    mode = None
    if args:
        try:
            mode = ViewMode(args[0].lower())
        except ValueError:
            return "Usage: /show [list|kanban|timeline|sections]"
    return render_view(app.session, mode)


def cmd_sort(app: App, args: list[str]) -> str:
    if not args:
        return f"Sort: {app.session.state.filters.sort_mode.value}. Options: " + ", ".join(m.value for m in SortMode)
    try:
        app.session.set_sort_mode(args[0].lower())
    except ValueError:
        return "Usage: /sort default|priority|due_date|last_activity"
    return render_view(app.session)


def cmd_group(app: App, args: list[str]) -> str:
    if not args:
        return f"Sections grouping: {app.session.state.sections_grouping.value} (dates|epic)"
    try:
        app.session.set_sections_grouping(args[0].lower())
    except ValueError:
        return "Usage: /group dates|epic"
    return render_view(app.session, ViewMode.SECTIONS)


_FILTER_KEYS = {
    "status": "status",
    "assignee": "assignee",
    "who": "assignee",
    "priority": "priority",
    "effort": "effort",
    "tag": "tag",
    "q": "query",
    "query": "query",
    "from": "created_from",
    "to": "created_to",
    "due": "due_before",
    "done": "completed_before",
}


def cmd_filter(app: App, args: list[str]) -> str:
    """
    /filter                       -> list quick filters
    /filter preset <id>           -> apply a quick filter
    /filter key=value [...]       -> status, assignee, priority, effort, tag, q, from, to, due, done
    """
    session = app.session
    if not args:
        lines = ["Quick filters (use /filter preset <id>):"]
        lines.extend(f"  {p.id:<20} {p.label}" for p in session.quick_filters())
        lines.append("Fields: " + ", ".join(sorted(set(_FILTER_KEYS))))
        tags = session.available_tags()
        if tags:
            lines.append("Tags: " + ", ".join(tags))
        return "\n".join(lines)

    if args[0].lower() == "preset":
        if len(args) < 2 or not session.apply_quick_filter(args[1]):
            return "Unknown preset. Use /filter to list them."
        return render_view(session)

    changes: dict[str, Any] = {}
    text_words: list[str] = []
    for arg in args:
        key, sep, value = arg.partition("=")
        field = _FILTER_KEYS.get(key.lower()) if sep else None
        if field is None:
            text_words.append(arg)
            continue
        value = value.strip()
        if field == "status":
            try:
                changes[field] = StatusFilter(value.lower() or ALL)
            except ValueError:
                return "status must be all, pending or completed."
        elif field == "assignee":
            low = value.lower()
            if low in (ALL, UNASSIGNED):
                changes[field] = low
            else:
                changes[field] = _member_arg(app, value) or ALL
        elif field == "priority":
            if value.lower() not in PRIORITY_CHOICES:
                return "priority must be all, high, medium or low."
            changes[field] = value.lower()
        elif field == "effort":
            if value.lower() not in EFFORT_CHOICES:
                return "effort must be all, s, m or l."
            changes[field] = value.lower()
        else:
            changes[field] = value

    if text_words:
        changes["query"] = " ".join(text_words)

    session.set_filters(**changes)
    return render_view(session)


def cmd_reset(app: App, args: list[str]) -> str:
    app.session.reset_filters()
    return render_view(app.session)


# ---- tasks ----


async def cmd_add(app: App, args: list[str]) -> str:
    """/add <title words> [due=YYYY-MM-DD] [p=high|medium|low] [e=s|m|l]"""
    session = app.session
    words: list[str] = []
    draft = replace(session.state.draft)
    for arg in args:
        key, sep, value = arg.partition("=")
        k = key.lower()
        if sep and k in ("due", "d"):
            draft = replace(draft, due_date=value)
        elif sep and k in ("p", "priority"):
            draft = replace(draft, priority=Priority.from_raw(value))
        elif sep and k in ("e", "effort"):
            draft = replace(draft, effort=Effort.from_raw(value))
        else:
            words.append(arg)

    draft = replace(draft, title=" ".join(words))
    if not draft.title.strip():
        session.focus_new_task_input()
        return "Usage: /add <title> [due=YYYY-MM-DD] [p=high|medium|low] [e=s|m|l]"

    created = await session.submit_new_task(draft)
    if created is None:
        return session.alerts.message(AlertChannel.TASKS) or "Task was not created."
    return f"Created: {created.title}"


def _with_task(app: App, args: list[str], usage: str) -> tuple[Task | None, str | None]:
    if not args:
        return None, usage
    task = resolve_task(app.session, args[0])
    if task is None:
        return None, f"No task matches '{args[0]}'."
    return task, None


async def cmd_done(app: App, args: list[str]) -> str:
    task, err = _with_task(app, args, "Usage: /done <n|id>")
    if task is None:
        return err or ""
    outcome = await app.session.toggle_completion(task.id)
    state = "reopened" if task.completed else "completed"
    return _outcome(app.session, outcome, f"{task.title}: {state}.")


async def cmd_assign(app: App, args: list[str]) -> str:
    task, err = _with_task(app, args, "Usage: /assign <n|id> <member|me|none>")
    if task is None:
        return err or ""
    assignee = _member_arg(app, args[1]) if len(args) > 1 else None
    outcome = await app.session.reassign(task.id, assignee)
    return _outcome(app.session, outcome, f"{task.title}: assigned to {app.session.state.member_label(assignee)}.")


async def cmd_priority(app: App, args: list[str]) -> str:
    task, err = _with_task(app, args, "Usage: /priority <n|id> high|medium|low")
    if task is None:
        return err or ""
    if len(args) < 2 or args[1].lower() not in {p.value for p in Priority}:
        return "Usage: /priority <n|id> high|medium|low"
    outcome = await app.session.change_priority(task.id, args[1].lower())
    return _outcome(app.session, outcome, f"{task.title}: priority {args[1].lower()}.")


async def cmd_effort(app: App, args: list[str]) -> str:
    task, err = _with_task(app, args, "Usage: /effort <n|id> s|m|l")
    if task is None:
        return err or ""
    if len(args) < 2 or args[1].lower() not in {e.value for e in Effort}:
        return "Usage: /effort <n|id> s|m|l"
    outcome = await app.session.change_effort(task.id, args[1].lower())
    return _outcome(app.session, outcome, f"{task.title}: effort {args[1].upper()}.")


async def cmd_epic(app: App, args: list[str]) -> str:
    task, err = _with_task(app, args, "Usage: /epic <n|id> [label]")
    if task is None:
        return err or ""
    label = " ".join(args[1:]) or None
    outcome = await app.session.change_epic(task.id, label)
    return _outcome(app.session, outcome, f"{task.title}: epic {label or 'cleared'}.")


async def cmd_tags(app: App, args: list[str]) -> str:
    task, err = _with_task(app, args, "Usage: /tags <n|id> [tag,tag,...]")
    if task is None:
        return err or ""
    outcome = await app.session.change_tags(task.id, " ".join(args[1:]).replace(" ", ","))
    return _outcome(app.session, outcome, f"{task.title}: tags updated.")


async def cmd_move(app: App, args: list[str]) -> str:
    """/move <n|id> pending|completed|<section id>"""
    task, err = _with_task(app, args, "Usage: /move <n|id> pending|completed|<section id>")
    if task is None:
        return err or ""
    if len(args) < 2:
        return "Usage: /move <n|id> pending|completed|<section id>"
    target = args[1]
    if target.lower() in {c.value for c in KanbanColumn}:
        outcome = await app.session.move_task_to_column(task.id, target.lower())
    else:
        if app.session.state.sections_grouping != SectionGrouping.EPIC:
            return "Only epic sections accept moves (use /group epic)."
        outcome = await app.session.move_task_to_section(task.id, target)
    return _outcome(app.session, outcome, f"{task.title}: moved to {target}.")


async def cmd_rm(app: App, args: list[str]) -> str:
    task, err = _with_task(app, args, "Usage: /rm <n|id>")
    if task is None:
        return err or ""
    outcome = await app.session.delete_task(task.id)
    return _outcome(app.session, outcome, f"Deleted: {task.title}")


async def cmd_open(app: App, args: list[str]) -> str:
    task, err = _with_task(app, args, "Usage: /open <n|id>")
    if task is None:
        return err or ""
    await app.session.select_task(task.id)
    return render_detail(app.session, task)


async def cmd_sub(app: App, args: list[str]) -> str:
    """
    /sub add <title>   -> add a subtask to the opened task
    /sub toggle <n>    -> flip a subtask
    /sub rm <n>        -> delete a subtask
    """
    session = app.session
    task = session.selected_task()
    if task is None:
        return "Open a task first: /open <n|id>"
    if not args:
        return render_detail(session, task)

    sub = args[0].lower()
    if sub == "add":
        created = await session.add_subtask(" ".join(args[1:]))
        if created is None:
            return session.alerts.message(AlertChannel.SUBTASKS) or "Usage: /sub add <title>"
        return render_detail(session, task)

    if sub in ("toggle", "rm") and len(args) > 1 and args[1].isdigit():
        items = session.selected_subtasks()
        idx = int(args[1]) - 1
        if not 0 <= idx < len(items):
            return f"No subtask #{args[1]}."
        if sub == "toggle":
            ok = await session.toggle_subtask(items[idx].id)
        else:
            ok = await session.delete_subtask(items[idx].id)
        if not ok:
            return session.alerts.message(AlertChannel.SUBTASKS) or "Subtask was not changed."
        return render_detail(session, task)

    return "Usage: /sub add <title> | /sub toggle <n> | /sub rm <n>"


async def cmd_select(app: App, args: list[str]) -> str:
    """/select <n|id> [...] toggles bulk selection; /select clear empties it."""
    session = app.session
    if args and args[0].lower() == "clear":
        session.clear_selection()
        return "Selection cleared."
    for ref in args:
        task = resolve_task(session, ref)
        if task is not None:
            session.toggle_selected(task.id)
    return f"{len(session.state.selected_ids)} task(s) selected."


async def cmd_bulk(app: App, args: list[str]) -> str:
    """/bulk done|undone|priority <p>|assign <member|none> over the selection."""
    session = app.session
    if not session.state.selected_ids:
        return "Nothing selected. Use /select <n> first."
    if not args:
        return "Usage: /bulk done|undone|priority <p>|assign <member|none>"
    action = args[0].lower()
    if action in ("done", "undone"):
        outcome = await session.bulk_set_completion(action == "done")
    elif action == "priority" and len(args) > 1:
        outcome = await session.bulk_set_priority(args[1].lower())
    elif action == "assign":
        outcome = await session.bulk_set_assignee(_member_arg(app, args[1]) if len(args) > 1 else None)
    else:
        return "Usage: /bulk done|undone|priority <p>|assign <member|none>"
    if outcome == MutationOutcome.NO_EFFECT:
        return "No selected task was updated."
    return _outcome(session, outcome, "Bulk update applied.")


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Project, view, filters and summary.")
registry.register("project", cmd_project, help_text="Show or switch project: /project [id].")
registry.register("view", cmd_view, help_text="Cycle or set the view: /view [list|kanban|timeline|sections].")
registry.register("show", cmd_show, help_text="Render the current (or given) view.", aliases=["ls"])
registry.register("filter", cmd_filter, help_text="Filter tasks: /filter key=value ... | /filter preset <id>.")
registry.register("reset", cmd_reset, help_text="Reset filters (sort mode is kept).")
registry.register("sort", cmd_sort, help_text="Sort: /sort default|priority|due_date|last_activity.")
registry.register("group", cmd_group, help_text="Sections grouping: /group dates|epic.")
registry.register("add", cmd_add, help_text="Create a task: /add <title> [due=..] [p=..] [e=..].", aliases=["new"])
registry.register("done", cmd_done, help_text="Toggle completion: /done <n|id>.")
registry.register("assign", cmd_assign, help_text="Reassign: /assign <n|id> <member|me|none>.")
registry.register("priority", cmd_priority, help_text="Change priority: /priority <n|id> <p>.")
registry.register("effort", cmd_effort, help_text="Change effort: /effort <n|id> s|m|l.")
registry.register("epic", cmd_epic, help_text="Set or clear the epic: /epic <n|id> [label].")
registry.register("tags", cmd_tags, help_text="Replace tags: /tags <n|id> [a,b,...].")
registry.register("move", cmd_move, help_text="Move to a kanban column or epic section.")
registry.register("open", cmd_open, help_text="Open task detail with subtasks: /open <n|id>.")
registry.register("sub", cmd_sub, help_text="Subtasks of the opened task: /sub add|toggle|rm.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <n|id>.")
registry.register("select", cmd_select, help_text="Toggle bulk selection: /select <n> ... | clear.")
registry.register("bulk", cmd_bulk, help_text="Bulk update the selection: /bulk done|undone|priority|assign.")
registry.register("refresh", cmd_refresh, help_text="Reload tasks, members and subtask counts.")
registry.register("dismiss", cmd_dismiss, help_text="Dismiss alerts: /dismiss [tasks|subtasks|preferences].")
