# tests/test_commands.py

from __future__ import annotations

import pytest

from taskboard.cli.bootstrap import App
from taskboard.cli.commands import CommandRegistry, registry, resolve_task
from taskboard.config import get_settings
from taskboard.tasks.filters import StatusFilter
from taskboard.tasks.task_models import ViewMode


@pytest.fixture()
def app(session) -> App:
    return App(settings=get_settings(), session=session, backend=None, prefs=None, demo=True)


@pytest.mark.asyncio
async def test_command_registry_routes_2_and_3_params(app) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}
    notes: list[str] = []

    def h2(app, args):
        called["h2"] += 1
        return "h2:" + ",".join(args)

    async def h3(app, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    assert await reg.handle(app, "/a x y") == "h2:x,y"
    assert await reg.handle(app, "/BEE", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(app) -> None:
    reg = CommandRegistry()
    assert await reg.handle(app, "hello") is None
    assert "Unknown command" in (await reg.handle(app, "/nope") or "")
    assert "Empty command" in (await reg.handle(app, "/") or "")


@pytest.mark.asyncio
async def test_help_lists_registered_commands(app) -> None:
    reply = await registry.handle(app, "/help")
    assert "/filter" in reply
    assert "/view" in reply


@pytest.mark.asyncio
async def test_resolve_task_by_number_and_prefix(app) -> None:
    await app.session.open_project("p1")

    assert resolve_task(app.session, "1").id == "t1"
    assert resolve_task(app.session, "t4").id == "t4"
    assert resolve_task(app.session, "t") is None
    assert resolve_task(app.session, "99") is None


@pytest.mark.asyncio
async def test_filter_command_sets_fields_and_query(app) -> None:
    await app.session.open_project("p1")

    await registry.handle(app, "/filter status=pending who=me login")

    filters = app.session.state.filters
    assert filters.status is StatusFilter.PENDING
    assert filters.assignee == "u1"
    assert filters.query == "login"


@pytest.mark.asyncio
async def test_filter_command_rejects_bad_priority(app) -> None:
    reply = await registry.handle(app, "/filter priority=urgent")
    assert "priority must be" in reply


@pytest.mark.asyncio
async def test_view_command_cycles(app, host) -> None:
    await app.session.open_project("p1")

    reply = await registry.handle(app, "/view")

    assert app.session.state.view_mode is ViewMode.KANBAN
    assert host.modes == [ViewMode.KANBAN]
    assert "== PENDING (3)" in reply


@pytest.mark.asyncio
async def test_done_and_add_commands(app) -> None:
    await app.session.open_project("p1")

    reply = await registry.handle(app, "/done t2")
    assert "completed" in reply
    assert app.session.store.get("t2").completed is True

    reply = await registry.handle(app, "/add Call the vendor due=2026-03-12 p=high")
    assert reply == "Created: Call the vendor"
    assert app.session.store.tasks[0].title == "Call the vendor"


@pytest.mark.asyncio
async def test_add_without_title_requests_focus(app, host) -> None:
    reply = await registry.handle(app, "/add")
    assert reply.startswith("Usage")
    assert host.focus_calls == 1


@pytest.mark.asyncio
async def test_bulk_requires_selection(app) -> None:
    await app.session.open_project("p1")
    assert "Nothing selected" in await registry.handle(app, "/bulk done")

    await registry.handle(app, "/select t1 t2")
    assert await registry.handle(app, "/bulk priority low") == "Bulk update applied."
    assert app.session.state.selected_ids == frozenset()
