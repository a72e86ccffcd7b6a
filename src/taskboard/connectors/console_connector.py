# src/taskboard/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime
from typing import TYPE_CHECKING

from ..cli.commands import registry as command_registry
from ..cli.render import render_view
from ..tasks.task_models import ViewMode

if TYPE_CHECKING:
    from ..cli.bootstrap import App

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


class ConsoleHost:
    """ViewHost for the terminal: notifications become one-line messages."""

    def __init__(self) -> None:
        self.focus_requested = False

    def view_mode_changed(self, mode: ViewMode) -> None:
        _print_ts(f"[VIEW] {mode.value}")

    def summary_changed(self, summary: dict[str, int]) -> None:
        _print_ts(
            f"[SUMMARY] {summary.get('total', 0)} total, "
            f"{summary.get('pending', 0)} pending, {summary.get('completed', 0)} completed"
        )

    def focus_new_task_input(self) -> None:
        self.focus_requested = True


async def run_console_loop(app: App) -> None:
    """Read slash commands until /exit, EOF or Ctrl+C; input() runs in a worker thread."""
    session = app.session
    logger.info("Console connector started (project=%s).", session.project_id)
    _print_ts("[CONSOLE] Use /help for commands, /view to switch views, /exit to quit.\n")

    if session.project_id:
        print(render_view(session))

    host = app.host

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations (project switch).
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        prompt = "+ New task: " if getattr(host, "focus_requested", False) else ">>> "
        try:
            user_input = (await asyncio.to_thread(input, prompt)).strip()
            _rewrite_prev_line(f"[{_ts_local()}] {prompt}{user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if isinstance(host, ConsoleHost) and host.focus_requested:
            host.focus_requested = False
            if user_input and not user_input.startswith("/"):
                user_input = f"/add {user_input}"

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            # Bare text filters the current view by title/description.
            user_input = f"/filter {user_input}"

        try:
            cmd_response = await command_registry.handle(app, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is not None:
            print(f"[{_ts_local()}] {cmd_response}\n")

    logger.info("Console connector finished.")
