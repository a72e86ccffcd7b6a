# src/taskboard/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the App, opens the initial project, then runs the
console REPL on the asyncio event loop.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import App, create_app, initial_project
from ..config import get_settings
from ..connectors.console_connector import ConsoleHost, run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _shutdown(app: App) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await app.aclose()
    except Exception:
        logger.exception("Failed to close the session cleanly.")

    # SqliteKeyValueStore uses short-lived sqlite connections per call; close() is a no-op hook.
    if app.prefs is not None:
        app.prefs.close()


async def _run(app: App) -> None:
    try:
        project_id = initial_project(app)
        if project_id:
            await app.session.open_project(project_id)
        else:
            logger.info("No project configured. Use /project <id> to open one.")

        if app.settings.console_enabled:
            await run_console_loop(app)
        else:
            logger.info("Console disabled; nothing else to run.")
    finally:
        await _shutdown(app)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    # IMPORTANT: reuse same settings object
    app = create_app(settings=settings, host=ConsoleHost())

    try:
        asyncio.run(_run(app))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")

    logger.info("Bye.")


if __name__ == "__main__":
    main()
