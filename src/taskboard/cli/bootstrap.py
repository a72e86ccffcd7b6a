# src/taskboard/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the backend (REST when configured, otherwise the seeded in-memory demo),
- wires backend, preference store and host into a TaskViewSession.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..config import Settings, get_settings
from ..core.ports import TaskEventFeed, ViewHost
from ..core.session import TaskViewSession
from ..remote.memory_backend import InMemoryBackend, seed_demo
from ..remote.rest_client import RestBackend
from ..storage.kv_store import SqliteKeyValueStore

logger = logging.getLogger(__name__)

DEMO_USER_ID = "demo-user"
DEMO_PROJECT_ID = "demo-project"


@dataclass(slots=True)
class App:
    settings: Settings
    session: TaskViewSession
    backend: Any
    prefs: SqliteKeyValueStore | None
    host: ViewHost | None = None
    demo: bool = False

    async def aclose(self) -> None:
        await self.session.close()
        closer = getattr(self.backend, "aclose", None)
        if closer is not None:
            await closer()


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.prefs_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_app(*, settings: Settings | None = None, host: ViewHost | None = None) -> App:
    """
    Build the App from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    backend: Any
    feed: TaskEventFeed | None
    user_id = settings.user_id
    demo = not settings.remote_configured

    if demo:
        backend = InMemoryBackend()
        user_id = user_id or DEMO_USER_ID
        seed_demo(backend, settings.project_id or DEMO_PROJECT_ID, user_id)
        feed = backend
        logger.info("No REST backend configured; using in-memory demo data.")
    else:
        backend = RestBackend(
            settings.rest_url or "",
            settings.rest_api_key or "",
            access_token=settings.rest_access_token,
            timeout=settings.http_timeout_seconds,
        )
        # The REST transport has no push channel; reload with /refresh.
        feed = None

    prefs: SqliteKeyValueStore | None
    try:
        prefs = SqliteKeyValueStore(settings.prefs_db_path)
    except Exception:
        logger.exception("Preference store unavailable; filters will not be remembered.")
        prefs = None

    session = TaskViewSession(
        tasks=backend,
        subtasks=backend,
        members=backend,
        feed=feed,
        prefs_slot=prefs,
        host=host,
        user_id=user_id,
        user_email=settings.user_email,
        timeline_days=settings.timeline_days,
        recent_days=settings.recent_days,
        soon_days=settings.soon_days,
        subtask_meta_limit=settings.subtask_meta_limit,
    )
    return App(settings=settings, session=session, backend=backend, prefs=prefs, host=host, demo=demo)


def initial_project(app: App) -> str | None:
    if app.settings.project_id:
        return app.settings.project_id
    return DEMO_PROJECT_ID if app.demo else None
