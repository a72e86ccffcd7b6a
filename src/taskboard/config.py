# src/taskboard/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Every knob has a sane default so the offline demo runs with an empty env.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKBOARD"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool

    # ---- Remote backend (PostgREST / Supabase compatible) ----
    rest_url: str | None
    rest_api_key: str | None
    rest_access_token: str | None
    http_timeout_seconds: float

    # ---- Identity of the acting user / initial project ----
    user_id: str | None
    user_email: str | None
    project_id: str | None

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    prefs_db_path: Path

    # ---- View tuning ----
    timeline_days: int
    recent_days: int
    soon_days: int
    subtask_meta_limit: int

    @property
    def remote_configured(self) -> bool:
        return bool(self.rest_url and self.rest_api_key)

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskboard") or "taskboard"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        # Accept the stock Supabase names as a fallback.
        rest_url = (_first_env(_k("REST_URL"), "SUPABASE_URL", default="") or "").strip() or None
        rest_api_key = (_first_env(_k("REST_API_KEY"), "SUPABASE_ANON_KEY", default="") or "").strip() or None
        rest_access_token = (_first_env(_k("REST_ACCESS_TOKEN"), default="") or "").strip() or None
        http_timeout_seconds = max(1.0, _env_float(_k("HTTP_TIMEOUT_SECONDS"), 15.0))

        user_id = (_env(_k("USER_ID"), "") or "").strip() or None
        user_email = (_env(_k("USER_EMAIL"), "") or "").strip() or None
        project_id = (_env(_k("PROJECT_ID"), "") or "").strip() or None

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskboard"))
        prefs_db_path = _env_path(_k("PREFS_DB_PATH"), data_dir / "prefs.sqlite3")

        timeline_days = max(1, _env_int(_k("TIMELINE_DAYS"), 14))
        recent_days = max(0, _env_int(_k("RECENT_DAYS"), 2))
        soon_days = max(1, _env_int(_k("SOON_DAYS"), 7))
        subtask_meta_limit = max(1, _env_int(_k("SUBTASK_META_LIMIT"), 2000))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            rest_url=rest_url,
            rest_api_key=rest_api_key,
            rest_access_token=rest_access_token,
            http_timeout_seconds=http_timeout_seconds,
            user_id=user_id,
            user_email=user_email,
            project_id=project_id,
            data_dir=data_dir,
            prefs_db_path=prefs_db_path,
            timeline_days=timeline_days,
            recent_days=recent_days,
            soon_days=soon_days,
            subtask_meta_limit=subtask_meta_limit,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
