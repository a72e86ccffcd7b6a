# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real keys. Use:
- .env (local, gitignored)

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "TASKBOARD_APP_NAME": "App display name (default: taskboard).",
    "TASKBOARD_LOG_LEVEL": "Console logging level (default: INFO). The file log is always DEBUG.",
    # Connectors
    "TASKBOARD_CONSOLE_ENABLED": "Enable the console connector (true/false, default: true).",
    # Remote backend (PostgREST / Supabase). Unset => in-memory demo project.
    "TASKBOARD_REST_URL": "Backend base URL; '/rest/v1' is appended when missing. Fallback: SUPABASE_URL.",
    "TASKBOARD_REST_API_KEY": "API key sent as 'apikey'. Fallback: SUPABASE_ANON_KEY.",
    "TASKBOARD_REST_ACCESS_TOKEN": "Optional user access token (Bearer); defaults to the API key.",
    "TASKBOARD_HTTP_TIMEOUT_SECONDS": "HTTP timeout in seconds (default: 15, minimum 1).",
    # Identity
    "TASKBOARD_USER_ID": "Acting user id (stamped as updated_by; demo: demo-user).",
    "TASKBOARD_USER_EMAIL": "Acting user email (owner_email on new tasks).",
    "TASKBOARD_PROJECT_ID": "Project opened at startup (demo: demo-project).",
    # Paths (gitignored)
    "TASKBOARD_DATA_DIR": "Local data directory (default: .local/taskboard).",
    "TASKBOARD_PREFS_DB_PATH": "Filter preferences SQLite path (default: <data_dir>/prefs.sqlite3).",
    # View tuning
    "TASKBOARD_TIMELINE_DAYS": "Timeline window in days, starting today (default: 14).",
    "TASKBOARD_RECENT_DAYS": "'Recently assigned' section window in days (default: 2).",
    "TASKBOARD_SOON_DAYS": "'Coming up' section horizon in days after today (default: 7).",
    "TASKBOARD_SUBTASK_META_LIMIT": "Row limit for the bulk subtask count fetch (default: 2000).",
}
