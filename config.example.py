# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use:
- .env (local, gitignored)
- config_local.py (local safe overrides, gitignored)

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TODO_APP_NAME": "App display name (default: todo).",
    "TODO_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Connectors
    "TODO_CONSOLE_ENABLED": "Enable console connector (true/false, default: true).",
    "TODO_MATRIX_ENABLED": "Enable Matrix connector (true/false, default: false).",
    # Matrix
    "TODO_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "TODO_MATRIX_USER_ID": "Matrix user ID (bot).",
    "TODO_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "TODO_MATRIX_ROOMS": "Optional allowlist of room IDs (empty => all rooms).",
    # Paths (gitignored)
    "TODO_DATA_DIR": "Local data directory (default: .local/todo). Also holds todo.log.",
    "TODO_MATRIX_STORE_PATH": "Matrix session directory (default: <data_dir>/matrix_store).",
    "TODO_TASKS_PATH": "Task snapshot JSON file (default: <data_dir>/tasks.json).",
    # Tasks
    "TODO_CONSOLE_OWNER_ID": "Owner id used for tasks created from the console (default: 0).",
    "TODO_AGENDA_WINDOW": (
        "trailing (default): dated tasks due at most N days ago or any time later; "
        "upcoming: dated tasks due today or within the next N days."
    ),
    "TODO_AGENDA_DAYS": "N for the agenda window (default: 7).",
    "TODO_CORRUPT_STATE_POLICY": (
        "empty (default): move a corrupt tasks.json aside and start empty; "
        "fail: refuse to start."
    ),
    "TODO_SAVE_RETRIES": "Attempts per snapshot save before reporting an error (default: 3).",
    "TODO_SAVE_FATAL": "Stop the app when a save still fails after retries (true/false, default: false).",
}
