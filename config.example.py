# config.example.py

"""
Documentation-only module (safe to commit).

Process configuration is loaded from environment variables (optionally via a local .env file).
User-changeable knobs (autoSync, urgency coefficients, page size) live in the JSON settings
file instead; see SETTINGS_FILE_EXAMPLE below.
"""

ENV_VARS = {
    # App / logging
    "TASKWARLOCK_APP_NAME": "App display name (default: taskwarlock).",
    "TASKWARLOCK_LOG_LEVEL": "Console logging level (default: INFO).",
    # Paths (gitignored)
    "TASKWARLOCK_DATA_DIR": "Local data directory, holds the log file (default: .local/taskwarlock).",
    "TASKWARLOCK_SETTINGS_FILE": (
        "Settings JSON path (default: ~/.taskwarlock/settings.json in Docker, "
        "else $XDG_CONFIG_HOME/taskwarlock/settings.json). SETTINGS_FILE is also accepted."
    ),
    # Taskwarrior
    "TASKWARLOCK_TASK_BINARY": "Taskwarrior executable (default: task).",
    "TASKWARLOCK_COMMAND_TIMEOUT_SECONDS": "Timeout for one task command (default: 30, min 1).",
    # Caching
    "TASKWARLOCK_SETTINGS_CACHE_TTL_SECONDS": "How long a settings file read is reused (default: 5).",
    "TASKWARLOCK_QUERY_STALE_SECONDS": "Age after which cached tasks are refetched (default: 30).",
}

SETTINGS_FILE_EXAMPLE = {
    "autoSync": False,
    "urgencyAgeMax": 365,
    "urgencyCoefficients": {
        "next": 15.0,
        "due": 12.0,
        "priorityH": 6.0,
        "priorityM": 3.9,
        "priorityL": 1.8,
        "age": 2.0,
        "tags": 1.0,
        "project": 1.0,
    },
    "defaultPageSize": 20,
}
