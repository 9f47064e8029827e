# src/taskwarlock/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole process (normal "settings layer").
- Nothing required at import time: every value has a default.
- User-tunable scoring knobs (coefficients, age max, auto-sync) are NOT here;
  they live in the JSON settings file handled by core/settings_store.py,
  because the user may change them while the app is running.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKWARLOCK"

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


def is_docker() -> bool:
    """Detect a container: /.dockerenv, or docker/containerd in PID 1 cgroups."""
    if Path("/.dockerenv").exists():
        return True
    try:
        cgroup = Path("/proc/1/cgroup").read_text("utf-8")
    except OSError:
        return False
    return "docker" in cgroup or "containerd" in cgroup


def default_settings_file() -> Path:
    """
    Default location of the JSON settings file:
      Docker:  ~/.taskwarlock/settings.json
      Native:  $XDG_CONFIG_HOME/taskwarlock/settings.json (~/.config fallback)
    """
    if is_docker():
        return Path.home() / ".taskwarlock" / "settings.json"
    xdg = os.getenv("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(xdg).expanduser() / "taskwarlock" / "settings.json"


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- External task database ----
    task_binary: str
    command_timeout_seconds: float

    # ---- User settings file ----
    settings_file: Path
    settings_cache_ttl_seconds: float

    # ---- Client cache ----
    query_stale_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskwarlock") or "taskwarlock"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskwarlock"))

        task_binary = _env(_k("TASK_BINARY"), "task").strip() or "task"
        command_timeout_seconds = max(1.0, _env_float(_k("COMMAND_TIMEOUT_SECONDS"), 30.0))

        # SETTINGS_FILE (unprefixed) is accepted for compatibility with existing deployments.
        raw_settings_file = _first_env(_k("SETTINGS_FILE"), "SETTINGS_FILE", default=None)
        settings_file = (
            Path(raw_settings_file).expanduser() if raw_settings_file else default_settings_file()
        )
        settings_cache_ttl_seconds = max(0.0, _env_float(_k("SETTINGS_CACHE_TTL_SECONDS"), 5.0))

        query_stale_seconds = max(0.0, _env_float(_k("QUERY_STALE_SECONDS"), 30.0))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            task_binary=task_binary,
            command_timeout_seconds=command_timeout_seconds,
            settings_file=settings_file,
            settings_cache_ttl_seconds=settings_cache_ttl_seconds,
            query_stale_seconds=query_stale_seconds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
