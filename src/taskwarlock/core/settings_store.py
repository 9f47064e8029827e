# src/taskwarlock/core/settings_store.py

"""
User settings file (JSON).

Holds the knobs a user may change while the app is running: auto-sync, the urgency
coefficients and the age cap used by the urgency estimate, and the default page size.

Reads are cached for a short TTL only; callers must ask again for every mutation
instead of holding on to an AppSettings instance.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from ..tasks.urgency import DEFAULT_URGENCY_AGE_MAX, UrgencyCoefficients

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AppSettings:
    auto_sync: bool = False
    urgency_age_max: int = DEFAULT_URGENCY_AGE_MAX
    urgency_coefficients: UrgencyCoefficients = field(default_factory=UrgencyCoefficients)
    default_page_size: int = 20

    @classmethod
    def from_json(cls, raw: Any) -> AppSettings:
        """Merge a parsed JSON object over the defaults (coefficients are merged key by key)."""
        base = cls()
        if not isinstance(raw, dict):
            return base

        auto_sync = raw.get("autoSync", base.auto_sync)
        if not isinstance(auto_sync, bool):
            auto_sync = base.auto_sync

        return cls(
            auto_sync=auto_sync,
            urgency_age_max=_positive_int(raw.get("urgencyAgeMax"), base.urgency_age_max),
            urgency_coefficients=UrgencyCoefficients.from_json(raw.get("urgencyCoefficients")),
            default_page_size=_positive_int(raw.get("defaultPageSize"), base.default_page_size),
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "autoSync": self.auto_sync,
            "urgencyAgeMax": self.urgency_age_max,
            "urgencyCoefficients": self.urgency_coefficients.to_dict(),
            "defaultPageSize": self.default_page_size,
        }


DEFAULT_APP_SETTINGS = AppSettings()


def _positive_int(raw: Any, default: int) -> int:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return default
    value = int(raw)
    return value if value > 0 else default


class SettingsStore:
    """
    JSON settings file with a TTL read cache.

    - Missing file: created with defaults on first read.
    - Unreadable / invalid file: defaults are returned (and logged); the file is left alone.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        ttl_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._path = Path(path)
        self._ttl = max(0.0, float(ttl_seconds))
        self._clock = clock
        self._cache: AppSettings | None = None
        self._cached_at = 0.0

    @property
    def path(self) -> Path:
        return self._path

    def clear_cache(self) -> None:
        self._cache = None
        self._cached_at = 0.0

    def _init_file(self) -> None:
        if self._path.exists():
            return
        logger.info("Creating default settings file at %s", self._path)
        self._write(DEFAULT_APP_SETTINGS)

    def _write(self, settings: AppSettings) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(settings.to_json(), indent=2), "utf-8")
        os.replace(tmp, self._path)

    def get_settings(self) -> AppSettings:
        now = self._clock()
        if self._cache is not None and now - self._cached_at < self._ttl:
            return self._cache

        try:
            self._init_file()
            raw = json.loads(self._path.read_text("utf-8"))
            settings = AppSettings.from_json(raw)
        except (OSError, ValueError):
            logger.exception("Error reading settings file %s, using defaults", self._path)
            settings = DEFAULT_APP_SETTINGS

        self._cache = settings
        self._cached_at = now
        return settings

    def update_settings(self, **changes: Any) -> AppSettings:
        """Apply field changes (AppSettings field names) and persist them."""
        updated = replace(self.get_settings(), **changes)
        try:
            self._write(updated)
        except OSError:
            logger.exception("Error writing settings file %s", self._path)
            with contextlib.suppress(OSError):
                self._path.with_suffix(".tmp").unlink()
            raise

        self._cache = updated
        self._cached_at = self._clock()
        logger.info("Settings updated: %s", ", ".join(sorted(changes)))
        return updated
