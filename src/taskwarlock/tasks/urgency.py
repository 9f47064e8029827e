# src/taskwarlock/tasks/urgency.py

"""
Urgency estimate used for optimistic updates.

Mirrors Taskwarrior's urgency polynomial (https://taskwarrior.org/docs/urgency/)
for the factors the client can see: priority, due, age, tags, "next" and project.
The value is only a prediction; the next `task export` replaces it.

The clock is injected (`now`), so the score is a pure function of its inputs.
"""

from __future__ import annotations

import math
from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime
from typing import Any

SECONDS_PER_DAY = 86400.0

DEFAULT_URGENCY_AGE_MAX = 365


@dataclass(frozen=True, slots=True)
class UrgencyCoefficients:
    next: float = 15.0
    due: float = 12.0
    priority_h: float = 6.0
    priority_m: float = 3.9
    priority_l: float = 1.8
    age: float = 2.0
    tags: float = 1.0
    project: float = 1.0

    # JSON (settings file) uses the camelCase names.
    _JSON_KEYS = {
        "next": "next",
        "due": "due",
        "priorityH": "priority_h",
        "priorityM": "priority_m",
        "priorityL": "priority_l",
        "age": "age",
        "tags": "tags",
        "project": "project",
    }

    @classmethod
    def from_json(cls, raw: Any, base: UrgencyCoefficients | None = None) -> UrgencyCoefficients:
        """
        Merge a JSON object over `base` (defaults when None).

        Unknown keys are ignored; values that are not non-negative numbers keep the base value.
        """
        base = base or cls()
        if not isinstance(raw, dict):
            return base
        values = base.to_dict()
        for key, val in raw.items():
            field_name = cls._JSON_KEYS.get(key)
            if field_name is None:
                continue
            if isinstance(val, bool) or not isinstance(val, (int, float)):
                continue
            if not math.isfinite(val) or val < 0:
                continue
            values[key] = float(val)
        return cls(**{cls._JSON_KEYS[k]: v for k, v in values.items()})

    def to_dict(self) -> dict[str, float]:
        return {k: float(getattr(self, f)) for k, f in self._JSON_KEYS.items()}


DEFAULT_URGENCY_COEFFICIENTS = UrgencyCoefficients()


def due_factor(due: datetime, now: datetime) -> float:
    """
    21-day window around now:
    overdue by 7+ days -> 1.0, linear inside the window, due 14+ days out -> 0.2.
    """
    days_overdue = (now - due).total_seconds() / SECONDS_PER_DAY

    if days_overdue >= 7.0:
        return 1.0
    if days_overdue >= -14.0:
        return ((days_overdue + 14.0) * 0.8) / 21.0 + 0.2
    return 0.2


def age_factor(entry: datetime, now: datetime, age_max: int) -> float:
    age_days = math.floor((now - entry).total_seconds() / SECONDS_PER_DAY)
    if age_days <= 0:
        return 0.0
    if age_days >= age_max:
        return 1.0
    return age_days / age_max


def tags_factor(tags: Collection[str]) -> float:
    """1 tag = 0.8, 2 tags = 0.9, 3+ tags = 1.0."""
    count = len(tags)
    if count == 0:
        return 0.0
    if count == 1:
        return 0.8
    if count == 2:
        return 0.9
    return 1.0


def estimate_urgency(
    task: Any,
    coefficients: UrgencyCoefficients | None = None,
    age_max: int | None = None,
    *,
    now: datetime,
) -> float:
    """
    Estimate the urgency of a Task, TaskAdd or TaskUpdate.

    Any attribute the object lacks (or that is None) contributes nothing. In particular
    a TaskUpdate has no `entry`, so it carries no age term: a partial update cannot know
    when the task was created.
    """
    coeff = coefficients or DEFAULT_URGENCY_COEFFICIENTS
    max_age = age_max if age_max and age_max > 0 else DEFAULT_URGENCY_AGE_MAX

    urgency = 0.0

    priority = getattr(task, "priority", None)
    if priority == "H":
        urgency += coeff.priority_h
    elif priority == "M":
        urgency += coeff.priority_m
    elif priority == "L":
        urgency += coeff.priority_l

    due = getattr(task, "due", None)
    if isinstance(due, datetime):
        urgency += coeff.due * due_factor(due, now)

    entry = getattr(task, "entry", None)
    if isinstance(entry, datetime):
        urgency += coeff.age * age_factor(entry, now, max_age)

    tags = getattr(task, "tags", None) or ()
    if tags:
        urgency += coeff.tags * tags_factor(tags)
        if "next" in tags:
            urgency += coeff.next

    if getattr(task, "project", None):
        urgency += coeff.project

    return urgency
