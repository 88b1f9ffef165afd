"""
togu.config — YAML Configuration Loader
========================================

Reads ``config.yaml`` for the store location, table names and the
synchronization tuning knobs (page size, debounce, backoff schedules).
Secrets are **not** read from here: the store credential comes from the
``AIRTABLE_KEY`` environment variable and the API signing secret from
``JWT_SECRET`` (both loaded from ``.env`` by the entry point).

Usage::

    from togu.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.base_id)               # "appXXXXXXXXXXXXXX"
    print(cfg.tables.questions)      # "Questions"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


# ---------------------------------------------------------------------------
# Nested settings
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TableNames:
    """Store table names.  Only the questions table is commonly renamed."""

    users: str = "Users"
    questions: str = "Questions"
    answers: str = "Answers"
    votes: str = "Votes"
    badges: str = "Badges"


@dataclass(frozen=True, slots=True)
class PointAwards:
    """Points credited to a user's monotonic total per contribution."""

    question_posted: int = 10
    answer_posted: int = 5
    upvote_received: int = 1


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ToguConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Delay sequences list the wait *before* each attempt, so
    ``(0, 1, 2, 4)`` means one immediate attempt plus three retries.
    """

    # Store location
    base_id: str
    store_url: str = "https://api.airtable.com/v0"
    tables: TableNames = field(default_factory=TableNames)

    # Feed
    page_size: int = 20
    search_debounce_seconds: float = 0.5
    feed_retry_delays: tuple[float, ...] = (0.0, 1.0, 2.0, 4.0)

    # Badges
    milestone_poll_delays: tuple[float, ...] = (0.0, 1.0, 2.0, 4.0)
    notification_seconds: float = 4.0

    # Transport
    request_timeout: float = 10.0

    # Contributions
    max_tags: int = 5
    max_answer_chars: int = 5000

    # Points / levels
    xp_per_level: int = 100
    points: PointAwards = field(default_factory=PointAwards)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def parse_config(raw: dict[str, Any]) -> ToguConfig:
    """Build a :class:`ToguConfig` from an already-parsed YAML mapping.

    Raises
    ------
    KeyError
        If ``base_id`` is missing.
    """
    defaults = ToguConfig(base_id=raw["base_id"])

    tables = TableNames(**(raw.get("tables") or {}))
    points = PointAwards(**{k: int(v) for k, v in (raw.get("points") or {}).items()})

    def _delays(key: str) -> tuple[float, ...]:
        value = raw.get(key)
        if value is None:
            return getattr(defaults, key)
        return tuple(float(d) for d in value)

    return ToguConfig(
        base_id=str(raw["base_id"]),
        store_url=str(raw.get("store_url", defaults.store_url)).rstrip("/"),
        tables=tables,
        page_size=int(raw.get("page_size", defaults.page_size)),
        search_debounce_seconds=float(
            raw.get("search_debounce_seconds", defaults.search_debounce_seconds)
        ),
        feed_retry_delays=_delays("feed_retry_delays"),
        milestone_poll_delays=_delays("milestone_poll_delays"),
        notification_seconds=float(
            raw.get("notification_seconds", defaults.notification_seconds)
        ),
        request_timeout=float(raw.get("request_timeout", defaults.request_timeout)),
        max_tags=int(raw.get("max_tags", defaults.max_tags)),
        max_answer_chars=int(raw.get("max_answer_chars", defaults.max_answer_chars)),
        xp_per_level=int(raw.get("xp_per_level", defaults.xp_per_level)),
        points=points,
    )


def load_config(path: str | Path = "config.yaml") -> ToguConfig:
    """Read *path* and return a :class:`ToguConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return parse_config(raw)
