"""
togu.engine.milestones — Milestone Predicates
==============================================

Handler-registry mapping each :class:`MilestoneKind` to a pure function
``(value) -> [badge names]``.  Count milestones fire on an *exact* count
(the first question, the fifth question) so that later posts don't keep
re-checking old badges; the points milestone fires at or above its
threshold and relies on the awarder's idempotency.

This module is pure calculation: no store I/O.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable

from togu.constants import (
    ANSWER_EXPERT,
    CENTURION,
    FIRST_ANSWER,
    FIRST_QUESTION,
    QUESTION_MASTER,
)

logger = logging.getLogger(__name__)


class MilestoneKind(enum.StrEnum):
    QUESTION_COUNT = "question_count"
    ANSWER_COUNT = "answer_count"
    POINTS = "points"


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------
QUESTION_COUNT_BADGES: dict[int, str] = {
    1: FIRST_QUESTION,
    5: QUESTION_MASTER,
}

ANSWER_COUNT_BADGES: dict[int, str] = {
    1: FIRST_ANSWER,
    10: ANSWER_EXPERT,
}

POINTS_BADGES: dict[int, str] = {
    100: CENTURION,
}


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------
def _exact_count(table: dict[int, str]) -> Callable[[int], list[str]]:
    def _check(count: int) -> list[str]:
        badge = table.get(count)
        return [badge] if badge else []
    return _check


def _at_least(value: int) -> list[str]:
    return [name for threshold, name in sorted(POINTS_BADGES.items()) if value >= threshold]


MILESTONE_HANDLERS: dict[MilestoneKind, Callable[[int], list[str]]] = {
    MilestoneKind.QUESTION_COUNT: _exact_count(QUESTION_COUNT_BADGES),
    MilestoneKind.ANSWER_COUNT: _exact_count(ANSWER_COUNT_BADGES),
    MilestoneKind.POINTS: _at_least,
}


def milestones_reached(kind: MilestoneKind, value: int) -> list[str]:
    """Return the badge names *value* qualifies for under *kind*."""
    handler = MILESTONE_HANDLERS.get(kind)
    if handler is None:
        logger.warning("No milestone handler for %s", kind)
        return []
    return handler(value)
