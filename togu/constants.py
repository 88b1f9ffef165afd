"""
togu.constants — Shared Constants & the Leveling Formula
=========================================================

Single source of truth for badge names and the points → level projection.
Import from here instead of duplicating in services and API routes.
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Badge catalog names (the catalog itself lives in the store's Badges table)
# ---------------------------------------------------------------------------
FIRST_QUESTION = "First Question"
QUESTION_MASTER = "Question Master"
FIRST_ANSWER = "First Answer"
ANSWER_EXPERT = "Answer Expert"
CENTURION = "Centurion"

# Sentinel tag meaning "no tag filter"
ALL_TAGS = "All"

DEFAULT_XP_PER_LEVEL = 100


# ---------------------------------------------------------------------------
# Leveling formula
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LevelInfo:
    """Level projection of a point total."""

    level: int
    current_xp: int
    next_level_xp: int
    total_xp: int
    xp_needed: int
    progress: float


def level_for_points(points: int, xp_per_level: int = DEFAULT_XP_PER_LEVEL) -> int:
    """Level reached with *points*: one level per *xp_per_level*, starting at 1."""
    return max(1, points // xp_per_level + 1)


def level_info(points: int, xp_per_level: int = DEFAULT_XP_PER_LEVEL) -> LevelInfo:
    """Project a monotonic point total onto level, XP-in-level and progress.

    ``progress`` is clamped to ``[0, 1]`` for display.
    """
    current_xp = points % xp_per_level
    progress = min(1.0, max(0.0, current_xp / xp_per_level))
    return LevelInfo(
        level=level_for_points(points, xp_per_level),
        current_xp=current_xp,
        next_level_xp=xp_per_level,
        total_xp=points,
        xp_needed=xp_per_level - current_xp,
        progress=progress,
    )
