"""
togu.services.leaderboard — Top Users by Points
================================================
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from togu.constants import DEFAULT_XP_PER_LEVEL, level_for_points
from togu.errors import IdentityUnavailable, StoreError
from togu.models import UserProfile
from togu.store.client import RemoteStore
from togu.store.records import UserFields, decode_fields

logger = logging.getLogger(__name__)

LEADERBOARD_SIZE = 100
PURPLE_STAR_POINTS = 500


class Decoration(enum.StrEnum):
    GOLD_TROPHY = "gold_trophy"
    SILVER_MEDAL = "silver_medal"
    PURPLE_STAR = "purple_star"


def decorations_for(rank: int, points: int) -> tuple[Decoration, ...]:
    found = []
    if rank == 1:
        found.append(Decoration.GOLD_TROPHY)
    elif rank <= 3:
        found.append(Decoration.SILVER_MEDAL)
    if points >= PURPLE_STAR_POINTS:
        found.append(Decoration.PURPLE_STAR)
    return tuple(found)


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    rank: int
    user: UserProfile
    level: int
    decorations: tuple[Decoration, ...] = ()


@dataclass(slots=True)
class LeaderboardView:
    entries: list[LeaderboardEntry] = field(default_factory=list)
    current_user_entry: LeaderboardEntry | None = None


class Leaderboard:
    def __init__(
        self,
        store: RemoteStore,
        resolve_user: Callable[[], Awaitable[str]] | None = None,
        *,
        table: str = "Users",
        xp_per_level: int = DEFAULT_XP_PER_LEVEL,
        size: int = LEADERBOARD_SIZE,
    ) -> None:
        self._store = store
        self._resolve_user = resolve_user
        self._table = table
        self._xp_per_level = xp_per_level
        self._size = size

    async def load(self) -> LeaderboardView:
        page = await self._store.list(
            self._table,
            sort=(("Points", "desc"),),
            max_records=self._size,
            page_size=self._size,
        )
        entries = []
        for rank, record in enumerate(page.records, start=1):
            user = decode_fields(UserFields, record).to_user(record)
            entries.append(LeaderboardEntry(
                rank=rank,
                user=user,
                level=level_for_points(user.points, self._xp_per_level),
                decorations=decorations_for(rank, user.points),
            ))

        current = None
        if self._resolve_user is not None:
            try:
                user_id = await self._resolve_user()
            except (IdentityUnavailable, StoreError) as exc:
                logger.debug("Leaderboard without current user: %s", exc)
            else:
                current = next((e for e in entries if e.user.id == user_id), None)
        return LeaderboardView(entries=entries, current_user_entry=current)
