"""
togu.services.users — User Records & the Points Path
=====================================================

Reads user records, projects them into author decorations, and credits
points.  ``Points`` is a read-modify-write of a single counter; the store
offers nothing better, so concurrent awards from different clients can
lose an increment (last writer wins).

Every point award is followed by the ``POINTS`` milestone check with the
freshly written total.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from togu.constants import DEFAULT_XP_PER_LEVEL, level_for_points
from togu.engine.milestones import MilestoneKind
from togu.errors import StoreError
from togu.models import DEFAULT_AUTHOR_PROFILE, AuthorProfile, UserProfile
from togu.store.client import RemoteStore
from togu.store.records import UserFields, decode_fields

if TYPE_CHECKING:
    from togu.services.badges import BadgeAwarder

logger = logging.getLogger(__name__)


class UsersService:
    def __init__(
        self,
        store: RemoteStore,
        *,
        table: str = "Users",
        badges: BadgeAwarder | None = None,
        xp_per_level: int = DEFAULT_XP_PER_LEVEL,
    ) -> None:
        self._store = store
        self._table = table
        self._badges = badges
        self._xp_per_level = xp_per_level

    @property
    def table(self) -> str:
        return self._table

    async def fetch_user(self, user_id: str) -> UserProfile:
        record = await self._store.get(self._table, user_id)
        return decode_fields(UserFields, record).to_user(record)

    async def author_details(self, user_id: str | None) -> AuthorProfile:
        """Picture and level for an author.  Never raises."""
        if not user_id:
            return DEFAULT_AUTHOR_PROFILE
        try:
            user = await self.fetch_user(user_id)
        except StoreError as exc:
            logger.debug("Author %s unavailable: %s", user_id, exc)
            return DEFAULT_AUTHOR_PROFILE
        return AuthorProfile(
            picture_url=user.picture_url,
            level=level_for_points(user.points, self._xp_per_level),
        )

    async def add_points(self, user_id: str | None, points: int, reason: str) -> int | None:
        """Credit *points* to *user_id* and return the new total.

        Returns None (and logs) when the award is skipped or fails; awards
        are a side effect and never fail the caller.
        """
        if not user_id or points <= 0:
            return None
        try:
            record = await self._store.get(self._table, user_id)
            current = decode_fields(UserFields, record).points or 0
            new_total = current + points
            await self._store.update(self._table, user_id, {"Points": new_total})
        except StoreError:
            logger.exception(
                "Failed to add %d points to %s (%s)", points, user_id, reason,
                extra={"task": "add_points"},
            )
            return None

        logger.info("User %s +%d points (%s) → %d", user_id, points, reason, new_total)
        if self._badges is not None:
            await self._badges.check_milestones(
                user_id, MilestoneKind.POINTS, points=new_total
            )
        return new_total
