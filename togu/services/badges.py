"""
togu.services.badges — Idempotent Badge Awarder
================================================

Badges live in the store's Badges table; each record carries an append-only
``EarnedBy`` list of user ids.  Awarding is a check-then-append:

  1. membership query  ``AND({Badge Name}='<name>', FIND('<uid>', {EarnedBy}) > 0)``
     (a failed query is logged and step 3 decides alone)
  2. locate the badge record by name (missing → ``NOT_FOUND``, logged)
  3. re-check membership on the located record, then PATCH the extended list

One awarder serves every session on a store client: calls for the same
(user, badge) pair are serialized and successful grants are remembered, so
each pair is written at most once and notified at most once, to the
earner's own sink.  Two *different* clients can still race; that window is
accepted.

Milestone checks are best-effort: failures are logged, never raised.  The
question-count milestone polls with backoff because a question created a
moment ago may not be visible to list queries yet.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable, Sequence

from togu.engine.locks import KeyedLocks
from togu.engine.milestones import MilestoneKind, milestones_reached
from togu.engine.retry import retry_with_backoff
from togu.errors import StoreError, StoreHTTPError
from togu.models import EarnedBadge
from togu.services.answers import AnswersService
from togu.services.notifications import NotificationRouter
from togu.services.questions import QuestionsService
from togu.store import formula
from togu.store.client import RemoteStore
from togu.store.records import BadgeFields, StoreRecord, decode_fields

logger = logging.getLogger(__name__)


class BadgeOutcome(enum.StrEnum):
    AWARDED = "awarded"
    ALREADY_HELD = "already_held"
    NOT_FOUND = "not_found"


def _membership_formula(badge_name: str, user_id: str) -> str:
    held = formula.gt(
        formula.find(formula.quote(user_id), formula.field("EarnedBy")), "0"
    )
    return formula.and_(formula.field_equals("Badge Name", badge_name), held)


class BadgeAwarder:
    def __init__(
        self,
        store: RemoteStore,
        notifications: NotificationRouter,
        questions: QuestionsService,
        answers: AnswersService,
        *,
        table: str = "Badges",
        poll_delays: Sequence[float] = (0.0, 1.0, 2.0, 4.0),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._notifications = notifications
        self._questions = questions
        self._answers = answers
        self._table = table
        self._poll_delays = tuple(poll_delays)
        self._sleep = sleep
        self._granted: set[tuple[str, str]] = set()
        self._locks = KeyedLocks()

    # ------------------------------------------------------------------
    # Awarding
    # ------------------------------------------------------------------
    async def award_if_missing(self, user_id: str, badge_name: str) -> BadgeOutcome:
        """Append *user_id* to the badge's EarnedBy unless already present.

        Raises
        ------
        StoreError
            If any store call fails.  Callers on the milestone path log it.
        """
        key = (user_id, badge_name)
        if key in self._granted:
            return BadgeOutcome.ALREADY_HELD

        async with self._locks.hold(key):
            if key in self._granted:
                return BadgeOutcome.ALREADY_HELD

            try:
                held = await self._store.list(
                    self._table,
                    formula=_membership_formula(badge_name, user_id),
                    max_records=1,
                )
            except StoreError as exc:
                logger.warning(
                    "Membership query for %r failed (%s), checking EarnedBy instead",
                    badge_name, exc,
                )
            else:
                if held.records:
                    self._granted.add(key)
                    return BadgeOutcome.ALREADY_HELD

            badge = await self._find_badge(badge_name)
            if badge is None:
                logger.warning("Badge %r not found in %s", badge_name, self._table)
                return BadgeOutcome.NOT_FOUND

            earned_by = list(decode_fields(BadgeFields, badge).earned_by or [])
            if user_id in earned_by:
                self._granted.add(key)
                return BadgeOutcome.ALREADY_HELD

            await self._store.update(
                self._table, badge.id, {"EarnedBy": earned_by + [user_id]}
            )
            self._granted.add(key)

        logger.info("Awarded %r to %s", badge_name, user_id)
        self._notifications.show(badge_name, user_id)
        return BadgeOutcome.AWARDED

    async def _find_badge(self, badge_name: str) -> StoreRecord | None:
        page = await self._store.list(
            self._table,
            formula=formula.field_equals("Badge Name", badge_name),
            max_records=1,
        )
        return page.records[0] if page.records else None

    # ------------------------------------------------------------------
    # Milestones
    # ------------------------------------------------------------------
    async def check_milestones(
        self,
        user_id: str,
        kind: MilestoneKind,
        *,
        points: int | None = None,
    ) -> list[str]:
        """Evaluate *kind* for *user_id* and award what it reaches.

        Returns the names of newly awarded badges.  Never raises on store
        failures.
        """
        try:
            value = await self._observe(user_id, kind, points)
            if not value:
                return []
            awarded = []
            for badge_name in milestones_reached(kind, value):
                outcome = await self.award_if_missing(user_id, badge_name)
                if outcome is BadgeOutcome.AWARDED:
                    awarded.append(badge_name)
            return awarded
        except StoreError:
            logger.exception(
                "Milestone check %s failed for %s", kind, user_id,
                extra={"task": "milestones"},
            )
            return []

    async def _observe(
        self, user_id: str, kind: MilestoneKind, points: int | None
    ) -> int | None:
        if kind is MilestoneKind.POINTS:
            return points

        if kind is MilestoneKind.ANSWER_COUNT:
            return await self._answers.count_user_answers(user_id)

        count = await retry_with_backoff(
            lambda: self._questions.count_user_questions(user_id),
            delays=self._poll_delays,
            stop_when=lambda n: n >= 1,
            sleep=self._sleep,
        )
        if count == 0:
            logger.info("Question count for %s still zero after polling, giving up", user_id)
        return count

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def fetch_user_badges(self, user_id: str) -> list[EarnedBadge]:
        """Badges *user_id* has earned.

        Uses a server-side filter; if the store rejects that query, falls
        back to listing every badge and filtering locally.
        """
        try:
            records = await self._store.list_all(
                self._table,
                formula=formula.gt(
                    formula.find(formula.quote(user_id), formula.field("EarnedBy")), "0"
                ),
            )
        except StoreHTTPError as exc:
            logger.warning("Filtered badge query failed (%s), listing all badges", exc)
            records = [
                r for r in await self._store.list_all(self._table)
                if user_id in (decode_fields(BadgeFields, r).earned_by or [])
            ]

        badges = []
        for record in records:
            badge = decode_fields(BadgeFields, record).to_badge(record)
            if badge is not None:
                badges.append(badge)
        return badges
