"""
togu.services.votes — At-Most-Once Vote Ledger & the Local Overlay
===================================================================

A vote is an append-only fact in the Votes table plus a bump of the
target's ``Upvotes`` counter.  The store has no uniqueness constraint and
no transactions, so :class:`VoteLedger` enforces "one vote per (voter,
target)" on the client:

  1. ``has_voted`` (store query, or a cast remembered this session)
  2. create the Vote fact
  3. read the counter and write back ``count + 1`` (last writer wins)
  4. credit the target's author one point, detached

Calls for the same key are serialized with an in-process lock.  A failure
after step 2 raises ``VoteFailed(partial=True)``; the cast is remembered,
so a retry reports ``ALREADY_VOTED`` instead of writing a second fact.

:class:`VoteOverlay` is the optimistic display layer the feed and the
question detail put over store counts until the store catches up.
"""

from __future__ import annotations

import enum
import logging

from togu.config import TableNames
from togu.engine.jobs import BackgroundJobs
from togu.engine.locks import KeyedLocks
from togu.errors import StoreError, VoteFailed
from togu.models import TargetType
from togu.services.users import UsersService
from togu.store import formula
from togu.store.client import RemoteStore
from togu.store.records import AnswerFields, QuestionFields, decode_fields

logger = logging.getLogger(__name__)

TARGET_FIELDS: dict[TargetType, str] = {
    TargetType.QUESTION: "Target Question",
    TargetType.ANSWER: "Target Answer",
}


class VoteOutcome(enum.StrEnum):
    CAST = "cast"
    ALREADY_VOTED = "already_voted"


class VoteLedger:
    def __init__(
        self,
        store: RemoteStore,
        *,
        tables: TableNames | None = None,
        users: UsersService | None = None,
        jobs: BackgroundJobs | None = None,
        upvote_points: int = 1,
    ) -> None:
        self._store = store
        self._tables = tables or TableNames()
        self._users = users
        self._jobs = jobs
        self._upvote_points = upvote_points
        self._cast: set[tuple[str, TargetType, str]] = set()
        self._locks = KeyedLocks()

    def _target_table(self, target_type: TargetType) -> str:
        if target_type is TargetType.QUESTION:
            return self._tables.questions
        return self._tables.answers

    async def has_voted(
        self, voter_id: str, target_type: TargetType, target_id: str
    ) -> bool:
        key = (voter_id, target_type, target_id)
        if key in self._cast:
            return True
        page = await self._store.list(
            self._tables.votes,
            formula=formula.and_(
                formula.field_equals("User", voter_id),
                formula.field_equals("TargetType", target_type.value),
                formula.field_equals(TARGET_FIELDS[target_type], target_id),
            ),
            max_records=1,
        )
        if page.records:
            self._cast.add(key)
            return True
        return False

    async def cast_vote(
        self, voter_id: str, target_type: TargetType, target_id: str
    ) -> VoteOutcome:
        """Record one upvote by *voter_id* on the target.

        Raises
        ------
        VoteFailed
            If any store step fails.  ``partial`` is set when the Vote fact
            exists but the counter was not bumped.
        """
        key = (voter_id, target_type, target_id)
        async with self._locks.hold(key):
            try:
                if await self.has_voted(voter_id, target_type, target_id):
                    return VoteOutcome.ALREADY_VOTED
                await self._store.create(
                    self._tables.votes,
                    {
                        "User": [voter_id],
                        "TargetType": target_type.value,
                        TARGET_FIELDS[target_type]: [target_id],
                    },
                )
            except StoreError as exc:
                raise VoteFailed(f"Couldn't record vote on {target_id}: {exc}") from exc

            self._cast.add(key)

            table = self._target_table(target_type)
            model = QuestionFields if target_type is TargetType.QUESTION else AnswerFields
            try:
                record = await self._store.get(table, target_id)
                fields = decode_fields(model, record)
                await self._store.update(table, target_id, {"Upvotes": (fields.upvotes or 0) + 1})
            except StoreError as exc:
                logger.warning("Vote on %s recorded but counter not updated: %s", target_id, exc)
                raise VoteFailed(
                    f"Vote on {target_id} recorded but the count didn't update",
                    partial=True,
                ) from exc

        logger.info("%s voted on %s %s", voter_id, target_type, target_id)
        author_id = (fields.author or [None])[0]
        if author_id and self._users is not None and self._jobs is not None:
            self._jobs.spawn(
                self._users.add_points(author_id, self._upvote_points, "upvote received"),
                name=f"upvote-points-{target_id}",
            )
        return VoteOutcome.CAST


class VoteOverlay:
    """Optimistic vote counts and flags layered over store values.

    Display rule: ``max(store, overlay)`` until the store's count reaches
    the overlay, after which the overlay entry is dropped.  A voted flag is
    dropped once the store itself reports the vote.
    """

    def __init__(self) -> None:
        self.counts: dict[str, int] = {}
        self.voted: set[str] = set()

    def display_count(self, target_id: str, store_count: int) -> int:
        return max(store_count, self.counts.get(target_id, 0))

    def has_voted(self, target_id: str, store_flag: bool) -> bool:
        return store_flag or target_id in self.voted

    def record(self, target_id: str, store_count: int, *, counted: bool) -> None:
        """Note a successful (or already existing) vote on *target_id*."""
        if counted:
            self.counts[target_id] = self.display_count(target_id, store_count) + 1
        self.voted.add(target_id)

    def reconcile(self, target_id: str, store_count: int, store_flag: bool) -> None:
        if target_id in self.counts and store_count >= self.counts[target_id]:
            del self.counts[target_id]
        if store_flag:
            self.voted.discard(target_id)
