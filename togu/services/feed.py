"""
togu.services.feed — Feed Synchronizer
=======================================

Paginated, filtered, debounced question feed kept consistent with an
eventually-consistent store.

State machine::

    IDLE ──load──▶ LOADING ──▶ READY | ERROR
    READY ──load_more──▶ LOADING_MORE ──▶ READY | ERROR
    any ──reset──▶ LOADING

Every reset bumps a generation counter; a page that arrives for an older
generation is discarded, so a slow response for a superseded search never
overwrites the current one.  Page fetches retry transient failures with
backoff (``feed_retry_delays``); exhaustion lands in ``ERROR`` with a
message and :meth:`FeedSynchronizer.retry`.

After each page the items are hydrated: author profiles in parallel (each
failure degrades to the default profile) and this voter's ``has_voted``
flag per item.  Upvotes go through the :class:`VoteLedger` and are shown
through a :class:`VoteOverlay` until a reload confirms them.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import replace

from togu.constants import ALL_TAGS
from togu.engine.debounce import Debouncer
from togu.engine.retry import retry_with_backoff
from togu.errors import IdentityUnavailable, StoreError, VoteFailed
from togu.models import DEFAULT_AUTHOR_PROFILE, AuthorProfile, Question, TargetType
from togu.services.questions import QuestionsService
from togu.services.users import UsersService
from togu.services.votes import VoteLedger, VoteOutcome, VoteOverlay

logger = logging.getLogger(__name__)

LOAD_ERROR_MESSAGE = "Couldn't load questions. Check your connection and try again."
VOTE_ERROR_MESSAGE = "Couldn't register your vote. Please try again."


class FeedState(enum.StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    LOADING_MORE = "loading_more"
    READY = "ready"
    ERROR = "error"


class FeedSynchronizer:
    """One feed session.

    Parameters
    ----------
    questions, users, votes:
        Store-backed services.
    voter:
        Async callable returning the current user's id; raises
        :class:`IdentityUnavailable` when nobody usable is signed in.
    page_size:
        Questions per page.
    retry_delays:
        Wait before each page-fetch attempt.
    debounce_seconds:
        Quiet period before a search-text change triggers a reload.
    sleep:
        Injectable sleep used for backoff and debounce.
    """

    def __init__(
        self,
        questions: QuestionsService,
        users: UsersService,
        votes: VoteLedger,
        voter: Callable[[], Awaitable[str]],
        *,
        page_size: int = 20,
        retry_delays: Sequence[float] = (0.0, 1.0, 2.0, 4.0),
        debounce_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._questions = questions
        self._users = users
        self._votes = votes
        self._voter = voter
        self._page_size = page_size
        self._retry_delays = tuple(retry_delays)
        self._sleep = sleep
        self._debouncer = Debouncer(debounce_seconds, sleep=sleep, name="feed-search")

        self.items: list[Question] = []
        self.state = FeedState.IDLE
        self.error_message: str | None = None
        self.action_message: str | None = None
        self.has_more = False
        self.search_text = ""
        self.selected_tag: str | None = None
        self.overlay = VoteOverlay()

        self._cursor: str | None = None
        self._generation = 0
        self._upvoting: set[str] = set()

    # ------------------------------------------------------------------
    # Published state
    # ------------------------------------------------------------------
    @property
    def is_loading(self) -> bool:
        return self.state in (FeedState.LOADING, FeedState.LOADING_MORE)

    def display_count(self, question: Question) -> int:
        return self.overlay.display_count(question.id, question.upvotes)

    def has_voted(self, question: Question) -> bool:
        return self.overlay.has_voted(question.id, question.user_has_voted)

    def find(self, question_id: str) -> Question | None:
        for question in self.items:
            if question.id == question_id:
                return question
        return None

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------
    def set_search_text(self, text: str) -> None:
        """Debounced: only the last text of a burst triggers a reload."""
        self.search_text = text
        self._debouncer.schedule(lambda: self.load(reset=True))

    async def select_tag(self, tag: str | None) -> None:
        """Single-select toggle; the same tag again (or ``All``) clears it."""
        if tag is None or tag == ALL_TAGS or tag == self.selected_tag:
            self.selected_tag = None
        else:
            self.selected_tag = tag
        await self.load(reset=True)

    async def ensure_loaded(self) -> None:
        if self.state is FeedState.IDLE:
            await self.load(reset=True)

    async def load_more(self) -> None:
        if self.is_loading or not self.has_more:
            return
        await self.load(reset=False)

    async def retry(self) -> None:
        await self.load(reset=not self.items)

    async def settle(self) -> None:
        """Wait for a pending debounced search to run."""
        await self._debouncer.flush()

    def close(self) -> None:
        self._debouncer.cancel()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    async def load(self, reset: bool = True) -> None:
        if reset:
            self._generation += 1
            self._cursor = None
            self.items = []
            self.has_more = False
            self.state = FeedState.LOADING
        else:
            self.state = FeedState.LOADING_MORE
        self.error_message = None

        generation = self._generation
        cursor = self._cursor
        search_text, tag = self.search_text, self.selected_tag

        try:
            page, next_cursor = await retry_with_backoff(
                lambda: self._questions.fetch_page(
                    search_text=search_text,
                    tag=tag,
                    offset=cursor,
                    page_size=self._page_size,
                ),
                delays=self._retry_delays,
                sleep=self._sleep,
            )
        except StoreError as exc:
            if generation != self._generation:
                return
            logger.warning("Feed page load failed: %s", exc)
            self.state = FeedState.ERROR
            self.error_message = LOAD_ERROR_MESSAGE
            return

        if generation != self._generation:
            logger.debug("Discarding stale feed page (generation %d)", generation)
            return

        page = sorted(page, key=lambda q: q.created_at, reverse=True)
        hydrated = await self._hydrate(page)
        if generation != self._generation:
            return

        if reset:
            self.items = hydrated
        else:
            seen = {q.id for q in self.items}
            self.items = self.items + [q for q in hydrated if q.id not in seen]
        self._cursor = next_cursor
        self.has_more = next_cursor is not None
        for question in hydrated:
            self.overlay.reconcile(question.id, question.upvotes, question.user_has_voted)
        self.state = FeedState.READY

    async def _hydrate(self, questions: list[Question]) -> list[Question]:
        author_ids = list(dict.fromkeys(q.author_id for q in questions if q.author_id))
        results = await asyncio.gather(
            *(self._users.author_details(a) for a in author_ids),
            return_exceptions=True,
        )
        profiles: dict[str, AuthorProfile] = {}
        for author_id, result in zip(author_ids, results):
            if isinstance(result, Exception):
                logger.warning("Author %s hydration failed: %s", author_id, result)
                result = DEFAULT_AUTHOR_PROFILE
            elif isinstance(result, BaseException):
                raise result
            profiles[author_id] = result

        try:
            voter_id = await self._voter()
        except (IdentityUnavailable, StoreError) as exc:
            logger.debug("No voter for hydration: %s", exc)
            voter_id = None

        hydrated = []
        for question in questions:
            voted = False
            if voter_id:
                try:
                    voted = await self._votes.has_voted(
                        voter_id, TargetType.QUESTION, question.id
                    )
                except StoreError as exc:
                    logger.debug("has_voted(%s) failed: %s", question.id, exc)
            hydrated.append(replace(
                question,
                author_profile=profiles.get(question.author_id, DEFAULT_AUTHOR_PROFILE),
                user_has_voted=voted,
            ))
        return hydrated

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def prepend(self, question: Question) -> None:
        """Show a just-created question at the top of the feed."""
        self.items = [question] + [q for q in self.items if q.id != question.id]

    async def upvote(self, question: Question) -> bool:
        """Upvote *question*; returns True when a new vote was cast."""
        if self.has_voted(question) or question.id in self._upvoting:
            return False

        self._upvoting.add(question.id)
        self.action_message = None
        try:
            voter_id = await self._voter()
            outcome = await self._votes.cast_vote(voter_id, TargetType.QUESTION, question.id)
        except IdentityUnavailable:
            self.action_message = IdentityUnavailable.user_message
            return False
        except (VoteFailed, StoreError) as exc:
            logger.warning("Upvote on %s failed: %s", question.id, exc)
            self.action_message = VOTE_ERROR_MESSAGE
            return False
        finally:
            self._upvoting.discard(question.id)

        self.overlay.record(
            question.id, question.upvotes, counted=outcome is VoteOutcome.CAST
        )
        await self.load(reset=True)
        return outcome is VoteOutcome.CAST
