"""
togu.session — Per-User Session Wiring
=======================================

A :class:`ToguSession` owns everything that is scoped to one signed-in
user: the identity cache, the vote memo, the feed with its overlay, the
notification slot and the background jobs.  Nothing here is a
module-level singleton; the API keeps one session per principal in a
:class:`SessionRegistry`.

Badge grants are not per-user: a vote by one user can push another user
over a milestone.  The registry therefore owns one :class:`BadgeAwarder`
and one :class:`NotificationRouter` for all of its sessions, and each
session registers its notification sink under its user id once identity
resolves.  A standalone session builds a private pair.

Usage::

    async with RemoteStore(cfg.base_id, api_key) as store:
        session = ToguSession(store, cfg, principal)
        await session.feed.load(reset=True)
        await session.contributions.post_question("Title", "Body", ["python"])
        await session.close()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from togu.config import ToguConfig
from togu.engine.jobs import BackgroundJobs
from togu.services.answers import AnswersService
from togu.services.badges import BadgeAwarder
from togu.services.contributions import Contributions
from togu.services.detail import QuestionDetail
from togu.services.feed import FeedSynchronizer
from togu.services.identity import IdentityResolver, Principal
from togu.services.leaderboard import Leaderboard
from togu.services.notifications import NotificationRouter, NotificationSink
from togu.services.profile import ProfileLoader
from togu.services.questions import QuestionsService
from togu.services.users import UsersService
from togu.services.votes import VoteLedger
from togu.store.client import RemoteStore

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def _make_awarder(
    store: RemoteStore, config: ToguConfig, router: NotificationRouter, sleep: Sleep
) -> BadgeAwarder:
    tables = config.tables
    return BadgeAwarder(
        store,
        router,
        QuestionsService(store, tables.questions),
        AnswersService(store, tables.answers),
        table=tables.badges,
        poll_delays=config.milestone_poll_delays,
        sleep=sleep,
    )


class ToguSession:
    def __init__(
        self,
        store: RemoteStore,
        config: ToguConfig,
        principal: Principal | None,
        *,
        badges: BadgeAwarder | None = None,
        router: NotificationRouter | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.store = store
        self.config = config
        self.principal = principal
        tables = config.tables

        self.jobs = BackgroundJobs()
        self.notifications = NotificationSink(config.notification_seconds, sleep=sleep)
        self.router = router or NotificationRouter()
        self.identity = IdentityResolver(store, tables.users, on_resolved=self._claim_sink)
        self.questions = QuestionsService(store, tables.questions)
        self.answers = AnswersService(store, tables.answers)
        self.badges = badges or _make_awarder(store, config, self.router, sleep)
        self.users = UsersService(
            store, table=tables.users, badges=self.badges, xp_per_level=config.xp_per_level
        )
        self.votes = VoteLedger(
            store,
            tables=tables,
            users=self.users,
            jobs=self.jobs,
            upvote_points=config.points.upvote_received,
        )
        self.feed = FeedSynchronizer(
            self.questions,
            self.users,
            self.votes,
            self.user_id,
            page_size=config.page_size,
            retry_delays=config.feed_retry_delays,
            debounce_seconds=config.search_debounce_seconds,
            sleep=sleep,
        )
        self.contributions = Contributions(
            self.identity,
            principal,
            questions=self.questions,
            answers=self.answers,
            users=self.users,
            badges=self.badges,
            jobs=self.jobs,
            feed=self.feed,
            awards=config.points,
            max_tags=config.max_tags,
            max_answer_chars=config.max_answer_chars,
        )
        self.profile = ProfileLoader(
            self.user_id,
            users=self.users,
            questions=self.questions,
            answers=self.answers,
            badges=self.badges,
            xp_per_level=config.xp_per_level,
        )
        self.leaderboard = Leaderboard(
            store, self.user_id, table=tables.users, xp_per_level=config.xp_per_level
        )
        self._details: dict[str, QuestionDetail] = {}

    async def user_id(self) -> str:
        """The signed-in user's record id (resolved once, then cached)."""
        return await self.identity.resolve(self.principal)

    def _claim_sink(self, principal: Principal, user_id: str) -> None:
        self.router.register(user_id, self.notifications)

    def detail(self, question_id: str) -> QuestionDetail:
        if question_id not in self._details:
            self._details[question_id] = QuestionDetail(
                question_id,
                questions=self.questions,
                answers=self.answers,
                votes=self.votes,
                contributions=self.contributions,
                voter=self.user_id,
            )
        return self._details[question_id]

    async def close(self) -> None:
        """Stop the debounce timer and wait for outstanding reward jobs."""
        self.feed.close()
        await self.jobs.drain()
        user_id = self.identity.cached(self.principal)
        if user_id is not None:
            self.router.unregister(user_id, self.notifications)
        self.notifications.dismiss()


class SessionRegistry:
    """One :class:`ToguSession` per principal email, sharing one store client
    and one badge awarder."""

    def __init__(self, store: RemoteStore, config: ToguConfig, *, sleep: Sleep = asyncio.sleep) -> None:
        self.store = store
        self.config = config
        self._sleep = sleep
        self.router = NotificationRouter()
        self.badges = _make_awarder(store, config, self.router, sleep)
        self._sessions: dict[str, ToguSession] = {}

    def get(self, principal: Principal) -> ToguSession:
        session = self._sessions.get(principal.key)
        if session is None:
            session = ToguSession(
                self.store,
                self.config,
                principal,
                badges=self.badges,
                router=self.router,
                sleep=self._sleep,
            )
            self._sessions[principal.key] = session
            logger.info("Opened session for %s", principal.key)
        return session

    async def aclose(self) -> None:
        for session in self._sessions.values():
            await session.close()
        self._sessions.clear()
        await self.store.aclose()
