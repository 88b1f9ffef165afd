"""
togu.services.contributions — Posting Questions & Answers
==========================================================

Validates user input, resolves the author, writes the record, and then
hands the rewards (points, milestone badges) to a detached background job
so the caller gets its question or answer back immediately.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from togu.config import PointAwards
from togu.engine.jobs import BackgroundJobs
from togu.engine.milestones import MilestoneKind
from togu.errors import ContributionRejected
from togu.models import Answer, Question
from togu.services.answers import AnswersService
from togu.services.badges import BadgeAwarder
from togu.services.feed import FeedSynchronizer
from togu.services.identity import IdentityResolver, Principal
from togu.services.questions import QuestionsService
from togu.services.users import UsersService

logger = logging.getLogger(__name__)


def clean_tags(tags: Iterable[str]) -> list[str]:
    """Strip, drop blanks, and de-duplicate (case-insensitively, first wins)."""
    seen: set[str] = set()
    result = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            result.append(tag)
    return result


def compose_answer(text: str, code_snippets: Sequence[str] = ()) -> str:
    """Append each non-empty snippet to *text* as a fenced code block."""
    parts = [text.strip()]
    for snippet in code_snippets:
        snippet = snippet.strip("\n")
        if snippet.strip():
            parts.append(f"```\n{snippet}\n```")
    return "\n\n".join(p for p in parts if p)


class Contributions:
    def __init__(
        self,
        identity: IdentityResolver,
        principal: Principal | None,
        *,
        questions: QuestionsService,
        answers: AnswersService,
        users: UsersService,
        badges: BadgeAwarder,
        jobs: BackgroundJobs,
        feed: FeedSynchronizer | None = None,
        awards: PointAwards | None = None,
        max_tags: int = 5,
        max_answer_chars: int = 5000,
    ) -> None:
        self._identity = identity
        self._principal = principal
        self._questions = questions
        self._answers = answers
        self._users = users
        self._badges = badges
        self._jobs = jobs
        self._feed = feed
        self._awards = awards or PointAwards()
        self.max_tags = max_tags
        self.max_answer_chars = max_answer_chars

    @property
    def _author_name(self) -> str | None:
        return self._principal.display_name if self._principal else None

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------
    async def post_question(
        self,
        title: str,
        body: str,
        tags: Iterable[str] = (),
        *,
        image_url: str | None = None,
    ) -> Question:
        """Create a question, show it at the top of the feed, reward in the background.

        Raises
        ------
        ContributionRejected
            Empty title or body, or too many tags.
        IdentityUnavailable
            No usable identity; nothing is written.
        StoreError
            The create itself failed.
        """
        title, body = title.strip(), body.strip()
        if not title:
            raise ContributionRejected("Please add a title.")
        if not body:
            raise ContributionRejected("Please describe your question.")
        tag_list = clean_tags(tags)
        if len(tag_list) > self.max_tags:
            raise ContributionRejected(f"Use at most {self.max_tags} tags.")

        user_id = await self._identity.resolve(self._principal)
        question = await self._questions.create_question(
            title, body, tag_list, user_id,
            author_name=self._author_name,
            image_url=image_url,
        )
        if self._feed is not None:
            self._feed.prepend(question)

        self._jobs.spawn(
            self._reward_question(user_id), name=f"question-rewards-{question.id}"
        )
        return question

    async def _reward_question(self, user_id: str) -> None:
        await self._users.add_points(user_id, self._awards.question_posted, "question posted")
        await self._badges.check_milestones(user_id, MilestoneKind.QUESTION_COUNT)

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------
    async def post_answer(
        self,
        question_id: str,
        text: str,
        code_snippets: Sequence[str] = (),
    ) -> Answer:
        """Create an answer and reward in the background.

        Raises
        ------
        ContributionRejected
            Empty or over-long text.
        IdentityUnavailable
            No usable identity; nothing is written.
        """
        if not text.strip():
            raise ContributionRejected("Please write an answer.")
        composed = compose_answer(text, code_snippets)
        if len(composed) > self.max_answer_chars:
            raise ContributionRejected(
                f"Answers are limited to {self.max_answer_chars} characters."
            )

        user_id = await self._identity.resolve(self._principal)
        answer = await self._answers.create_answer(
            question_id, composed, user_id, author_name=self._author_name
        )
        self._jobs.spawn(
            self._reward_answer(user_id), name=f"answer-rewards-{answer.id}"
        )
        return answer

    async def _reward_answer(self, user_id: str) -> None:
        await self._users.add_points(user_id, self._awards.answer_posted, "answer posted")
        await self._badges.check_milestones(user_id, MilestoneKind.ANSWER_COUNT)
