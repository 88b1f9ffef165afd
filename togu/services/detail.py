"""
togu.services.detail — Question Detail Session
===============================================

One question with its answers, as opened from the feed.  Votes on the
question and its answers use the same ledger and overlay rules as the feed.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import replace

from togu.errors import IdentityUnavailable, StoreError, VoteFailed
from togu.models import Answer, Question, TargetType
from togu.services.answers import AnswersService
from togu.services.contributions import Contributions
from togu.services.questions import QuestionsService
from togu.services.votes import VoteLedger, VoteOutcome, VoteOverlay

logger = logging.getLogger(__name__)


class QuestionDetail:
    def __init__(
        self,
        question_id: str,
        *,
        questions: QuestionsService,
        answers: AnswersService,
        votes: VoteLedger,
        contributions: Contributions,
        voter: Callable[[], Awaitable[str]],
    ) -> None:
        self.question_id = question_id
        self._questions = questions
        self._answers = answers
        self._votes = votes
        self._contributions = contributions
        self._voter = voter

        self.question: Question | None = None
        self.answers: list[Answer] = []
        self.is_loading = False
        self.error_message: str | None = None
        self.action_message: str | None = None
        self.overlay = VoteOverlay()

    def display_count(self, target: Question | Answer) -> int:
        return self.overlay.display_count(target.id, target.upvotes)

    def has_voted(self, target: Question | Answer) -> bool:
        return self.overlay.has_voted(target.id, target.user_has_voted)

    async def _voter_or_none(self) -> str | None:
        try:
            return await self._voter()
        except (IdentityUnavailable, StoreError):
            return None

    async def _voted(self, voter_id: str | None, target_type: TargetType, target_id: str) -> bool:
        if not voter_id:
            return False
        try:
            return await self._votes.has_voted(voter_id, target_type, target_id)
        except StoreError as exc:
            logger.debug("has_voted(%s) failed: %s", target_id, exc)
            return False

    async def load_answers(self) -> None:
        self.is_loading = True
        self.error_message = None
        try:
            question = await self._questions.get_question(self.question_id)
            answers = await self._answers.fetch_answers(self.question_id)
        except StoreError as exc:
            logger.warning("Loading question %s failed: %s", self.question_id, exc)
            self.error_message = "Couldn't load answers. Please try again."
            return
        finally:
            self.is_loading = False

        voter_id = await self._voter_or_none()
        question = replace(
            question,
            user_has_voted=await self._voted(voter_id, TargetType.QUESTION, question.id),
        )
        hydrated = []
        for answer in answers:
            hydrated.append(replace(
                answer,
                user_has_voted=await self._voted(voter_id, TargetType.ANSWER, answer.id),
            ))

        self.question = question
        self.answers = hydrated
        for target in (question, *hydrated):
            self.overlay.reconcile(target.id, target.upvotes, target.user_has_voted)

    async def _upvote(self, target_type: TargetType, target: Question | Answer) -> bool:
        if self.has_voted(target):
            return False
        self.action_message = None
        try:
            voter_id = await self._voter()
            outcome = await self._votes.cast_vote(voter_id, target_type, target.id)
        except IdentityUnavailable:
            self.action_message = IdentityUnavailable.user_message
            return False
        except (VoteFailed, StoreError) as exc:
            logger.warning("Upvote on %s failed: %s", target.id, exc)
            self.action_message = "Couldn't register your vote. Please try again."
            return False

        self.overlay.record(target.id, target.upvotes, counted=outcome is VoteOutcome.CAST)
        await self.load_answers()
        return outcome is VoteOutcome.CAST

    async def upvote_question(self) -> bool:
        if self.question is None:
            await self.load_answers()
        if self.question is None:
            return False
        return await self._upvote(TargetType.QUESTION, self.question)

    async def upvote_answer(self, answer: Answer) -> bool:
        return await self._upvote(TargetType.ANSWER, answer)

    def find_answer(self, answer_id: str) -> Answer | None:
        for answer in self.answers:
            if answer.id == answer_id:
                return answer
        return None

    async def submit_answer(self, text: str, code_snippets: Sequence[str] = ()) -> Answer:
        answer = await self._contributions.post_answer(self.question_id, text, code_snippets)
        await self.load_answers()
        if self.find_answer(answer.id) is None:
            # Not indexed yet; show it anyway.
            self.answers = self.answers + [answer]
        return answer
