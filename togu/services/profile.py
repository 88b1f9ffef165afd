"""
togu.services.profile — Profile Loader
=======================================

Loads the signed-in user's profile.  The user record itself is required;
questions, answers and badges are fetched concurrently and each one that
fails leaves its section empty with a non-fatal message instead of
failing the whole profile.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from togu.constants import DEFAULT_XP_PER_LEVEL, LevelInfo, level_info
from togu.errors import IdentityUnavailable, StoreError
from togu.models import Answer, EarnedBadge, Question, UserProfile
from togu.services.answers import AnswersService
from togu.services.badges import BadgeAwarder
from togu.services.questions import QuestionsService
from togu.services.users import UsersService

logger = logging.getLogger(__name__)

MAX_SKILLS = 5
MAX_SKILL_LEVEL = 5
HIGHLIGHTED_SKILLS = 2


@dataclass(frozen=True, slots=True)
class Skill:
    name: str
    count: int
    level: int
    highlighted: bool = False


@dataclass(slots=True)
class Profile:
    user: UserProfile | None = None
    level: LevelInfo | None = None
    questions: list[Question] = field(default_factory=list)
    answers: list[Answer] = field(default_factory=list)
    badges: list[EarnedBadge] = field(default_factory=list)
    skills: list[Skill] = field(default_factory=list)
    total_upvotes: int = 0
    error_message: str | None = None
    warning_message: str | None = None


@dataclass(frozen=True, slots=True)
class Progress:
    points: int
    level: LevelInfo


def skills_from(questions: list[Question]) -> list[Skill]:
    """Top tags across *questions*, most used first."""
    counts = Counter(tag for q in questions for tag in q.tags)
    return [
        Skill(
            name=tag,
            count=count,
            level=min(count, MAX_SKILL_LEVEL),
            highlighted=i < HIGHLIGHTED_SKILLS,
        )
        for i, (tag, count) in enumerate(counts.most_common(MAX_SKILLS))
    ]


class ProfileLoader:
    def __init__(
        self,
        resolve_user: Callable[[], Awaitable[str]],
        *,
        users: UsersService,
        questions: QuestionsService,
        answers: AnswersService,
        badges: BadgeAwarder,
        xp_per_level: int = DEFAULT_XP_PER_LEVEL,
    ) -> None:
        self._resolve_user = resolve_user
        self._users = users
        self._questions = questions
        self._answers = answers
        self._badges = badges
        self._xp_per_level = xp_per_level

    async def _current_user(self) -> UserProfile:
        return await self._users.fetch_user(await self._resolve_user())

    async def load(self) -> Profile:
        try:
            user = await self._current_user()
        except IdentityUnavailable as exc:
            return Profile(error_message=f"Failed to load profile: {exc}")
        except StoreError as exc:
            logger.warning("Profile user load failed: %s", exc)
            return Profile(error_message=f"Failed to load profile: {exc}")

        sections = ("questions", "answers", "badges")
        results = await asyncio.gather(
            self._questions.fetch_user_questions(user.id),
            self._answers.fetch_user_answers(user.id),
            self._badges.fetch_user_badges(user.id),
            return_exceptions=True,
        )

        loaded: dict[str, list] = {}
        failed: list[str] = []
        for name, result in zip(sections, results):
            if isinstance(result, StoreError):
                logger.warning("Profile %s for %s failed: %s", name, user.id, result)
                failed.append(name)
                loaded[name] = []
            elif isinstance(result, BaseException):
                raise result
            else:
                loaded[name] = result

        warning = None
        if len(failed) == 1:
            warning = f"Some profile data couldn't be loaded ({failed[0]})."
        elif failed:
            warning = "Some profile data couldn't be loaded."

        questions, answers = loaded["questions"], loaded["answers"]
        return Profile(
            user=user,
            level=level_info(user.points, self._xp_per_level),
            questions=questions,
            answers=answers,
            badges=loaded["badges"],
            skills=skills_from(questions),
            total_upvotes=sum(q.upvotes for q in questions) + sum(a.upvotes for a in answers),
            warning_message=warning,
        )

    async def load_progress(self) -> Progress:
        user = await self._current_user()
        return Progress(points=user.points, level=level_info(user.points, self._xp_per_level))
