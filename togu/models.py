"""
togu.models — Domain Objects
=============================

Plain, immutable dataclasses the services hand to callers.  Wire-level
record shapes live in :mod:`togu.store.records`; conversion happens there.

Local changes (a freshly cast vote, a hydrated author profile) produce a
new instance via :func:`dataclasses.replace` rather than mutating in place.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime


class TargetType(enum.StrEnum):
    """What a Vote points at.  Values match the store's ``TargetType`` field."""
    QUESTION = "Question"
    ANSWER = "Answer"


@dataclass(frozen=True, slots=True)
class AuthorProfile:
    """Denormalized author decoration shown next to a question."""

    picture_url: str | None = None
    level: int = 1


DEFAULT_AUTHOR_PROFILE = AuthorProfile()


@dataclass(frozen=True, slots=True)
class Question:
    id: str
    title: str
    body: str
    author: str
    created_at: datetime
    tags: tuple[str, ...] = ()
    image_url: str | None = None
    author_id: str | None = None
    upvotes: int = 0
    user_has_voted: bool = False
    author_profile: AuthorProfile | None = None


@dataclass(frozen=True, slots=True)
class Answer:
    id: str
    text: str
    author: str
    created_at: datetime
    question_id: str | None = None
    author_id: str | None = None
    upvotes: int = 0
    user_has_voted: bool = False


@dataclass(frozen=True, slots=True)
class UserProfile:
    id: str
    name: str
    email: str
    points: int = 0
    picture_url: str | None = None


@dataclass(frozen=True, slots=True)
class EarnedBadge:
    """A badge as shown on a user's profile."""

    id: str
    name: str
    description: str | None = None
    icon_url: str | None = None
    date_earned: datetime | None = None
