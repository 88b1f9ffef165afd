"""
togu.api.serialize — Domain objects → JSON-ready dicts
=======================================================

Vote counts and flags are always the *displayed* values (store value with
the session's overlay applied), so callers pass them in.
"""

from __future__ import annotations

from togu.constants import LevelInfo
from togu.models import Answer, EarnedBadge, Question, UserProfile


def question_dict(q: Question, *, upvotes: int, voted: bool) -> dict:
    profile = q.author_profile
    return {
        "id": q.id,
        "title": q.title,
        "body": q.body,
        "tags": list(q.tags),
        "author": q.author,
        "author_id": q.author_id,
        "author_picture_url": profile.picture_url if profile else None,
        "author_level": profile.level if profile else 1,
        "image_url": q.image_url,
        "created_at": q.created_at.isoformat(),
        "upvotes": upvotes,
        "user_has_voted": voted,
    }


def answer_dict(a: Answer, *, upvotes: int, voted: bool) -> dict:
    return {
        "id": a.id,
        "question_id": a.question_id,
        "text": a.text,
        "author": a.author,
        "author_id": a.author_id,
        "created_at": a.created_at.isoformat(),
        "upvotes": upvotes,
        "user_has_voted": voted,
    }


def user_dict(u: UserProfile) -> dict:
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "points": u.points,
        "picture_url": u.picture_url,
    }


def level_dict(info: LevelInfo) -> dict:
    return {
        "level": info.level,
        "current_xp": info.current_xp,
        "next_level_xp": info.next_level_xp,
        "total_xp": info.total_xp,
        "xp_needed": info.xp_needed,
        "progress": info.progress,
    }


def badge_dict(b: EarnedBadge) -> dict:
    return {
        "id": b.id,
        "name": b.name,
        "description": b.description,
        "icon_url": b.icon_url,
        "date_earned": b.date_earned.isoformat() if b.date_earned else None,
    }
