"""
togu.api.routes.profile — Profile, progress, leaderboard & badge toasts
========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from togu.api.deps import get_session
from togu.api.serialize import answer_dict, badge_dict, level_dict, question_dict, user_dict
from togu.services.leaderboard import LeaderboardEntry
from togu.session import ToguSession

router = APIRouter(tags=["profile"])


def _entry_dict(entry: LeaderboardEntry) -> dict:
    return {
        "rank": entry.rank,
        "user": user_dict(entry.user),
        "level": entry.level,
        "decorations": [d.value for d in entry.decorations],
    }


@router.get("/profile")
async def get_profile(session: ToguSession = Depends(get_session)):
    profile = await session.profile.load()
    return {
        "user": user_dict(profile.user) if profile.user else None,
        "level": level_dict(profile.level) if profile.level else None,
        "questions": [
            question_dict(q, upvotes=q.upvotes, voted=q.user_has_voted)
            for q in profile.questions
        ],
        "answers": [
            answer_dict(a, upvotes=a.upvotes, voted=a.user_has_voted)
            for a in profile.answers
        ],
        "badges": [badge_dict(b) for b in profile.badges],
        "skills": [
            {"name": s.name, "count": s.count, "level": s.level, "highlighted": s.highlighted}
            for s in profile.skills
        ],
        "total_upvotes": profile.total_upvotes,
        "error_message": profile.error_message,
        "warning_message": profile.warning_message,
    }


@router.get("/progress")
async def get_progress(session: ToguSession = Depends(get_session)):
    """Points and level for the home screen."""
    progress = await session.profile.load_progress()
    return {"points": progress.points, "level": level_dict(progress.level)}


@router.get("/leaderboard")
async def get_leaderboard(session: ToguSession = Depends(get_session)):
    view = await session.leaderboard.load()
    return {
        "entries": [_entry_dict(e) for e in view.entries],
        "current_user": _entry_dict(view.current_user_entry) if view.current_user_entry else None,
    }


@router.get("/notifications/badge")
async def current_badge(session: ToguSession = Depends(get_session)):
    current = session.notifications.current
    return {
        "current": current.to_dict() if current else None,
        "history": [e.to_dict() for e in session.notifications.history],
    }


@router.delete("/notifications/badge", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss_badge(session: ToguSession = Depends(get_session)):
    session.notifications.dismiss()
