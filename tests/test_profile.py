"""
tests/test_profile.py — Profile Loader, Progress & Leaderboard
===============================================================
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from togu.errors import StoreHTTPError, TransientNetworkError
from togu.models import Question
from togu.services.identity import Principal
from togu.services.leaderboard import Decoration, decorations_for
from togu.services.profile import skills_from
from togu.session import ToguSession


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


@pytest.fixture
def ada(store, config, no_sleep):
    user_id = store.seed("Users", {"Name": "Ada", "Email": "ada@x.io", "Points": 135})
    session = ToguSession(store, config, Principal("ada@x.io", "Ada"), sleep=no_sleep)
    return user_id, session


def _question(tags):
    return Question(
        id="rec", title="t", body="b", author="Ada",
        created_at=datetime(2026, 1, 1, tzinfo=UTC), tags=tuple(tags),
    )


# ===========================================================================
# Skills
# ===========================================================================
class TestSkills:
    def test_top_tags_with_capped_level(self):
        questions = [_question(["python"])] * 7 + [_question(["rust", "go"])] * 2 + [
            _question(["a"]), _question(["b"]), _question(["c"]),
        ]
        skills = skills_from(questions)

        assert [s.name for s in skills][:3] == ["python", "rust", "go"]
        assert len(skills) == 5
        assert skills[0].count == 7
        assert skills[0].level == 5
        assert [s.highlighted for s in skills] == [True, True, False, False, False]

    def test_no_questions(self):
        assert skills_from([]) == []


# ===========================================================================
# Profile
# ===========================================================================
class TestProfileLoader:
    def test_full_profile(self, store, ada):
        user_id, session = ada
        store.seed("Questions", {"Title": "Q1", "Author": [user_id], "Tags": ["python"], "Upvotes": 3})
        store.seed("Questions", {"Title": "Q2", "Author": [user_id], "Tags": ["python", "sql"]})
        store.seed("Answers", {"Answer Text": "A", "Author": [user_id], "Upvotes": 2})
        store.seed("Badges", {"Badge Name": "First Question", "EarnedBy": [user_id]})
        store.seed("Badges", {"Badge Name": "Centurion", "EarnedBy": []})

        profile = run_async(session.profile.load())

        assert profile.error_message is None
        assert profile.warning_message is None
        assert profile.user.name == "Ada"
        assert profile.level.level == 2
        assert profile.level.current_xp == 35
        assert [q.title for q in profile.questions] == ["Q2", "Q1"]
        assert len(profile.answers) == 1
        assert [b.name for b in profile.badges] == ["First Question"]
        assert profile.skills[0].name == "python"
        assert profile.total_upvotes == 5

    def test_one_section_failure_is_partial(self, store, ada):
        user_id, session = ada
        store.seed("Answers", {"Answer Text": "A", "Author": [user_id]})
        store.fail("list", TransientNetworkError("down"), table="Questions")

        profile = run_async(session.profile.load())

        assert profile.user is not None
        assert profile.questions == []
        assert len(profile.answers) == 1
        assert profile.warning_message == "Some profile data couldn't be loaded (questions)."

    def test_several_section_failures(self, store, ada):
        _, session = ada
        store.fail("list", TransientNetworkError("down"), table="Questions")
        store.fail("list", TransientNetworkError("down"), table="Answers")

        profile = run_async(session.profile.load())
        assert profile.warning_message == "Some profile data couldn't be loaded."

    def test_user_failure_is_fatal(self, store, ada):
        _, session = ada
        store.fail("get", StoreHTTPError(500, "boom"), table="Users")

        profile = run_async(session.profile.load())
        assert profile.user is None
        assert profile.error_message.startswith("Failed to load profile:")

    def test_signed_out(self, store, config, no_sleep):
        session = ToguSession(store, config, None, sleep=no_sleep)
        profile = run_async(session.profile.load())
        assert profile.error_message.startswith("Failed to load profile:")

    def test_progress(self, ada):
        _, session = ada
        progress = run_async(session.profile.load_progress())
        assert progress.points == 135
        assert progress.level.level == 2
        assert progress.level.xp_needed == 65


# ===========================================================================
# Leaderboard
# ===========================================================================
class TestDecorations:
    @pytest.mark.parametrize("rank, points, expected", [
        (1, 10, (Decoration.GOLD_TROPHY,)),
        (2, 10, (Decoration.SILVER_MEDAL,)),
        (3, 600, (Decoration.SILVER_MEDAL, Decoration.PURPLE_STAR)),
        (4, 499, ()),
        (9, 500, (Decoration.PURPLE_STAR,)),
    ])
    def test_decorations(self, rank, points, expected):
        assert decorations_for(rank, points) == expected


class TestLeaderboard:
    def test_ranked_by_points_with_current_user(self, store, ada):
        user_id, session = ada
        store.seed("Users", {"Name": "Top", "Email": "top@x.io", "Points": 900})
        store.seed("Users", {"Name": "Low", "Email": "low@x.io", "Points": 3})

        view = run_async(session.leaderboard.load())

        assert [e.user.name for e in view.entries] == ["Top", "Ada", "Low"]
        assert [e.rank for e in view.entries] == [1, 2, 3]
        assert view.entries[0].level == 10
        assert view.entries[0].decorations == (Decoration.GOLD_TROPHY, Decoration.PURPLE_STAR)
        assert view.current_user_entry.user.id == user_id
        assert view.current_user_entry.rank == 2

    def test_signed_out_has_no_current_entry(self, store, config, no_sleep):
        store.seed("Users", {"Name": "Top", "Email": "top@x.io", "Points": 900})
        session = ToguSession(store, config, None, sleep=no_sleep)

        view = run_async(session.leaderboard.load())
        assert len(view.entries) == 1
        assert view.current_user_entry is None
