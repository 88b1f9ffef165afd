"""
togu.api.routes.feed — Feed endpoints
======================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from togu.api.deps import get_session
from togu.api.serialize import question_dict
from togu.services.feed import FeedSynchronizer
from togu.session import ToguSession

router = APIRouter(prefix="/feed", tags=["feed"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class SearchUpdate(BaseModel):
    text: str = ""


class TagSelect(BaseModel):
    tag: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def feed_dict(feed: FeedSynchronizer) -> dict:
    return {
        "state": feed.state.value,
        "is_loading": feed.is_loading,
        "error_message": feed.error_message,
        "action_message": feed.action_message,
        "has_more": feed.has_more,
        "search_text": feed.search_text,
        "selected_tag": feed.selected_tag,
        "items": [
            question_dict(q, upvotes=feed.display_count(q), voted=feed.has_voted(q))
            for q in feed.items
        ],
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.get("")
async def get_feed(session: ToguSession = Depends(get_session)):
    """Current feed state; loads the first page on first access."""
    await session.feed.ensure_loaded()
    return feed_dict(session.feed)


@router.post("/reload")
async def reload_feed(session: ToguSession = Depends(get_session)):
    await session.feed.load(reset=True)
    return feed_dict(session.feed)


@router.post("/more")
async def load_more(session: ToguSession = Depends(get_session)):
    await session.feed.load_more()
    return feed_dict(session.feed)


@router.post("/search", status_code=status.HTTP_202_ACCEPTED)
async def set_search(body: SearchUpdate, session: ToguSession = Depends(get_session)):
    """Debounced; the reload happens after the quiet period."""
    session.feed.set_search_text(body.text)
    return {"search_text": session.feed.search_text}


@router.post("/tag")
async def select_tag(body: TagSelect, session: ToguSession = Depends(get_session)):
    await session.feed.select_tag(body.tag)
    return feed_dict(session.feed)


@router.post("/questions/{question_id}/upvote")
async def upvote_question(question_id: str, session: ToguSession = Depends(get_session)):
    question = session.feed.find(question_id)
    if question is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Question not in feed")
    cast = await session.feed.upvote(question)
    return {"cast": cast, "feed": feed_dict(session.feed)}
