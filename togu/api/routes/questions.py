"""
togu.api.routes.questions — Posting, question detail & answer votes
====================================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from togu.api.deps import get_session
from togu.api.serialize import answer_dict, question_dict
from togu.models import TargetType
from togu.services.detail import QuestionDetail
from togu.services.votes import VoteOutcome
from togu.session import ToguSession

router = APIRouter(tags=["questions"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class QuestionCreate(BaseModel):
    title: str
    body: str
    tags: list[str] = Field(default_factory=list)
    image_url: str | None = None


class AnswerCreate(BaseModel):
    text: str
    code_snippets: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def detail_dict(detail: QuestionDetail) -> dict:
    question = detail.question
    return {
        "question": (
            question_dict(
                question,
                upvotes=detail.display_count(question),
                voted=detail.has_voted(question),
            )
            if question else None
        ),
        "answers": [
            answer_dict(a, upvotes=detail.display_count(a), voted=detail.has_voted(a))
            for a in detail.answers
        ],
        "error_message": detail.error_message,
        "action_message": detail.action_message,
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.post("/questions", status_code=status.HTTP_201_CREATED)
async def post_question(body: QuestionCreate, session: ToguSession = Depends(get_session)):
    question = await session.contributions.post_question(
        body.title, body.body, body.tags, image_url=body.image_url
    )
    return question_dict(question, upvotes=question.upvotes, voted=False)


@router.get("/questions/{question_id}/answers")
async def get_answers(question_id: str, session: ToguSession = Depends(get_session)):
    detail = session.detail(question_id)
    await detail.load_answers()
    return detail_dict(detail)


@router.post("/questions/{question_id}/answers", status_code=status.HTTP_201_CREATED)
async def post_answer(
    question_id: str,
    body: AnswerCreate,
    session: ToguSession = Depends(get_session),
):
    detail = session.detail(question_id)
    answer = await detail.submit_answer(body.text, body.code_snippets)
    return {
        "answer": answer_dict(answer, upvotes=answer.upvotes, voted=False),
        "detail": detail_dict(detail),
    }


@router.post("/answers/{answer_id}/upvote")
async def upvote_answer(answer_id: str, session: ToguSession = Depends(get_session)):
    voter_id = await session.user_id()
    outcome = await session.votes.cast_vote(voter_id, TargetType.ANSWER, answer_id)
    return {"cast": outcome is VoteOutcome.CAST, "outcome": outcome.value}
