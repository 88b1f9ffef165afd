"""
togu.services.answers — Answer Queries & Creation
==================================================

Answers under a question read oldest first (a conversation); a user's own
answers on the profile read newest first.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from togu.models import Answer
from togu.store import formula
from togu.store.client import RemoteStore
from togu.store.records import AnswerFields, StoreRecord, decode_fields

logger = logging.getLogger(__name__)


def _to_answer(record: StoreRecord) -> Answer:
    return decode_fields(AnswerFields, record).to_answer(record)


class AnswersService:
    def __init__(self, store: RemoteStore, table: str = "Answers") -> None:
        self._store = store
        self._table = table

    @property
    def table(self) -> str:
        return self._table

    async def fetch_answers(self, question_id: str) -> list[Answer]:
        records = await self._store.list_all(
            self._table,
            formula=formula.contains("Question", question_id),
            sort=(("Created Date", "asc"),),
        )
        return sorted((_to_answer(r) for r in records), key=lambda a: a.created_at)

    async def answer_count(self, question_id: str) -> int:
        records = await self._store.list_all(
            self._table, formula=formula.contains("Question", question_id)
        )
        return len(records)

    async def create_answer(
        self,
        question_id: str,
        text: str,
        author_id: str,
        *,
        author_name: str | None = None,
    ) -> Answer:
        record = await self._store.create(
            self._table,
            {"Answer Text": text, "Question": [question_id], "Author": [author_id]},
        )
        answer = _to_answer(record)
        if author_name and answer.author == author_id:
            answer = replace(answer, author=author_name)
        logger.info("Answer %s posted on %s by %s", answer.id, question_id, author_id)
        return answer

    async def fetch_user_answers(self, user_id: str) -> list[Answer]:
        records = await self._store.list_all(
            self._table,
            formula=formula.contains("Author", user_id),
            sort=(("Created Date", "desc"),),
        )
        return sorted(
            (_to_answer(r) for r in records), key=lambda a: a.created_at, reverse=True
        )

    async def count_user_answers(self, user_id: str) -> int:
        records = await self._store.list_all(
            self._table, formula=formula.contains("Author", user_id)
        )
        return len(records)
