"""
togu.services.questions — Question Queries & Creation
======================================================
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace

from togu.constants import ALL_TAGS
from togu.models import Question
from togu.store import formula
from togu.store.client import RemoteStore
from togu.store.records import QuestionFields, StoreRecord, decode_fields

logger = logging.getLogger(__name__)

NEWEST_FIRST = (("Created Date", "desc"),)


def feed_formula(search_text: str = "", tag: str | None = None) -> str | None:
    """Compile the feed filter: tag membership AND case-insensitive title/body search."""
    tag_part = None
    if tag and tag != ALL_TAGS:
        tag_part = formula.contains("Tags", tag)
    return formula.and_(tag_part, formula.text_search(search_text, "Title", "Body"))


def _to_question(record: StoreRecord) -> Question:
    return decode_fields(QuestionFields, record).to_question(record)


class QuestionsService:
    def __init__(self, store: RemoteStore, table: str = "Questions") -> None:
        self._store = store
        self._table = table

    @property
    def table(self) -> str:
        return self._table

    async def fetch_page(
        self,
        *,
        search_text: str = "",
        tag: str | None = None,
        offset: str | None = None,
        page_size: int = 20,
    ) -> tuple[list[Question], str | None]:
        """One feed page plus the continuation cursor (None on the last page)."""
        page = await self._store.list(
            self._table,
            formula=feed_formula(search_text, tag),
            sort=NEWEST_FIRST,
            page_size=page_size,
            offset=offset,
        )
        return [_to_question(r) for r in page.records], page.offset

    async def get_question(self, question_id: str) -> Question:
        return _to_question(await self._store.get(self._table, question_id))

    async def create_question(
        self,
        title: str,
        body: str,
        tags: Sequence[str],
        author_id: str,
        *,
        author_name: str | None = None,
        image_url: str | None = None,
    ) -> Question:
        fields: dict = {
            "Title": title,
            "Body": body,
            "Tags": list(tags),
            "Author": [author_id],
        }
        if image_url:
            fields["Image"] = [{"url": image_url}]
        question = _to_question(await self._store.create(self._table, fields))
        # Lookup fields may not be computed yet in the create response.
        if author_name and question.author == author_id:
            question = replace(question, author=author_name)
        logger.info("Question %s created by %s", question.id, author_id)
        return question

    async def fetch_user_questions(self, user_id: str) -> list[Question]:
        records = await self._store.list_all(
            self._table,
            formula=formula.contains("Author", user_id),
            sort=NEWEST_FIRST,
        )
        return [_to_question(r) for r in records]

    async def count_user_questions(self, user_id: str) -> int:
        records = await self._store.list_all(
            self._table, formula=formula.contains("Author", user_id)
        )
        return len(records)
