"""
togu.store.records — Wire-Level Record Shapes
==============================================

The store is schemaless: every record is ``{id, createdTime, fields}`` and
``fields`` omits anything empty.  The pydantic models below give each table
a typed view of ``fields`` (aliases carry the store's column names) and
convert to the domain objects in :mod:`togu.models`.

Validation failures surface as :class:`~togu.errors.DecodingError`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from togu.errors import DecodingError
from togu.models import Answer, EarnedBadge, Question, UserProfile

M = TypeVar("M", bound=BaseModel)


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------
class StoreRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    created_time: str | None = Field(default=None, alias="createdTime")
    fields: dict[str, Any] = Field(default_factory=dict)


class StorePage(BaseModel):
    """One page of a list query.  ``offset`` is the opaque cursor; None at the end."""

    records: list[StoreRecord] = Field(default_factory=list)
    offset: str | None = None


class Attachment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    url: str | None = None
    filename: str | None = None
    type: str | None = None
    size: int | None = None


class _Fields(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def decode_fields(model: type[M], record: StoreRecord) -> M:
    """Validate ``record.fields`` against *model*."""
    try:
        return model.model_validate(record.fields)
    except ValidationError as exc:
        raise DecodingError(
            f"Record {record.id} does not match {model.__name__}: {exc.error_count()} error(s)"
        ) from exc


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------
_FALLBACK_DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d")


def parse_store_date(value: str | None) -> datetime | None:
    """Parse the store's date strings (ISO-8601 first, then plain dates).

    Naive results are assumed to be UTC so everything sorts together.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        parsed = None
        for fmt in _FALLBACK_DATE_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _created_at(field_value: str | None, record: StoreRecord) -> datetime:
    return (
        parse_store_date(field_value)
        or parse_store_date(record.created_time)
        or datetime.now(UTC)
    )


def _first(values: list[str] | None) -> str | None:
    for value in values or ():
        if value:
            return value
    return None


def _first_url(attachments: list[Attachment] | None) -> str | None:
    for attachment in attachments or ():
        if attachment.url:
            return attachment.url
    return None


# ---------------------------------------------------------------------------
# Table views
# ---------------------------------------------------------------------------
class UserFields(_Fields):
    name: str | None = Field(default=None, alias="Name")
    email: str | None = Field(default=None, alias="Email")
    points: int | None = Field(default=None, alias="Points")
    profile_picture: list[Attachment] | None = Field(default=None, alias="ProfilePicture")

    def to_user(self, record: StoreRecord) -> UserProfile:
        return UserProfile(
            id=record.id,
            name=self.name or "Unknown",
            email=self.email or "",
            points=self.points or 0,
            picture_url=_first_url(self.profile_picture),
        )


class QuestionFields(_Fields):
    title: str | None = Field(default=None, alias="Title")
    body: str | None = Field(default=None, alias="Body")
    tags: list[str] | None = Field(default=None, alias="Tags")
    image: list[Attachment] | None = Field(default=None, alias="Image")
    author: list[str] | None = Field(default=None, alias="Author")
    author_name: list[str] | None = Field(default=None, alias="Author Name")
    upvotes: int | None = Field(default=None, alias="Upvotes")
    created_date: str | None = Field(default=None, alias="Created Date")

    def to_question(self, record: StoreRecord) -> Question:
        author_id = _first(self.author)
        return Question(
            id=record.id,
            title=self.title or "(No title)",
            body=self.body or "",
            author=_first(self.author_name) or author_id or "Unknown",
            created_at=_created_at(self.created_date, record),
            tags=tuple(self.tags or ()),
            image_url=_first_url(self.image),
            author_id=author_id,
            upvotes=self.upvotes or 0,
        )


class AnswerFields(_Fields):
    text: str | None = Field(default=None, alias="Answer Text")
    question: list[str] | None = Field(default=None, alias="Question")
    author: list[str] | None = Field(default=None, alias="Author")
    author_name: list[str] | None = Field(default=None, alias="Author Name")
    upvotes: int | None = Field(default=None, alias="Upvotes")
    created_date: str | None = Field(default=None, alias="Created Date")

    def to_answer(self, record: StoreRecord) -> Answer:
        author_id = _first(self.author)
        return Answer(
            id=record.id,
            text=self.text or "",
            author=_first(self.author_name) or author_id or "Unknown",
            created_at=_created_at(self.created_date, record),
            question_id=_first(self.question),
            author_id=author_id,
            upvotes=self.upvotes or 0,
        )


class BadgeFields(_Fields):
    badge_name: str | None = Field(default=None, alias="Badge Name")
    description: str | None = Field(default=None, alias="Description")
    icon: list[Attachment] | None = Field(default=None, alias="Icon")
    earned_by: list[str] | None = Field(default=None, alias="EarnedBy")
    date_earned: str | None = Field(default=None, alias="DateEarned")

    def to_badge(self, record: StoreRecord) -> EarnedBadge | None:
        name = (self.badge_name or "").strip()
        if not name:
            return None
        return EarnedBadge(
            id=record.id,
            name=name,
            description=self.description,
            icon_url=_first_url(self.icon),
            date_earned=parse_store_date(self.date_earned),
        )
