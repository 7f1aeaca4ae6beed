"""
Pydantic v2 schemas for API request/response validation.

JSON on the wire is camelCase (the frontend contract); Python attributes
stay snake_case.
"""

from __future__ import annotations

import datetime as dt
from typing import Annotated, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pulse.models.models import ContentStatus, Skill

OptionId = Literal["a", "b", "c", "d"]

# ── Query defaults, validated once at the boundary ──────────
FEED_LIMIT_DEFAULT = 2
FEED_LIMIT_MAX = 20
ARCHIVE_PAGE_DEFAULT = 1
ARCHIVE_PAGE_SIZE_DEFAULT = 10
ARCHIVE_PAGE_SIZE_MAX = 50


def _bounded(default: int, maximum: int | None = None) -> BeforeValidator:
    """Unparsable or non-positive values fall back to the default; large ones are capped."""

    def clamp(value: object) -> int:
        try:
            number = int(value)
        except (TypeError, ValueError):
            return default
        if number < 1:
            return default
        return number if maximum is None else min(number, maximum)

    return BeforeValidator(clamp)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ── Query parameters ────────────────────────────────────────
class FeedQuery(CamelModel):
    limit: Annotated[int, _bounded(FEED_LIMIT_DEFAULT, FEED_LIMIT_MAX)] = FEED_LIMIT_DEFAULT
    cursor: Annotated[str | None, BeforeValidator(lambda v: v or None)] = None


class ArchiveQuery(CamelModel):
    page: Annotated[int, _bounded(ARCHIVE_PAGE_DEFAULT)] = ARCHIVE_PAGE_DEFAULT
    page_size: Annotated[
        int, _bounded(ARCHIVE_PAGE_SIZE_DEFAULT, ARCHIVE_PAGE_SIZE_MAX)
    ] = ARCHIVE_PAGE_SIZE_DEFAULT


# ── Content shapes ──────────────────────────────────────────
class BreakdownSection(CamelModel):
    heading: str = Field(min_length=1)
    body: str = Field(min_length=1)


class ChallengeOption(CamelModel):
    id: OptionId
    text: str
    is_correct: bool = False


class SourceItem(CamelModel):
    """One candidate item, normalised from whichever source produced it."""

    external_id: str
    product: str = Field(min_length=1)
    tagline: str = ""
    source: str
    source_url: str = ""
    raw_content: str | None = None
    category: str = "Uncategorized"
    tags: list[str] = []


# ── Ingestion ───────────────────────────────────────────────
class ProductHuntParams(CamelModel):
    token: str = Field(min_length=1)
    days_back: int = Field(default=1, ge=1, le=30)


class RssFeedParams(CamelModel):
    feed_url: str = Field(min_length=1)
    source_name: str = Field(min_length=1)


class ProductHuntIngest(CamelModel):
    source: Literal["product_hunt", "productHunt"]
    params: ProductHuntParams


class RssFeedIngest(CamelModel):
    source: Literal["rss_feed", "rssFeed"]
    params: RssFeedParams


IngestRequest = Annotated[ProductHuntIngest | RssFeedIngest, Field(discriminator="source")]


class IngestResult(CamelModel):
    ingested: int = 0
    skipped: int = 0
    errors: list[str] = []


# ── Processing ──────────────────────────────────────────────
class ProcessResult(CamelModel):
    story_id: str
    challenge_id: str
    status: ContentStatus


class ProcessFailure(CamelModel):
    story_id: str
    error: str


# ── Editions ────────────────────────────────────────────────
class AssembleRequest(CamelModel):
    date: dt.date
    story_ids: list[str] = Field(min_length=1)
    challenge_id: str | None = None


class PublishRequest(CamelModel):
    date: dt.date


class EditionOut(CamelModel):
    date: dt.date
    published_at: dt.datetime | None = None


class PublishResult(CamelModel):
    date: dt.date
    status: ContentStatus = ContentStatus.PUBLISHED
    stories_published: int = 0
    challenges_published: int = 0


# ── Progress ────────────────────────────────────────────────
class ReadRequest(CamelModel):
    duration_sec: int | None = Field(default=None, ge=0)


class ReadResult(CamelModel):
    read_id: str
    already_read: bool


class SubmitRequest(CamelModel):
    selected_option: OptionId


class SubmitResult(CamelModel):
    is_correct: bool
    correct_option: str | None
    explanation: str
    streak: int
    already_submitted: bool


class SkillAccuracy(CamelModel):
    skill: Skill
    attempts: int
    correct: int
    accuracy: int


class Dashboard(CamelModel):
    streak: int
    longest_streak: int
    stories_read: int
    challenges_done: int
    challenges_correct: int
    accuracy: int | None
    skills: list[SkillAccuracy]


# ── Feed ────────────────────────────────────────────────────
class StoryCard(CamelModel):
    id: str
    product: str
    tagline: str
    source: str
    source_url: str
    category: str
    tags: list[str]
    summary: str
    breakdown: list[BreakdownSection]
    read_time_min: int


class StoryDetail(StoryCard):
    edition_date: dt.date | None = None
    is_read: bool = False


class ChallengeCard(CamelModel):
    id: str
    linked_story_id: str | None
    skill: Skill
    question: str
    options: list[ChallengeOption]
    explanation: str
    linked_product: str | None = None


class Pagination(CamelModel):
    next_cursor: str | None
    has_more: bool
    total: int


class SubmissionState(CamelModel):
    selected_option: str
    is_correct: bool


class UserState(CamelModel):
    read_story_ids: list[str]
    challenge_submission: SubmissionState | None = None


class TodayEdition(CamelModel):
    date: dt.date
    stories: list[StoryCard]
    challenge: ChallengeCard | None
    pagination: Pagination
    user_state: UserState | None = None


class ArchiveStory(CamelModel):
    id: str
    product: str
    tagline: str
    category: str
    read_time_min: int


class ArchiveChallenge(CamelModel):
    id: str
    skill: Skill


class ArchiveEdition(CamelModel):
    date: dt.date
    published_at: dt.datetime | None
    stories: list[ArchiveStory]
    challenges: list[ArchiveChallenge]


class ArchivePagination(CamelModel):
    page: int
    page_size: int
    total: int
    total_pages: int


class Archive(CamelModel):
    editions: list[ArchiveEdition]
    pagination: ArchivePagination


# ── Health check ────────────────────────────────────────────
class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str = "0.1.0"
    environment: str
    database: str = "connected"
