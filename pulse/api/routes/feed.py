"""
Reader-facing feed endpoints.

GET /api/edition/today — today's stories (paged) + challenge + user overlay
GET /api/stories/{id}  — one story with its read flag
GET /api/archive       — published editions, newest first

Paging parameters are read as raw strings and normalised by FeedQuery and
ArchiveQuery, so an oversized or malformed value is clamped instead of rejected.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query

from pulse.api.deps import FeedServiceDep, OptionalUser
from pulse.core.errors import NotFoundError
from pulse.schemas.schemas import (
    Archive,
    ArchiveQuery,
    FeedQuery,
    StoryDetail,
    TodayEdition,
)

router = APIRouter(tags=["feed"])


@router.get("/edition/today", response_model=TodayEdition)
async def get_today_edition(
    feed: FeedServiceDep,
    user_id: OptionalUser,
    limit: Annotated[str | None, Query()] = None,
    cursor: Annotated[str | None, Query()] = None,
) -> TodayEdition:
    query = FeedQuery(limit=limit, cursor=cursor)
    edition = await feed.get_today_edition(user_id=user_id, limit=query.limit, cursor=query.cursor)
    if not edition.stories and edition.challenge is None:
        raise NotFoundError("No edition published for today")
    return edition


@router.get("/stories/{story_id}", response_model=StoryDetail)
async def get_story(story_id: str, feed: FeedServiceDep, user_id: OptionalUser) -> StoryDetail:
    return await feed.get_story(story_id, user_id)


@router.get("/archive", response_model=Archive)
async def get_archive(
    feed: FeedServiceDep,
    page: Annotated[str | None, Query()] = None,
    page_size: Annotated[str | None, Query(alias="pageSize")] = None,
) -> Archive:
    query = ArchiveQuery(page=page, page_size=page_size)
    return await feed.get_archive(page=query.page, page_size=query.page_size)
