"""
Read-only feed queries: today's edition, a single story, the archive.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import UTC, date, datetime

from sqlalchemy import and_, func, or_, select

from pulse.core.errors import InvalidRequestError, NotFoundError
from pulse.core.logging import get_logger
from pulse.models.database import Database
from pulse.models.models import Challenge, ChallengeSubmission, ContentStatus, Edition, Story, StoryRead
from pulse.schemas.schemas import (
    Archive,
    ArchiveChallenge,
    ArchiveEdition,
    ArchivePagination,
    ArchiveStory,
    ChallengeCard,
    Pagination,
    StoryCard,
    StoryDetail,
    SubmissionState,
    TodayEdition,
    UserState,
)

logger = get_logger(__name__)


class FeedService:
    def __init__(self, db: Database, clock: Callable[[], datetime] | None = None) -> None:
        self.db = db
        self.clock = clock or (lambda: datetime.now(UTC))

    def today(self) -> date:
        return self.clock().astimezone(UTC).date()

    async def get_today_edition(
        self, user_id: str | None = None, limit: int = 2, cursor: str | None = None
    ) -> TodayEdition:
        """
        Published stories for today's edition, oldest first, `limit` at a time.

        `cursor` is the id of the last story the client already has; the page
        starts right after it.
        """
        today = self.today()
        published_today = (Story.edition_date == today, Story.status == ContentStatus.PUBLISHED)

        async with self.db.session() as session:
            query = select(Story).where(*published_today)
            if cursor:
                anchor = await session.get(Story, cursor)
                if (
                    anchor is None
                    or anchor.edition_date != today
                    or anchor.status != ContentStatus.PUBLISHED
                ):
                    raise InvalidRequestError(f"Unknown cursor: {cursor}")
                query = query.where(
                    or_(
                        Story.created_at > anchor.created_at,
                        and_(Story.created_at == anchor.created_at, Story.id > anchor.id),
                    )
                )

            rows = list(
                await session.scalars(
                    query.order_by(Story.created_at, Story.id).limit(limit + 1)
                )
            )
            has_more = len(rows) > limit
            stories = rows[:limit]

            total = await session.scalar(
                select(func.count()).select_from(Story).where(*published_today)
            )

            challenge = await session.scalar(
                select(Challenge)
                .where(Challenge.edition_date == today, Challenge.status == ContentStatus.PUBLISHED)
                .order_by(Challenge.created_at)
                .limit(1)
            )
            challenge_card = None
            if challenge is not None:
                challenge_card = ChallengeCard.model_validate(challenge)
                if challenge.linked_story_id:
                    linked = next((s for s in stories if s.id == challenge.linked_story_id), None)
                    if linked is None:
                        linked = await session.get(Story, challenge.linked_story_id)
                    challenge_card.linked_product = linked.product if linked else None

            user_state = None
            if user_id:
                read_ids: list[str] = []
                if stories:
                    read_ids = list(
                        await session.scalars(
                            select(StoryRead.story_id).where(
                                StoryRead.user_id == user_id,
                                StoryRead.story_id.in_([s.id for s in stories]),
                            )
                        )
                    )
                submission = None
                if challenge is not None:
                    submission = await session.scalar(
                        select(ChallengeSubmission).where(
                            ChallengeSubmission.user_id == user_id,
                            ChallengeSubmission.challenge_id == challenge.id,
                        )
                    )
                user_state = UserState(
                    read_story_ids=read_ids,
                    challenge_submission=(
                        SubmissionState.model_validate(submission) if submission else None
                    ),
                )

        return TodayEdition(
            date=today,
            stories=[StoryCard.model_validate(s) for s in stories],
            challenge=challenge_card,
            pagination=Pagination(
                next_cursor=stories[-1].id if stories else None,
                has_more=has_more,
                total=total or 0,
            ),
            user_state=user_state,
        )

    async def get_story(self, story_id: str, user_id: str | None = None) -> StoryDetail:
        async with self.db.session() as session:
            story = await session.get(Story, story_id)
            if story is None:
                raise NotFoundError(f"Story not found: {story_id}")

            detail = StoryDetail.model_validate(story)
            if user_id:
                read = await session.scalar(
                    select(StoryRead.id).where(
                        StoryRead.user_id == user_id, StoryRead.story_id == story_id
                    )
                )
                detail.is_read = read is not None
            return detail

    async def get_archive(self, page: int = 1, page_size: int = 10) -> Archive:
        async with self.db.session() as session:
            published = Edition.published_at.is_not(None)
            total = await session.scalar(select(func.count()).select_from(Edition).where(published))
            editions = list(
                await session.scalars(
                    select(Edition)
                    .where(published)
                    .order_by(Edition.date.desc())
                    .offset((page - 1) * page_size)
                    .limit(page_size)
                )
            )
            dates = [e.date for e in editions]

            stories_by_date: dict[date, list[ArchiveStory]] = {d: [] for d in dates}
            challenges_by_date: dict[date, list[ArchiveChallenge]] = {d: [] for d in dates}
            if dates:
                for story in await session.scalars(
                    select(Story)
                    .where(Story.edition_date.in_(dates), Story.status == ContentStatus.PUBLISHED)
                    .order_by(Story.created_at, Story.id)
                ):
                    stories_by_date[story.edition_date].append(ArchiveStory.model_validate(story))
                for challenge in await session.scalars(
                    select(Challenge)
                    .where(
                        Challenge.edition_date.in_(dates),
                        Challenge.status == ContentStatus.PUBLISHED,
                    )
                    .order_by(Challenge.created_at)
                ):
                    challenges_by_date[challenge.edition_date].append(
                        ArchiveChallenge.model_validate(challenge)
                    )

        total = total or 0
        return Archive(
            editions=[
                ArchiveEdition(
                    date=e.date,
                    published_at=e.published_at,
                    stories=stories_by_date[e.date],
                    challenges=challenges_by_date[e.date],
                )
                for e in editions
            ],
            pagination=ArchivePagination(
                page=page,
                page_size=page_size,
                total=total,
                total_pages=math.ceil(total / page_size),
            ),
        )
