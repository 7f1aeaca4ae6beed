"""
Edition assembly and publishing.

An edition is one calendar day's content: a handful of stories plus one
challenge, tied to the edition through their `edition_date` column.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime

from sqlalchemy import select, update

from pulse.core.errors import NotFoundError
from pulse.core.logging import get_logger
from pulse.models.database import Database
from pulse.models.models import Challenge, ContentStatus, Edition, Story
from pulse.schemas.schemas import EditionOut, PublishResult

logger = get_logger(__name__)


class EditionService:
    def __init__(self, db: Database, clock: Callable[[], datetime] | None = None) -> None:
        self.db = db
        self.clock = clock or (lambda: datetime.now(UTC))

    async def assemble_edition(
        self, edition_date: date, story_ids: list[str], challenge_id: str | None = None
    ) -> EditionOut:
        """Upsert the edition and point the given stories (and challenge) at it."""
        async with self.db.session() as session:
            stories = list(await session.scalars(select(Story).where(Story.id.in_(story_ids))))
            missing = set(story_ids) - {s.id for s in stories}
            if missing:
                raise NotFoundError(f"Story not found: {', '.join(sorted(missing))}")

            challenge = None
            if challenge_id:
                challenge = await session.get(Challenge, challenge_id)
                if challenge is None:
                    raise NotFoundError(f"Challenge not found: {challenge_id}")

            edition = await session.get(Edition, edition_date)
            if edition is None:
                edition = Edition(date=edition_date)
                session.add(edition)
                await session.flush()

            for story in stories:
                story.edition_date = edition_date
            if challenge is not None:
                challenge.edition_date = edition_date

            await session.commit()
            logger.info(
                "edition_assembled",
                date=edition_date.isoformat(),
                stories=len(stories),
                challenge_id=challenge_id,
            )
            return EditionOut.model_validate(edition)

    async def publish_edition(self, edition_date: date) -> PublishResult:
        """
        Move every REVIEW story and challenge on the date to PUBLISHED, then
        stamp the edition. DRAFT/PROCESSING items on the date are left alone.

        The three steps commit separately. If the run dies before the stamp,
        stories are live while `published_at` is still null; running publish
        again for the same date finishes the job.
        """
        async with self.db.session() as session:
            if await session.get(Edition, edition_date) is None:
                raise NotFoundError(f"Edition not found: {edition_date.isoformat()}")

            stories = await session.execute(
                update(Story)
                .where(Story.edition_date == edition_date, Story.status == ContentStatus.REVIEW)
                .values(status=ContentStatus.PUBLISHED)
            )
            await session.commit()

            challenges = await session.execute(
                update(Challenge)
                .where(
                    Challenge.edition_date == edition_date,
                    Challenge.status == ContentStatus.REVIEW,
                )
                .values(status=ContentStatus.PUBLISHED)
            )
            await session.commit()

            await session.execute(
                update(Edition)
                .where(Edition.date == edition_date)
                .values(published_at=self.clock())
            )
            await session.commit()

        logger.info(
            "edition_published",
            date=edition_date.isoformat(),
            stories=stories.rowcount,
            challenges=challenges.rowcount,
        )
        return PublishResult(
            date=edition_date,
            status=ContentStatus.PUBLISHED,
            stories_published=stories.rowcount,
            challenges_published=challenges.rowcount,
        )

    async def get_edition(self, edition_date: date) -> EditionOut | None:
        async with self.db.session() as session:
            edition = await session.get(Edition, edition_date)
            return EditionOut.model_validate(edition) if edition else None
