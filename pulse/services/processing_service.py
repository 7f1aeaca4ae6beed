"""
AI processing — turn one DRAFT story into summary + breakdown + challenge.

Lifecycle:
  DRAFT --claim--> PROCESSING --success--> REVIEW
  PROCESSING --any failure--> DRAFT   (nothing generated is kept)

The claim is a conditional UPDATE on status, so two triggers racing on the
same story cannot both move it to PROCESSING.
"""

from __future__ import annotations

import asyncio
import math

from sqlalchemy import select, update

from pulse.core.config import Settings
from pulse.core.errors import NotFoundError, PreconditionError
from pulse.core.logging import get_logger
from pulse.core.security import sanitize_for_display
from pulse.models.database import Database
from pulse.models.models import Challenge, ContentStatus, Story
from pulse.schemas.schemas import ProcessFailure, ProcessResult
from pulse.services.completion import CompletionClient

logger = get_logger(__name__)


def read_time_minutes(summary: str) -> int:
    """Reading estimate shown on story cards; never below 3 minutes."""
    return max(3, math.ceil(len(summary.split()) / 200) + 3)


class ProcessingService:
    def __init__(self, db: Database, completions: CompletionClient, settings: Settings) -> None:
        self.db = db
        self.completions = completions
        self.settings = settings

    async def _claim(self, story_id: str) -> Story:
        async with self.db.session() as session:
            story = await session.get(Story, story_id)
            if story is None:
                raise NotFoundError(f"Story not found: {story_id}")
            if story.status != ContentStatus.DRAFT:
                raise PreconditionError(
                    f"Story {story_id} is {story.status.value}, expected DRAFT"
                )
            if story.raw_content is None:
                raise PreconditionError(f"Story {story_id} has no raw content to process")

            claimed = await session.execute(
                update(Story)
                .where(Story.id == story_id, Story.status == ContentStatus.DRAFT)
                .values(status=ContentStatus.PROCESSING)
            )
            if claimed.rowcount != 1:
                await session.rollback()
                raise PreconditionError(f"Story {story_id} was claimed by another run")
            await session.commit()
            return story

    async def _revert(self, story_id: str) -> None:
        async with self.db.session() as session:
            await session.execute(
                update(Story)
                .where(Story.id == story_id, Story.status == ContentStatus.PROCESSING)
                .values(status=ContentStatus.DRAFT)
            )
            await session.commit()

    async def process_story(self, story_id: str) -> ProcessResult:
        story = await self._claim(story_id)
        product, tagline, raw_content = story.product, story.tagline, story.raw_content or ""
        logger.info("story_processing_started", story_id=story_id, product=product)

        try:
            summary = sanitize_for_display(
                await self.completions.summarize(product, tagline, raw_content)
            )
            breakdown = await self.completions.breakdown(product, summary)
            generated = await self.completions.challenge(product, summary, breakdown)

            async with self.db.session() as session:
                row = await session.get(Story, story_id)
                if row is None:
                    raise NotFoundError(f"Story not found: {story_id}")
                row.summary = summary
                row.breakdown = [
                    {"heading": s.heading, "body": sanitize_for_display(s.body)} for s in breakdown
                ]
                row.read_time_min = read_time_minutes(summary)
                row.status = ContentStatus.REVIEW

                challenge = Challenge(
                    linked_story_id=story_id,
                    skill=generated.skill,
                    question=generated.question,
                    options=[o.model_dump(by_alias=True) for o in generated.options],
                    explanation=generated.explanation,
                    status=ContentStatus.REVIEW,
                )
                session.add(challenge)
                await session.commit()
                challenge_id = challenge.id

        except BaseException as e:
            # Cancellation included: a story must never be left in PROCESSING
            await asyncio.shield(self._revert(story_id))
            logger.error("story_processing_failed", story_id=story_id, error=str(e) or type(e).__name__)
            raise

        logger.info(
            "story_processed",
            story_id=story_id,
            challenge_id=challenge_id,
            skill=generated.skill.value,
        )
        return ProcessResult(
            story_id=story_id, challenge_id=challenge_id, status=ContentStatus.REVIEW
        )

    async def process_all_drafts(self) -> list[ProcessResult | ProcessFailure]:
        """Process a batch of drafts, newest first. One failure never blocks the others."""
        async with self.db.session() as session:
            story_ids = list(
                await session.scalars(
                    select(Story.id)
                    .where(Story.status == ContentStatus.DRAFT, Story.raw_content.is_not(None))
                    .order_by(Story.created_at.desc())
                    .limit(self.settings.process_batch_size)
                )
            )

        results: list[ProcessResult | ProcessFailure] = []
        for story_id in story_ids:
            try:
                results.append(await self.process_story(story_id))
            except Exception as e:
                results.append(ProcessFailure(story_id=story_id, error=str(e)))

        logger.info(
            "process_all_complete",
            selected=len(story_ids),
            failed=sum(1 for r in results if isinstance(r, ProcessFailure)),
        )
        return results
