"""Daily job: process drafts, then publish today's assembled edition."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from cron.daily import run_daily
from pulse.models.models import ContentStatus, Story
from pulse.services.completion import CompletionClient
from pulse.services.edition_service import EditionService
from pulse.services.processing_service import ProcessingService


@pytest.mark.asyncio
async def test_run_daily_processes_and_publishes(db, settings, fake_llm, make):
    draft = await make.story(product="Fresh Draft")
    ready = await make.story(product="Ready", status=ContentStatus.REVIEW)
    today = datetime.now(UTC).date()
    editions = EditionService(db)
    await editions.assemble_edition(today, [ready.id])

    processing = ProcessingService(db, CompletionClient(fake_llm), settings)
    assert await run_daily(db, processing) == 0

    async with db.session() as session:
        assert (await session.get(Story, draft.id)).status == ContentStatus.REVIEW
        assert (await session.get(Story, ready.id)).status == ContentStatus.PUBLISHED
    assert (await editions.get_edition(today)).published_at is not None


@pytest.mark.asyncio
async def test_run_daily_without_edition_publishes_nothing(db, settings, fake_llm, make):
    story = await make.story(status=ContentStatus.REVIEW)
    processing = ProcessingService(db, CompletionClient(fake_llm), settings)

    assert await run_daily(db, processing) == 0

    async with db.session() as session:
        assert (await session.get(Story, story.id)).status == ContentStatus.REVIEW
