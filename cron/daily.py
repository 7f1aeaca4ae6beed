"""
Daily cron job entry point.

Runs as a one-shot scheduled service (e.g. `0 5 * * *`, before the morning
edition goes out): ingest every configured source, process the newest drafts,
then publish today's edition if an editor has already assembled it.

IMPORTANT: This script must exit cleanly after completion.
Open DB connections will keep the job from being marked finished.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import UTC, datetime

from pulse.core.config import get_settings
from pulse.core.logging import get_logger, setup_logging
from pulse.models.database import Database
from pulse.schemas.schemas import ProcessFailure
from pulse.services.completion import CompletionClient, build_chat_model
from pulse.services.edition_service import EditionService
from pulse.services.ingestion_service import IngestionService
from pulse.services.processing_service import ProcessingService

setup_logging()
logger = get_logger("cron")
settings = get_settings()


async def run_daily(db: Database, processing: ProcessingService) -> int:
    ingestion = IngestionService(db, settings)
    editions = EditionService(db)

    ingested = await ingestion.ingest_all()
    for label, result in ingested.items():
        logger.info(
            "cron_ingested",
            source=label,
            ingested=result.ingested,
            skipped=result.skipped,
            errors=len(result.errors),
        )

    processed = await processing.process_all_drafts()
    failures = [r for r in processed if isinstance(r, ProcessFailure)]
    logger.info("cron_processed", total=len(processed), failed=len(failures))

    today = datetime.now(UTC).date()
    edition = await editions.get_edition(today)
    if edition is None:
        logger.info("cron_publish_skipped", date=today.isoformat(), reason="not assembled")
    elif edition.published_at is not None:
        logger.info("cron_publish_skipped", date=today.isoformat(), reason="already published")
    else:
        published = await editions.publish_edition(today)
        logger.info(
            "cron_published",
            date=today.isoformat(),
            stories=published.stories_published,
            challenges=published.challenges_published,
        )
    return 0


async def main() -> int:
    started = datetime.now(UTC)
    logger.info("cron_triggered", started_at=started.isoformat())

    db = Database(settings.database_url)
    await db.open()
    try:
        completions = CompletionClient(build_chat_model(settings), settings.llm_timeout_seconds)
        processing = ProcessingService(db, completions, settings)
        code = await run_daily(db, processing)
        logger.info("cron_completed", seconds=(datetime.now(UTC) - started).total_seconds())
        return code
    except Exception as e:
        logger.error("cron_failed", error=str(e))
        return 1
    finally:
        await db.close()


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
