"""
Ingestion — pull items from a source adapter and store them as DRAFT stories.

Deduplication is exact equality on (product, source): an item whose pair
already exists is skipped and never overwritten. Per-item failures are
collected and never abort the rest of the batch.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError
from sqlalchemy import select

from pulse.core.config import Settings
from pulse.core.logging import get_logger
from pulse.models.database import Database
from pulse.models.models import ContentStatus, Story
from pulse.schemas.schemas import IngestResult, ProductHuntParams, RssFeedParams, SourceItem
from pulse.services.sources import RawItem, SourceKind, build_adapter

logger = get_logger(__name__)


def _describe(error: Exception) -> str:
    if isinstance(error, ValidationError):
        return "; ".join(
            f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in error.errors()
        )
    return str(error)


class IngestionService:
    def __init__(
        self,
        db: Database,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.db = db
        self.settings = settings
        self._http_client = http_client

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.settings.source_http_timeout) as client:
            yield client

    async def ingest(self, kind: SourceKind, params: BaseModel | dict[str, Any]) -> IngestResult:
        """Fetch from one source and insert new items as DRAFT stories."""
        async with self._client() as client:
            adapter = build_adapter(kind, client)
            if not isinstance(params, BaseModel):
                params = adapter.params_model.model_validate(params)
            records = await adapter.fetch(params)

        result = await self._store(records)
        logger.info(
            "ingest_complete",
            source=kind.value,
            fetched=len(records),
            ingested=result.ingested,
            skipped=result.skipped,
            errors=len(result.errors),
        )
        return result

    async def _store(self, records: list[RawItem]) -> IngestResult:
        result = IngestResult()
        async with self.db.session() as session:
            for record in records:
                label = record.get("product") or record.get("external_id") or "unknown item"
                try:
                    item = SourceItem.model_validate(record)
                    existing = await session.scalar(
                        select(Story.id)
                        .where(Story.product == item.product, Story.source == item.source)
                        .limit(1)
                    )
                    if existing is not None:
                        result.skipped += 1
                        continue

                    session.add(
                        Story(
                            external_id=item.external_id,
                            product=item.product,
                            tagline=item.tagline,
                            source=item.source,
                            source_url=item.source_url,
                            category=item.category,
                            tags=item.tags,
                            raw_content=item.raw_content,
                            summary="",
                            breakdown=[],
                            status=ContentStatus.DRAFT,
                        )
                    )
                    await session.commit()
                    result.ingested += 1
                except Exception as e:
                    await session.rollback()
                    reason = _describe(e)
                    logger.warning("ingest_item_failed", product=label, error=reason)
                    result.errors.append(f"Failed to ingest {label}: {reason}")
        return result

    async def ingest_all(self) -> dict[str, IngestResult]:
        """Run every configured source. One failing source never blocks the others."""
        jobs: list[tuple[str, SourceKind, BaseModel]] = []
        if self.settings.product_hunt_token:
            jobs.append(
                (
                    SourceKind.PRODUCT_HUNT.value,
                    SourceKind.PRODUCT_HUNT,
                    ProductHuntParams(
                        token=self.settings.product_hunt_token,
                        days_back=self.settings.product_hunt_days_back,
                    ),
                )
            )
        for feed in self.settings.rss_feeds:
            jobs.append(
                (
                    f"rss:{feed.source_name}",
                    SourceKind.RSS_FEED,
                    RssFeedParams(feed_url=feed.feed_url, source_name=feed.source_name),
                )
            )

        results: dict[str, IngestResult] = {}
        for label, kind, params in jobs:
            try:
                results[label] = await self.ingest(kind, params)
            except Exception as e:
                logger.error("ingest_source_failed", source=label, error=str(e))
                results[label] = IngestResult(errors=[f"Source {label} failed: {e}"])

        if not jobs:
            logger.warning("ingest_all_skipped", reason="no sources configured")
        return results
