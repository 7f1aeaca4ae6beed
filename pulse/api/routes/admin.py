"""
Editorial / pipeline endpoints. All require the X-API-Key header.

POST /api/admin/ingest             — pull one source into DRAFT stories
POST /api/admin/ingest-all         — pull every configured source
POST /api/admin/process/{storyId}  — generate content for one DRAFT story
POST /api/admin/process-all        — generate content for a batch of drafts
POST /api/admin/edition/assemble   — assign stories + challenge to a date
POST /api/admin/edition/publish    — publish a date's REVIEW content
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from pulse.api.deps import (
    AdminKey,
    EditionServiceDep,
    IngestionServiceDep,
    ProcessingServiceDep,
)
from pulse.core.config import get_settings
from pulse.core.logging import get_logger
from pulse.core.security import limiter
from pulse.schemas.schemas import (
    AssembleRequest,
    EditionOut,
    IngestRequest,
    IngestResult,
    ProcessFailure,
    ProcessResult,
    PublishRequest,
    PublishResult,
)
from pulse.services.sources import SourceKind

router = APIRouter(prefix="/admin", tags=["admin"])
logger = get_logger(__name__)


def _admin_limit() -> str:
    return get_settings().admin_rate_limit


@router.post("/ingest", response_model=IngestResult)
@limiter.limit(_admin_limit)
async def ingest(
    request: Request,
    body: IngestRequest,
    _api_key: AdminKey,
    ingestion: IngestionServiceDep,
) -> IngestResult:
    kind = SourceKind(body.source)
    logger.info("ingest_triggered", source=kind.value)
    return await ingestion.ingest(kind, body.params)


@router.post("/ingest-all", response_model=dict[str, IngestResult])
@limiter.limit(_admin_limit)
async def ingest_all(
    request: Request,
    _api_key: AdminKey,
    ingestion: IngestionServiceDep,
) -> dict[str, IngestResult]:
    return await ingestion.ingest_all()


@router.post("/process/{story_id}", response_model=ProcessResult)
@limiter.limit(_admin_limit)
async def process_story(
    request: Request,
    story_id: str,
    _api_key: AdminKey,
    processing: ProcessingServiceDep,
) -> ProcessResult:
    return await processing.process_story(story_id)


@router.post("/process-all", response_model=list[ProcessResult | ProcessFailure])
@limiter.limit(_admin_limit)
async def process_all(
    request: Request,
    _api_key: AdminKey,
    processing: ProcessingServiceDep,
) -> list[ProcessResult | ProcessFailure]:
    return await processing.process_all_drafts()


@router.post("/edition/assemble", response_model=EditionOut)
@limiter.limit(_admin_limit)
async def assemble_edition(
    request: Request,
    body: AssembleRequest,
    _api_key: AdminKey,
    editions: EditionServiceDep,
) -> EditionOut:
    return await editions.assemble_edition(body.date, body.story_ids, body.challenge_id)


@router.post("/edition/publish", response_model=PublishResult)
@limiter.limit(_admin_limit)
async def publish_edition(
    request: Request,
    body: PublishRequest,
    _api_key: AdminKey,
    editions: EditionServiceDep,
) -> PublishResult:
    return await editions.publish_edition(body.date)
