"""
Shared FastAPI dependencies for API routes.

Services are built per request around the Database handle and chat model
opened in the app lifespan.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from pulse.core.config import Settings, get_settings
from pulse.core.security import get_current_user_id, get_optional_user_id, verify_api_key
from pulse.models.database import Database, get_database
from pulse.services.completion import CompletionClient
from pulse.services.edition_service import EditionService
from pulse.services.feed_service import FeedService
from pulse.services.ingestion_service import IngestionService
from pulse.services.processing_service import ProcessingService
from pulse.services.progress_service import ProgressService

AppSettings = Annotated[Settings, Depends(get_settings)]
DatabaseDep = Annotated[Database, Depends(get_database)]
AdminKey = Annotated[str, Depends(verify_api_key)]
CurrentUser = Annotated[str, Depends(get_current_user_id)]
OptionalUser = Annotated[str | None, Depends(get_optional_user_id)]


def get_feed_service(db: DatabaseDep) -> FeedService:
    return FeedService(db)


def get_progress_service(db: DatabaseDep, settings: AppSettings) -> ProgressService:
    return ProgressService(db, settings)


def get_edition_service(db: DatabaseDep) -> EditionService:
    return EditionService(db)


def get_ingestion_service(db: DatabaseDep, settings: AppSettings) -> IngestionService:
    return IngestionService(db, settings)


def get_processing_service(
    request: Request, db: DatabaseDep, settings: AppSettings
) -> ProcessingService:
    completions = CompletionClient(request.app.state.llm, settings.llm_timeout_seconds)
    return ProcessingService(db, completions, settings)


FeedServiceDep = Annotated[FeedService, Depends(get_feed_service)]
ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service)]
EditionServiceDep = Annotated[EditionService, Depends(get_edition_service)]
IngestionServiceDep = Annotated[IngestionService, Depends(get_ingestion_service)]
ProcessingServiceDep = Annotated[ProcessingService, Depends(get_processing_service)]
