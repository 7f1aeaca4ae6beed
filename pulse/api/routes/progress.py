"""
Signed-in reader actions.

POST /api/stories/{id}/read       — idempotent read marking
POST /api/challenges/{id}/submit  — idempotent answer submission
GET  /api/dashboard               — streak and accuracy summary
"""

from __future__ import annotations

from fastapi import APIRouter

from pulse.api.deps import CurrentUser, ProgressServiceDep
from pulse.schemas.schemas import Dashboard, ReadRequest, ReadResult, SubmitRequest, SubmitResult

router = APIRouter(tags=["progress"])


@router.post("/stories/{story_id}/read", response_model=ReadResult)
async def mark_story_read(
    story_id: str,
    user_id: CurrentUser,
    progress: ProgressServiceDep,
    body: ReadRequest | None = None,
) -> ReadResult:
    duration = body.duration_sec if body else None
    return await progress.mark_story_read(user_id, story_id, duration)


@router.post("/challenges/{challenge_id}/submit", response_model=SubmitResult)
async def submit_challenge(
    challenge_id: str,
    body: SubmitRequest,
    user_id: CurrentUser,
    progress: ProgressServiceDep,
) -> SubmitResult:
    return await progress.submit_challenge(user_id, challenge_id, body.selected_option)


@router.get("/dashboard", response_model=Dashboard)
async def get_dashboard(user_id: CurrentUser, progress: ProgressServiceDep) -> Dashboard:
    return await progress.get_dashboard(user_id)
