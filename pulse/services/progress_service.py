"""
User progress — story reads, challenge submissions, streaks, skill accuracy.

Streak rule: a correct answer extends the streak when the user was active
within the window (36h by default, a timezone-friendly buffer); after a longer
gap the streak restarts at 1 (correct) or 0 (incorrect). Incorrect answers
inside the window never lower the streak.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.core.config import Settings
from pulse.core.errors import NotFoundError
from pulse.core.logging import get_logger
from pulse.models.database import Database
from pulse.models.models import Challenge, ChallengeSubmission, Story, StoryRead, User
from pulse.schemas.schemas import Dashboard, ReadResult, SkillAccuracy, SubmitResult

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, halves rounded up."""
    return math.floor(part * 100 / whole + 0.5)


def next_streak(
    current: int,
    longest: int,
    last_active: datetime | None,
    now: datetime,
    is_correct: bool,
    window_hours: float = 36.0,
) -> tuple[int, int]:
    """Return (current_streak, longest_streak) after one submission."""
    if last_active is None:
        hours_since = math.inf
    else:
        hours_since = (_as_utc(now) - _as_utc(last_active)).total_seconds() / 3600

    if hours_since > window_hours:
        streak = 1 if is_correct else 0
    elif is_correct:
        streak = current + 1
    else:
        streak = current

    return streak, max(longest, streak)


class ProgressService:
    def __init__(
        self,
        db: Database,
        settings: Settings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.db = db
        self.settings = settings
        self.clock = clock or (lambda: datetime.now(UTC))

    async def mark_story_read(
        self, user_id: str, story_id: str, duration_sec: int | None = None
    ) -> ReadResult:
        async with self.db.session() as session:
            existing = await session.scalar(
                select(StoryRead).where(StoryRead.user_id == user_id, StoryRead.story_id == story_id)
            )
            if existing is not None:
                return ReadResult(read_id=existing.id, already_read=True)

            user = await session.get(User, user_id)
            if user is None:
                raise NotFoundError(f"User not found: {user_id}")
            if await session.get(Story, story_id) is None:
                raise NotFoundError(f"Story not found: {story_id}")

            read = StoryRead(user_id=user_id, story_id=story_id, duration_sec=duration_sec)
            session.add(read)
            user.last_active_date = self.clock()
            try:
                await session.commit()
            except IntegrityError:
                # A concurrent request inserted the same pair first
                await session.rollback()
                winner = await session.scalar(
                    select(StoryRead).where(
                        StoryRead.user_id == user_id, StoryRead.story_id == story_id
                    )
                )
                if winner is None:
                    raise
                return ReadResult(read_id=winner.id, already_read=True)

            logger.info("story_read", user_id=user_id, story_id=story_id, duration_sec=duration_sec)
            return ReadResult(read_id=read.id, already_read=False)

    async def _stored_result(
        self,
        session: AsyncSession,
        user_id: str,
        challenge_id: str,
        submission: ChallengeSubmission,
    ) -> SubmitResult:
        challenge = await session.get(Challenge, challenge_id)
        user = await session.get(User, user_id)
        return SubmitResult(
            is_correct=submission.is_correct,
            correct_option=challenge.correct_option if challenge else None,
            explanation=challenge.explanation if challenge else "",
            streak=user.current_streak if user else 0,
            already_submitted=True,
        )

    async def submit_challenge(
        self, user_id: str, challenge_id: str, selected_option: str
    ) -> SubmitResult:
        async with self.db.session() as session:
            existing = await session.scalar(
                select(ChallengeSubmission).where(
                    ChallengeSubmission.user_id == user_id,
                    ChallengeSubmission.challenge_id == challenge_id,
                )
            )
            if existing is not None:
                return await self._stored_result(session, user_id, challenge_id, existing)

            challenge = await session.get(Challenge, challenge_id)
            if challenge is None:
                raise NotFoundError(f"Challenge not found: {challenge_id}")
            user = await session.get(User, user_id)
            if user is None:
                raise NotFoundError(f"User not found: {user_id}")

            correct_option = challenge.correct_option
            is_correct = correct_option is not None and correct_option == selected_option

            session.add(
                ChallengeSubmission(
                    user_id=user_id,
                    challenge_id=challenge_id,
                    selected_option=selected_option,
                    is_correct=is_correct,
                )
            )
            now = self.clock()
            user.current_streak, user.longest_streak = next_streak(
                user.current_streak,
                user.longest_streak,
                user.last_active_date,
                now,
                is_correct,
                self.settings.streak_window_hours,
            )
            user.last_active_date = now
            streak = user.current_streak

            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                winner = await session.scalar(
                    select(ChallengeSubmission).where(
                        ChallengeSubmission.user_id == user_id,
                        ChallengeSubmission.challenge_id == challenge_id,
                    )
                )
                if winner is None:
                    raise
                return await self._stored_result(session, user_id, challenge_id, winner)

        logger.info(
            "challenge_submitted",
            user_id=user_id,
            challenge_id=challenge_id,
            is_correct=is_correct,
            streak=streak,
        )
        return SubmitResult(
            is_correct=is_correct,
            correct_option=correct_option,
            explanation=challenge.explanation,
            streak=streak,
            already_submitted=False,
        )

    async def get_dashboard(self, user_id: str) -> Dashboard:
        async with self.db.session() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise NotFoundError(f"User not found: {user_id}")

            stories_read = await session.scalar(
                select(func.count()).select_from(StoryRead).where(StoryRead.user_id == user_id)
            )

            correct_expr = func.sum(case((ChallengeSubmission.is_correct.is_(True), 1), else_=0))
            rows = (
                await session.execute(
                    select(Challenge.skill, func.count(ChallengeSubmission.id), correct_expr)
                    .join(Challenge, Challenge.id == ChallengeSubmission.challenge_id)
                    .where(ChallengeSubmission.user_id == user_id)
                    .group_by(Challenge.skill)
                    .order_by(Challenge.skill)
                )
            ).all()

        skills = [
            SkillAccuracy(
                skill=skill,
                attempts=attempts,
                correct=int(correct or 0),
                accuracy=percent(int(correct or 0), attempts) if attempts else 0,
            )
            for skill, attempts, correct in rows
        ]
        total = sum(s.attempts for s in skills)
        correct_total = sum(s.correct for s in skills)

        return Dashboard(
            streak=user.current_streak,
            longest_streak=user.longest_streak,
            stories_read=stories_read or 0,
            challenges_done=total,
            challenges_correct=correct_total,
            accuracy=percent(correct_total, total) if total else None,
            skills=skills,
        )
