"""
SQLAlchemy 2.0 ORM models.

Six entities: Story, Challenge, Edition, User, StoryRead, ChallengeSubmission.
Stories and challenges hang off an edition by `edition_date` only; the
edition never owns them.
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ── Enums ───────────────────────────────────────────────────
class ContentStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PROCESSING = "PROCESSING"
    REVIEW = "REVIEW"
    PUBLISHED = "PUBLISHED"


class Skill(str, enum.Enum):
    STRATEGY = "STRATEGY"
    GROWTH = "GROWTH"
    MONETIZATION = "MONETIZATION"
    UX = "UX"
    ANALYTICS = "ANALYTICS"


# ── Models ──────────────────────────────────────────────────
class Edition(Base):
    __tablename__ = "editions"

    date: Mapped[date] = mapped_column(Date, primary_key=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Story(Base):
    __tablename__ = "stories"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    external_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    product: Mapped[str] = mapped_column(String(300), index=True)
    tagline: Mapped[str] = mapped_column(String(500), default="")
    source: Mapped[str] = mapped_column(String(100))
    source_url: Mapped[str] = mapped_column(String(2000), default="")
    category: Mapped[str] = mapped_column(String(100), default="Uncategorized")
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    raw_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary: Mapped[str] = mapped_column(Text, default="")
    breakdown: Mapped[list[dict]] = mapped_column(JSON, default=list)  # [{heading, body}] x3
    read_time_min: Mapped[int] = mapped_column(Integer, default=0)
    edition_date: Mapped[date | None] = mapped_column(
        ForeignKey("editions.date"), nullable=True, index=True
    )
    status: Mapped[ContentStatus] = mapped_column(
        Enum(ContentStatus), default=ContentStatus.DRAFT, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Challenge(Base):
    __tablename__ = "challenges"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    linked_story_id: Mapped[str | None] = mapped_column(
        ForeignKey("stories.id", ondelete="SET NULL"), nullable=True
    )
    skill: Mapped[Skill] = mapped_column(Enum(Skill), default=Skill.STRATEGY)
    question: Mapped[str] = mapped_column(Text)
    options: Mapped[list[dict]] = mapped_column(JSON)  # [{id, text, isCorrect}]
    explanation: Mapped[str] = mapped_column(Text)
    edition_date: Mapped[date | None] = mapped_column(
        ForeignKey("editions.date"), nullable=True, index=True
    )
    status: Mapped[ContentStatus] = mapped_column(
        Enum(ContentStatus), default=ContentStatus.DRAFT, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    @property
    def correct_option(self) -> str | None:
        for option in self.options or []:
            if option.get("isCorrect"):
                return option.get("id")
        return None


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(320), unique=True)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_active_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class StoryRead(Base):
    __tablename__ = "story_reads"
    __table_args__ = (UniqueConstraint("user_id", "story_id", name="uq_story_reads_user_story"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    story_id: Mapped[str] = mapped_column(ForeignKey("stories.id"))
    duration_sec: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ChallengeSubmission(Base):
    __tablename__ = "challenge_submissions"
    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="uq_submissions_user_challenge"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    challenge_id: Mapped[str] = mapped_column(ForeignKey("challenges.id"))
    selected_option: Mapped[str] = mapped_column(String(1))
    is_correct: Mapped[bool] = mapped_column(Boolean)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
