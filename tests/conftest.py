"""
Shared pytest fixtures for unit and API tests.

Each test gets its own SQLite file through aiosqlite, and LLM calls go to
FakeListChatModel for deterministic output — no API keys needed.
"""

from __future__ import annotations

import json
import os

os.environ.setdefault("API_KEY", "test-admin-key")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("ADMIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("APP_ENV", "development")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from langchain_core.language_models.fake_chat_models import FakeListChatModel  # noqa: E402

from pulse.core.config import Settings, get_settings  # noqa: E402
from pulse.models.database import Database  # noqa: E402
from pulse.models.models import Challenge, ContentStatus, Skill, Story, User  # noqa: E402

get_settings.cache_clear()

SUMMARY_TEXT = (
    "Linear Insights turns issue-tracker data into roadmap analytics for product teams. "
    "It targets mid-size software companies that already run their planning in Linear."
)

BREAKDOWN = [
    {"heading": "Key Insight: Analytics where the work lives", "body": "No export step."},
    {"heading": "Growth Lever: Seat expansion", "body": "Every viewer becomes a seat."},
    {"heading": "The Tradeoff: Linear-only", "body": "Teams on Jira are out of reach."},
]

CHALLENGE = {
    "skill": "GROWTH",
    "question": "Why does embedding analytics inside the tracker help retention?",
    "options": [
        {"id": "a", "text": "It is cheaper to host", "isCorrect": False},
        {"id": "b", "text": "Insights show up in a daily workflow", "isCorrect": True},
        {"id": "c", "text": "It removes the need for PMs", "isCorrect": False},
        {"id": "d", "text": "It avoids any integrations", "isCorrect": False},
    ],
    "explanation": "Retention follows habit; a tool opened daily keeps insights visible.",
}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'pulse-test.db'}",
        api_key="test-admin-key",
        jwt_secret="test-jwt-secret",
        admin_rate_limit="1000/minute",
        process_batch_size=20,
    )


@pytest_asyncio.fixture
async def db(settings: Settings):
    database = Database(settings.database_url)
    await database.open()
    await database.create_all()
    yield database
    await database.close()


@pytest.fixture
def valid_responses() -> list[str]:
    """Summary, breakdown, challenge — in call order."""
    return [SUMMARY_TEXT, json.dumps(BREAKDOWN), "```json\n" + json.dumps(CHALLENGE) + "\n```"]


@pytest.fixture
def breakdown_payload() -> list[dict]:
    return json.loads(json.dumps(BREAKDOWN))


@pytest.fixture
def challenge_payload() -> dict:
    return json.loads(json.dumps(CHALLENGE))


@pytest.fixture
def fake_llm(valid_responses: list[str]) -> FakeListChatModel:
    return FakeListChatModel(responses=valid_responses)


# ── Row factories ───────────────────────────────────────────
class RowFactory:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def _add(self, row):
        async with self.db.session() as session:
            session.add(row)
            await session.commit()
            return row

    async def story(self, **overrides) -> Story:
        fields = {
            "product": "Linear Insights",
            "tagline": "Roadmap analytics for Linear",
            "source": "Product Hunt",
            "source_url": "https://www.producthunt.com/posts/linear-insights",
            "category": "Productivity",
            "tags": ["Productivity", "Analytics"],
            "raw_content": "Linear Insights adds dashboards on top of your Linear workspace.",
            "status": ContentStatus.DRAFT,
        }
        fields.update(overrides)
        return await self._add(Story(**fields))

    async def challenge(self, **overrides) -> Challenge:
        fields = {
            "skill": Skill.GROWTH,
            "question": CHALLENGE["question"],
            "options": CHALLENGE["options"],
            "explanation": CHALLENGE["explanation"],
            "status": ContentStatus.REVIEW,
        }
        fields.update(overrides)
        return await self._add(Challenge(**fields))

    async def user(self, **overrides) -> User:
        fields = {"email": "reader@example.com"}
        fields.update(overrides)
        return await self._add(User(**fields))


@pytest.fixture
def make(db: Database) -> RowFactory:
    return RowFactory(db)
