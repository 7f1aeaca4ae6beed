"""Unit tests for FastAPI endpoints."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from pulse.core.config import get_settings
from pulse.core.security import create_access_token
from pulse.main import create_app
from pulse.models.database import Database
from pulse.models.models import ContentStatus
from pulse.schemas.schemas import IngestResult
from pulse.services.edition_service import EditionService
from pulse.services.ingestion_service import IngestionService
from pulse.services.sources import SourceKind


@pytest.fixture
def client(settings, fake_llm):
    """Sync test client; the lifespan opens a fresh SQLite file."""
    app = create_app(settings, Database(settings.database_url), llm=fake_llm)
    with TestClient(app) as c:
        yield c


@pytest_asyncio.fixture
async def api(settings, db, fake_llm):
    """Async client sharing the test database with the row factories."""
    app = create_app(settings, db, llm=fake_llm)
    app.state.db = db
    app.state.llm = fake_llm
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def admin_headers():
    return {"X-API-Key": get_settings().api_key}


def _auth(user) -> dict[str, str]:
    token = create_access_token(user.id, user.email, get_settings())
    return {"Authorization": f"Bearer {token}"}


class TestHealthEndpoint:
    def test_health_returns_200(self, client):
        resp = client.get("/healthz/")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"

    def test_health_includes_environment(self, client):
        resp = client.get("/healthz/")
        assert "environment" in resp.json()


class TestRootEndpoint:
    def test_root_returns_service_info(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["service"] == "Product Pulse"


class TestAuth:
    def test_dashboard_requires_token(self, client):
        resp = client.get("/api/dashboard")
        assert resp.status_code == 401

    def test_garbage_token_is_rejected(self, client):
        resp = client.get("/api/dashboard", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_admin_requires_api_key(self, client):
        resp = client.post("/api/admin/process-all")
        assert resp.status_code == 403

    def test_admin_rejects_wrong_api_key(self, client):
        resp = client.post("/api/admin/process-all", headers={"X-API-Key": "wrong"})
        assert resp.status_code == 403


class TestValidation:
    def test_ingest_rejects_unknown_source(self, client, admin_headers):
        resp = client.post(
            "/api/admin/ingest",
            json={"source": "hacker_news", "params": {}},
            headers=admin_headers,
        )
        assert resp.status_code == 422

    @pytest.mark.parametrize(
        ("source", "params", "expected"),
        [
            ("rssFeed", {"feedUrl": "https://example.com/feed.xml", "sourceName": "Example"}, SourceKind.RSS_FEED),
            ("rss_feed", {"feedUrl": "https://example.com/feed.xml", "sourceName": "Example"}, SourceKind.RSS_FEED),
            ("productHunt", {"token": "ph-token"}, SourceKind.PRODUCT_HUNT),
        ],
    )
    def test_ingest_accepts_both_source_spellings(
        self, client, admin_headers, monkeypatch, source, params, expected
    ):
        seen = []

        async def fake_ingest(self, kind, body_params):
            seen.append(kind)
            return IngestResult(ingested=0)

        monkeypatch.setattr(IngestionService, "ingest", fake_ingest)
        resp = client.post(
            "/api/admin/ingest", json={"source": source, "params": params}, headers=admin_headers
        )
        assert resp.status_code == 200
        assert seen == [expected]

    def test_oversized_feed_limit_is_not_rejected(self, client):
        # Nothing is published, so the clamped request still reaches the 404
        for query in ("limit=50", "limit=0", "limit=abc"):
            resp = client.get(f"/api/edition/today?{query}")
            assert resp.status_code == 404, query

    def test_archive_paging_is_clamped(self, client):
        resp = client.get("/api/archive?page=0&pageSize=100")
        assert resp.status_code == 200
        assert resp.json()["pagination"]["page"] == 1
        assert resp.json()["pagination"]["pageSize"] == 50

    def test_archive_paging_falls_back_to_defaults(self, client):
        resp = client.get("/api/archive?page=-3&pageSize=lots")
        assert resp.json()["pagination"]["page"] == 1
        assert resp.json()["pagination"]["pageSize"] == 10

    def test_no_edition_today_is_404(self, client):
        resp = client.get("/api/edition/today")
        assert resp.status_code == 404
        assert resp.json()["code"] == "not_found"


class TestReaderFlow:
    @pytest.mark.asyncio
    async def test_process_publish_read_submit(self, api, admin_headers, make):
        story = await make.story()
        user = await make.user()
        today = datetime.now(UTC).date().isoformat()

        processed = await api.post(f"/api/admin/process/{story.id}", headers=admin_headers)
        assert processed.status_code == 200
        challenge_id = processed.json()["challengeId"]
        assert processed.json()["status"] == "REVIEW"

        assembled = await api.post(
            "/api/admin/edition/assemble",
            json={"date": today, "storyIds": [story.id], "challengeId": challenge_id},
            headers=admin_headers,
        )
        assert assembled.status_code == 200

        published = await api.post(
            "/api/admin/edition/publish", json={"date": today}, headers=admin_headers
        )
        assert published.json()["storiesPublished"] == 1
        assert published.json()["challengesPublished"] == 1

        edition = (await api.get("/api/edition/today", headers=_auth(user))).json()
        assert [s["id"] for s in edition["stories"]] == [story.id]
        assert edition["challenge"]["linkedProduct"] == "Linear Insights"
        assert edition["userState"]["readStoryIds"] == []

        read = await api.post(f"/api/stories/{story.id}/read", json={"durationSec": 80}, headers=_auth(user))
        assert read.json()["alreadyRead"] is False
        again = await api.post(f"/api/stories/{story.id}/read", headers=_auth(user))
        assert again.json()["alreadyRead"] is True

        submitted = await api.post(
            f"/api/challenges/{challenge_id}/submit",
            json={"selectedOption": "b"},
            headers=_auth(user),
        )
        body = submitted.json()
        assert body["isCorrect"] is True
        assert body["correctOption"] == "b"
        assert body["streak"] == 1

        dashboard = (await api.get("/api/dashboard", headers=_auth(user))).json()
        assert dashboard["storiesRead"] == 1
        assert dashboard["challengesDone"] == 1
        assert dashboard["accuracy"] == 100

    @pytest.mark.asyncio
    async def test_processing_non_draft_is_409(self, api, admin_headers, make):
        story = await make.story(status=ContentStatus.REVIEW)
        resp = await api.post(f"/api/admin/process/{story.id}", headers=admin_headers)
        assert resp.status_code == 409
        assert resp.json()["code"] == "precondition_failed"

    @pytest.mark.asyncio
    async def test_invalid_option_is_422(self, api, make):
        user = await make.user()
        challenge = await make.challenge()
        resp = await api.post(
            f"/api/challenges/{challenge.id}/submit",
            json={"selectedOption": "e"},
            headers=_auth(user),
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_token_cookie_is_accepted(self, api, make):
        user = await make.user()
        token = create_access_token(user.id, user.email, get_settings())
        api.cookies.set("token", token)
        resp = await api.get("/api/dashboard")
        assert resp.status_code == 200
        assert resp.json()["accuracy"] is None

    @pytest.mark.asyncio
    async def test_unknown_story_is_404(self, api):
        resp = await api.get("/api/stories/missing")
        assert resp.status_code == 404
        assert resp.json()["error"].startswith("Story not found")

    @pytest.mark.asyncio
    async def test_large_limit_returns_whole_edition(self, db, api, make):
        stories = [
            await make.story(product=f"Launch {i}", status=ContentStatus.REVIEW) for i in range(3)
        ]
        challenge = await make.challenge(linked_story_id=stories[0].id)
        today = datetime.now(UTC).date()
        editions = EditionService(db)
        await editions.assemble_edition(today, [s.id for s in stories], challenge.id)
        await editions.publish_edition(today)

        resp = await api.get("/api/edition/today?limit=500")
        assert resp.status_code == 200
        body = resp.json()
        assert len(body["stories"]) == 3
        assert body["pagination"]["hasMore"] is False
