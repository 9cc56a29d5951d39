"""
Tests for the HTTP API.

Routes run in-process through httpx.ASGITransport with the database and
upstream client swapped via dependency overrides.
"""

import httpx
import pytest
import pytest_asyncio

from raceimport.api.v1.routes.admin import get_http_client
from raceimport.config import settings
from raceimport.db.session import get_async_db, get_session_factory
from raceimport.main import app

ADMIN_KEY = "test-admin-key"
RACE_URL = "https://results.sporthive.com/events/123/races/3"


def sporthive(request: httpx.Request) -> httpx.Response:
    if "/events/500/" in request.url.path:
        return httpx.Response(500, text="Internal Server Error")
    return httpx.Response(200, json=[
        {"bib": "1", "name": "Alex Kim", "gender": 1, "category": "Male 30-34", "chipTime": "1:00:00",
         "rank": 1, "genderRank": 1, "categoryRank": 1},
        {"bib": "2", "name": "Jane Doe", "gender": 2, "category": "Female 30-34", "chipTime": "1:01:40",
         "rank": 2, "genderRank": 1, "categoryRank": 1},
        {"bib": "3", "name": "Carlos Ruiz", "gender": 1, "category": "Male 30-34", "chipTime": "1:03:20",
         "rank": 3, "genderRank": 2, "categoryRank": 2},
        {"bib": "4", "name": "Tom Lee", "gender": 1, "category": "Male 40-44",
         "rank": 4, "genderRank": 3, "categoryRank": 1},
    ])


@pytest_asyncio.fixture
async def client(session_factory, monkeypatch):
    monkeypatch.setattr(settings, "admin_api_key", ADMIN_KEY)
    upstream = httpx.AsyncClient(transport=httpx.MockTransport(sporthive))

    async def override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_http_client] = lambda: upstream

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    await upstream.aclose()


async def import_race(client, url=RACE_URL, **body) -> httpx.Response:
    return await client.post(
        "/api/v1/admin/races/import",
        json={"url": url, **body},
        headers={"X-Admin-Key": ADMIN_KEY},
    )


# =============================================================================
# Test admin import
# =============================================================================

class TestAdminImport:
    """Tests for POST /api/v1/admin/races/import."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_disabled_without_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "admin_api_key", None)
        response = await import_race(client)
        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_wrong_key(self, client):
        response = await client.post(
            "/api/v1/admin/races/import", json={"url": RACE_URL}, headers={"X-Admin-Key": "nope"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_import_and_reimport(self, client):
        first = await import_race(client, event_name="CSILO Run", event_date="2025-08-24")
        assert first.status_code == 200
        body = first.json()
        assert body["ok"] is True
        assert body["total_finishers"] == 4
        assert body["age_group_breakdown"]["Male 30-34"] == 2

        second = await import_race(client)
        assert second.status_code == 200
        assert second.json()["already_imported"] is True

    @pytest.mark.asyncio
    async def test_bad_locator(self, client):
        response = await import_race(client, url="https://example.com/results")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_upstream_failure(self, client):
        response = await import_race(client, url="https://results.sporthive.com/events/500/races/1")
        assert response.status_code == 502


# =============================================================================
# Test race queries
# =============================================================================

class TestRaceQueries:
    """Tests for /api/v1/races endpoints."""

    @pytest_asyncio.fixture
    async def race_event_id(self, client):
        response = await import_race(client, event_name="CSILO Run", event_date="2025-08-24")
        return response.json()["race_event_id"]

    @pytest.mark.asyncio
    async def test_list_races(self, client, race_event_id):
        response = await client.get("/api/v1/races")
        assert response.status_code == 200
        [race] = response.json()
        assert race["id"] == race_event_id
        assert race["event_name"] == "CSILO Run"
        assert race["source"] == "sporthive"
        assert race["total_finishers"] == 4

    @pytest.mark.asyncio
    async def test_list_finishers(self, client, race_event_id):
        response = await client.get(f"/api/v1/races/{race_event_id}/finishers", params={"gender": "M"})
        assert response.status_code == 200
        assert [f["bib"] for f in response.json()] == ["1", "3", "4"]

    @pytest.mark.asyncio
    async def test_bad_gender_filter(self, client, race_event_id):
        response = await client.get(f"/api/v1/races/{race_event_id}/finishers", params={"gender": "X"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_bib_lookup(self, client, race_event_id):
        response = await client.get(f"/api/v1/races/{race_event_id}/bib/3")
        assert response.status_code == 200
        body = response.json()
        assert body["finisher"]["name"] == "Carlos Ruiz"
        assert body["finisher"]["chip_time"] == "1:03:20"
        assert body["overall_pct"] == 25
        assert body["gender_pct"] == 33
        assert body["age_group_pct"] == 0

    @pytest.mark.asyncio
    async def test_unknown_bib_and_race(self, client, race_event_id):
        assert (await client.get(f"/api/v1/races/{race_event_id}/bib/999")).status_code == 404
        assert (await client.get("/api/v1/races/9999/bib/1")).status_code == 404

    @pytest.mark.asyncio
    async def test_claim(self, client, race_event_id):
        response = await client.post(
            f"/api/v1/races/{race_event_id}/claim", json={"bib": "2", "athlete_id": "athlete-42"}
        )
        assert response.status_code == 200
        assert response.json()["finisher"]["athlete_id"] == "athlete-42"

        lookup = await client.get(f"/api/v1/races/{race_event_id}/bib/2")
        assert lookup.json()["finisher"]["athlete_id"] == "athlete-42"

    @pytest.mark.asyncio
    async def test_stats(self, client, race_event_id):
        response = await client.get(f"/api/v1/races/{race_event_id}/stats")
        assert response.status_code == 200
        stats = {(s["age_group"], s["gender"]): s for s in response.json()}
        assert stats[("Male 30-34", 1)]["finishers"] == 2
        assert stats[("Male 30-34", 1)]["fastest"] == "1:00:00"
        assert ("Male 40-44", 1) not in stats

    @pytest.mark.asyncio
    async def test_percentile(self, client, race_event_id):
        response = await client.get(f"/api/v1/races/{race_event_id}/percentile", params={"time": "1:02:00"})
        assert response.status_code == 200
        assert response.json() == {"time_s": 3720, "percentile": 66.7}

        bad = await client.get(f"/api/v1/races/{race_event_id}/percentile", params={"time": "soon"})
        assert bad.status_code == 400
