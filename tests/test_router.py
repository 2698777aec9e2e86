"""API tests for the /availability endpoints"""
from datetime import datetime

import pytest
import pytest_asyncio
from conftest import FIXED_NOW, FakeGateway, busy, monday_preferences
from fastapi import Depends
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from mutual_availability.database import get_db
from mutual_availability.domain.availability.providers import ProviderRegistry
from mutual_availability.domain.availability.repository import DatabaseSubjectDirectory
from mutual_availability.domain.availability.router import get_orchestrator
from mutual_availability.domain.availability.service import AvailabilityOrchestrator
from mutual_availability.main import app

MONDAY_NOON = (datetime(2024, 1, 1, 12), datetime(2024, 1, 1, 13))


@pytest.fixture
def registry():
    return ProviderRegistry(
        {
            "google": FakeGateway({"u1": [busy(*MONDAY_NOON)]}),
            "outlook": FakeGateway(),
        }
    )


@pytest_asyncio.fixture
async def client(seeded_db, registry):
    def override_get_db():
        yield seeded_db

    def override_orchestrator(db: Session = Depends(get_db)):
        return AvailabilityOrchestrator(registry, DatabaseSubjectDirectory(db), clock=lambda: FIXED_NOW)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_orchestrator] = override_orchestrator
    app.state.provider_registry = registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def search_body(**overrides):
    body = {
        "subject": {"user_id": "u1"},
        "start_date": "2024-01-01",
        "end_date": "2024-01-02",
        "duration_minutes": 60,
        "preferences": monday_preferences().model_dump(mode="json"),
    }
    body.update(overrides)
    return body


# ============================================================================
# AVAILABILITY SEARCH
# ============================================================================


@pytest.mark.asyncio
async def test_search(client):
    response = await client.post("/availability/search", json=search_body())

    assert response.status_code == 200
    data = response.json()
    assert data["total_slots"] == 12
    assert list(data["days"]) == ["2024-01-01"]
    first = data["days"]["2024-01-01"][0]
    assert first == {"start": "2024-01-01T09:00:00", "end": "2024-01-01T10:00:00", "rating": "good"}


@pytest.mark.asyncio
async def test_search_invalid_range(client):
    response = await client.post("/availability/search", json=search_body(end_date="2024-01-01"))

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "invalid_range"
    assert detail["recovery_suggestion"]


@pytest.mark.asyncio
async def test_search_invalid_duration(client):
    response = await client.post("/availability/search", json=search_body(duration_minutes=5))
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "invalid_duration"


@pytest.mark.asyncio
async def test_search_unknown_subject(client):
    response = await client.post("/availability/search", json=search_body(subject={"user_id": "ghost"}))
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "subject_not_found"


@pytest.mark.asyncio
async def test_search_ambiguous_subject(client):
    response = await client.post(
        "/availability/search", json=search_body(subject={"user_id": "u1", "relationship_id": "r1"})
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_day(client):
    response = await client.post(
        "/availability/day",
        json={
            "subject": {"user_id": "u1"},
            "day": "2024-01-01",
            "duration_minutes": 60,
            "preferences": monday_preferences().model_dump(mode="json"),
        },
    )
    assert response.status_code == 200
    assert len(response.json()) == 12


@pytest.mark.asyncio
async def test_mutual(client):
    response = await client.post(
        "/availability/mutual",
        json={"user_ids": ["u1", "u2"], "start_date": "2024-01-01", "end_date": "2024-01-02", "duration_minutes": 60},
    )
    assert response.status_code == 200
    days = response.json()["days"]
    assert len(days["2024-01-01"]) == 12
    assert len(days["2024-01-02"]) == 15


@pytest.mark.asyncio
async def test_relationship_pair_requires_two_ids(client):
    response = await client.post(
        "/availability/relationships",
        json={"relationship_ids": ["r1"], "start_date": "2024-01-01", "end_date": "2024-01-02", "duration_minutes": 60},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_relationship_pair_with_inactive_relationship(client):
    response = await client.post(
        "/availability/relationships",
        json={
            "relationship_ids": ["r1", "r2"],
            "start_date": "2024-01-01",
            "end_date": "2024-01-02",
            "duration_minutes": 60,
        },
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_suggestions(client):
    prefs = monday_preferences(start_hour=9, end_hour=10).model_dump(mode="json")
    response = await client.post(
        "/availability/suggestions", json=search_body(duration_minutes=120, preferences=prefs)
    )
    assert response.status_code == 200
    assert response.json()["slots"] == [
        {"start": "2024-01-01T09:00:00", "end": "2024-01-01T10:00:00", "rating": "good"}
    ]


@pytest.mark.asyncio
async def test_open_windows(client):
    response = await client.post("/availability/open-windows", json=search_body())
    assert response.status_code == 200
    windows = response.json()["days"]["2024-01-01"]
    assert [(w["start"][11:16], w["end"][11:16]) for w in windows] == [("09:00", "12:00"), ("13:00", "17:00")]


# ============================================================================
# PREFERENCES & RECURRING COMMITMENTS
# ============================================================================


@pytest.mark.asyncio
async def test_preferences_default_then_saved(client):
    response = await client.get("/availability/preferences/relationship/r1")
    assert response.status_code == 200
    assert response.json()["day_preferences"][0]["windows"][0]["end_hour"] == 21

    prefs = monday_preferences(minimum_advance_notice_hours=6).model_dump(mode="json")
    response = await client.put("/availability/preferences/relationship/r1", json=prefs)
    assert response.status_code == 200

    response = await client.get("/availability/preferences/relationship/r1")
    assert response.json()["minimum_advance_notice_hours"] == 6


@pytest.mark.asyncio
async def test_commitment_lifecycle(client):
    base = "/availability/preferences/relationship/r1/commitments"

    response = await client.post(base, json={"title": "Gym", "weekday": "tuesday", "start_hour": 18, "end_hour": 19})
    assert response.status_code == 201
    commitment = response.json()
    assert commitment["title"] == "Gym"

    response = await client.patch(f"{base}/{commitment['id']}", json={"end_hour": 20})
    assert response.status_code == 200
    assert response.json()["end_hour"] == 20

    response = await client.patch(f"{base}/{commitment['id']}", json={"start_hour": 21})
    assert response.status_code == 400

    response = await client.delete(f"{base}/{commitment['id']}")
    assert response.status_code == 200

    response = await client.delete(f"{base}/{commitment['id']}")
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "commitment_not_found"


@pytest.mark.asyncio
async def test_commitment_with_inverted_times(client):
    response = await client.post(
        "/availability/preferences/user/u1/commitments",
        json={"weekday": "monday", "start_hour": 10, "end_hour": 9},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_owner_type(client):
    response = await client.get("/availability/preferences/team/t1")
    assert response.status_code == 404
