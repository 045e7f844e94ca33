"""API route tests. Lifespan disabled; an unstarted aggregator is attached directly."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from builder.store import GameStore
from scheduler.service import AggregatorService
from shared.models.enums import GameStatus
from shared.teams import TeamDirectory, TeamInfo


@pytest.fixture
def service(settings, make_game) -> AggregatorService:
    store = GameStore()
    store.replace_schedule("sidearm", [
        make_game("s1", "Florida", "Georgia", start_hour=17, home_conf="SEC", away_conf="SEC"),
        make_game("s2", "Duke", "Wake Forest", start_hour=16, home_conf="ACC", away_conf="ACC"),
    ])
    store.replace_live("espn", [
        make_game("e1", "Florida", "Georgia", source="espn", status=GameStatus.LIVE,
                  home_score=2, away_score=0, inning=3),
    ])
    store.rebuild()
    directory = TeamDirectory([TeamInfo(name="Florida", abbreviation="FLA", conference="SEC")])
    return AggregatorService(store, [], settings, directory)


@pytest.fixture
def client(service: AggregatorService) -> TestClient:
    app = create_app(use_lifespan=False, service=service)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def bare_client() -> TestClient:
    """No aggregator attached."""
    app = create_app(use_lifespan=False)
    with TestClient(app) as c:
        yield c


def test_health_returns_ok(bare_client: TestClient) -> None:
    """GET /health returns 200 and status ok."""
    r = bare_client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data.get("status") == "ok"
    assert data.get("service") == "api"


def test_health_returns_json(bare_client: TestClient) -> None:
    r = bare_client.get("/health")
    assert r.headers.get("content-type", "").startswith("application/json")


def test_scores_unavailable_without_aggregator(bare_client: TestClient) -> None:
    r = bare_client.get("/api/scores")
    assert r.status_code == 503


def test_scores(client: TestClient) -> None:
    r = client.get("/api/scores")
    assert r.status_code == 200
    data = r.json()
    assert data["count"] == 2
    assert [g["id"] for g in data["games"]] == ["s1", "s2"]
    assert data["games"][0]["status"] == "live"
    assert data["games"][0]["home"]["score"] == 2
    assert data["stats"]["live"] == 1
    assert "date" in data
    assert r.headers.get("ETag", "").startswith('W/"')
    assert "X-Request-ID" in r.headers


def test_scores_conditional_request(client: TestClient) -> None:
    etag = client.get("/api/scores").headers["ETag"]
    r = client.get("/api/scores", headers={"If-None-Match": etag})
    assert r.status_code == 304


def test_live_scores(client: TestClient) -> None:
    data = client.get("/api/scores/live").json()
    assert data["count"] == 1
    assert data["games"][0]["situation"]["inning"] == 3


def test_conference_scores(client: TestClient) -> None:
    data = client.get("/api/scores/conference/acc").json()
    assert data["conference"] == "acc"
    assert [g["id"] for g in data["games"]] == ["s2"]


def test_teams(client: TestClient) -> None:
    data = client.get("/api/teams").json()
    assert data["count"] == 1
    assert data["teams"][0]["abbreviation"] == "FLA"


def test_status(client: TestClient) -> None:
    data = client.get("/api/status").json()
    assert data["status"] == "stopped"
    assert data["uptime_s"] == 0.0
    assert data["games"]["total"] == 2
    assert data["sources"] == {}


def test_request_id_is_echoed(client: TestClient) -> None:
    r = client.get("/api/scores/live", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"
