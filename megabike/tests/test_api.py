"""
API integration tests.
Uses TestClient to avoid starting a server.
Requires: pip install httpx (for TestClient)
"""
from __future__ import annotations

from datetime import date, timedelta

import pytest

try:
    from fastapi.testclient import TestClient
    HAS_HTTPX = True
except (ImportError, RuntimeError):
    HAS_HTTPX = False

pytestmark = pytest.mark.skipif(not HAS_HTTPX, reason="httpx required for TestClient")

from megabike.api import app
from megabike.config import BUDGET_CEILING, CURRENT_SEASON, ROSTER_SIZE
from megabike.persistence.db import get_connection, init_db, set_db_path
from megabike.persistence.repositories import AccessCodeRepository, RaceRepository, RiderRepository
from megabike.services import StorageUnavailable, TeamService


@pytest.fixture(autouse=True)
def isolated_db(tmp_path):
    """Use a temporary DB for each test: 14 riders priced 900, two access codes."""
    db_path = tmp_path / "test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection(db_path)
    try:
        repo = RiderRepository()
        for i in range(14):
            repo.create(conn, f"Rider {i:02d}", team_name="Team X", id=f"rider-{i:02d}")
            repo.set_price(conn, f"rider-{i:02d}", CURRENT_SEASON, 900)
        AccessCodeRepository().create(conn, "alpha-code")
        AccessCodeRepository().create(conn, "beta-code")
    finally:
        conn.close()
    yield db_path


@pytest.fixture
def client():
    return TestClient(app)


def _login(client, code="alpha-code") -> dict[str, str]:
    resp = client.post("/auth/verify-code", json={"accessCode": code})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['token']}"}


def _roster(start: int = 0) -> list[dict[str, str]]:
    return [{"id": f"rider-{i:02d}", "rider_name": f"Rider {i:02d}"} for i in range(start, start + ROSTER_SIZE)]


def test_settings(client):
    resp = client.get("/settings")
    assert resp.json() == {"season": CURRENT_SEASON, "budget": BUDGET_CEILING, "rosterSize": ROSTER_SIZE}


def test_verify_code(client):
    resp = client.post("/auth/verify-code", json={"accessCode": " alpha-code "})
    assert resp.status_code == 200
    data = resp.json()
    assert data["token"]
    assert data["user"]["displayName"] == "alpha-code"
    assert data["user"]["profileImageUrl"] is None


def test_verify_code_invalid(client):
    resp = client.post("/auth/verify-code", json={"accessCode": "wrong"})
    assert resp.status_code == 401


def test_me_requires_token(client):
    assert client.get("/me").status_code == 401
    assert client.get("/me", headers={"Authorization": "Bearer junk"}).status_code == 401


def test_update_me(client):
    headers = _login(client)
    resp = client.patch("/me", json={"displayName": "Eddy", "profileImageUrl": "https://img/x.png"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["displayName"] == "Eddy"
    resp = client.patch("/me", json={"profileImageUrl": None}, headers=headers)
    assert resp.json() == {"id": resp.json()["id"], "displayName": "Eddy", "profileImageUrl": None}
    assert client.get("/me", headers=headers).json()["displayName"] == "Eddy"


def test_search_riders(client):
    resp = client.get("/riders?q=rider 0")
    assert resp.status_code == 200
    riders = resp.json()["riders"]
    assert len(riders) == 10
    assert riders[0]["price"] == 900
    assert client.get("/riders?q=").json() == {"riders": []}


def test_create_team_and_read_back(client):
    headers = _login(client)
    resp = client.post("/teams", json={"teamName": "Les Domestiques", "riders": _roster()}, headers=headers)
    assert resp.status_code == 200
    created = resp.json()
    assert created["totalPrice"] == 900 * ROSTER_SIZE
    assert [r["slot"] for r in created["riders"]] == list(range(1, ROSTER_SIZE + 1))

    mine = client.get("/teams/me", headers=headers).json()["team"]
    assert mine["id"] == created["id"]
    assert [r["id"] for r in mine["riders"]] == [r["id"] for r in _roster()]

    public = client.get(f"/teams/{created['id']}").json()
    assert public["ownerName"] == "alpha-code"
    assert public["teamName"] == "Les Domestiques"


def test_my_team_empty(client):
    headers = _login(client)
    assert client.get("/teams/me", headers=headers).json() == {"team": None}


def test_create_team_requires_token(client):
    resp = client.post("/teams", json={"teamName": "Anon", "riders": _roster()})
    assert resp.status_code == 401


def test_body_user_id_ignored(client):
    alpha = _login(client, "alpha-code")
    beta_user = client.post("/auth/verify-code", json={"accessCode": "beta-code"}).json()["user"]
    resp = client.post(
        "/teams",
        json={"teamName": "Mine", "riders": _roster(), "user_id": beta_user["id"]},
        headers=alpha,
    )
    assert resp.status_code == 200
    assert client.get(f"/teams/{resp.json()['id']}").json()["ownerName"] == "alpha-code"
    beta = _login(client, "beta-code")
    assert client.get("/teams/me", headers=beta).json() == {"team": None}


def test_second_team_conflict(client):
    headers = _login(client)
    assert client.post("/teams", json={"teamName": "One", "riders": _roster()}, headers=headers).status_code == 200
    resp = client.post("/teams", json={"teamName": "Two", "riders": _roster(2)}, headers=headers)
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "team_already_exists"


def test_idempotent_retry(client):
    headers = {**_login(client), "Idempotency-Key": "submit-1"}
    first = client.post("/teams", json={"teamName": "Once", "riders": _roster()}, headers=headers)
    second = client.post("/teams", json={"teamName": "Once", "riders": _roster()}, headers=headers)
    assert first.status_code == second.status_code == 200
    assert first.json()["id"] == second.json()["id"]


def test_budget_exceeded(client):
    conn = get_connection()
    try:
        RiderRepository().set_price(conn, "rider-05", CURRENT_SEASON, 1200)
    finally:
        conn.close()
    headers = _login(client)
    resp = client.post("/teams", json={"teamName": "Pricey", "riders": _roster()}, headers=headers)
    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["code"] == "budget_exceeded"
    assert detail["overage"] == 100


def test_duplicate_rider(client):
    headers = _login(client)
    riders = _roster()
    riders[3] = {"id": "rider-00"}
    resp = client.post("/teams", json={"teamName": "Clones", "riders": riders}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "duplicate_rider"


def test_unresolved_rider(client):
    headers = _login(client)
    riders = _roster()
    riders[1] = {"rider_name": "Nobody"}
    resp = client.post("/teams", json={"teamName": "Ghost", "riders": riders}, headers=headers)
    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["code"] == "unresolved_rider"
    assert detail["indices"] == [1]


def test_incomplete_and_bad_name(client):
    headers = _login(client)
    riders = _roster()
    riders[0] = None
    resp = client.post("/teams", json={"teamName": "Gap", "riders": riders}, headers=headers)
    assert resp.json()["detail"]["code"] == "incomplete_roster"
    resp = client.post("/teams", json={"teamName": "x", "riders": _roster()}, headers=headers)
    assert resp.json()["detail"]["code"] == "invalid_name"


def test_oversized_roster_rejected(client):
    headers = _login(client)
    riders = [{"id": "rider-00"}] * (ROSTER_SIZE + 1)
    resp = client.post("/teams", json={"teamName": "Too Many", "riders": riders}, headers=headers)
    assert resp.status_code == 422
    resp = client.post("/teams/preview", json={"teamName": "Too Many", "riders": [{"id": "rider-00"}] * 5000})
    assert resp.status_code == 422
    assert client.get("/teams/me", headers=headers).json() == {"team": None}


def test_preview(client):
    riders = _roster()[:4] + [None] * (ROSTER_SIZE - 4)
    resp = client.post("/teams/preview", json={"teamName": "Draft", "riders": riders})
    data = resp.json()
    assert data["valid"] is False
    assert data["totalCost"] == 3600
    assert data["remaining"] == BUDGET_CEILING - 3600
    assert data["error"]["code"] == "incomplete_roster"
    resp = client.post("/teams/preview", json={"teamName": "Draft", "riders": _roster()})
    assert resp.json()["valid"] is True


def test_storage_unavailable_is_503(client, monkeypatch):
    def _fail(self, *args, **kwargs):
        raise StorageUnavailable("database is locked")

    monkeypatch.setattr(TeamService, "create_team", _fail)
    headers = _login(client)
    resp = client.post("/teams", json={"teamName": "Busy", "riders": _roster()}, headers=headers)
    assert resp.status_code == 503
    assert resp.headers["Retry-After"]
    assert resp.json()["detail"]["code"] == "storage_unavailable"


def test_get_team_not_found(client):
    assert client.get("/teams/missing").status_code == 404


def test_leaderboard(client):
    headers = _login(client)
    team_id = client.post("/teams", json={"teamName": "Leaders", "riders": _roster()}, headers=headers).json()["id"]
    resp = client.get("/leaderboard")
    assert resp.status_code == 200
    teams = resp.json()["teams"]
    assert teams == [{"id": team_id, "teamName": "Leaders", "points": 0, "ownerName": "alpha-code"}]


def test_races(client):
    assert client.get("/races/latest").json() == {"race": None}
    conn = get_connection()
    try:
        repo = RaceRepository()
        today = date.today()
        past = repo.create(conn, "Paris-Roubaix", (today - timedelta(days=2)).isoformat(), CURRENT_SEASON)
        repo.create(conn, "Amstel Gold", (today + timedelta(days=5)).isoformat(), CURRENT_SEASON)
        repo.add_result(conn, past.id, "rider-01", 1, 50)
    finally:
        conn.close()
    latest = client.get("/races/latest").json()["race"]
    assert latest["name"] == "Paris-Roubaix"
    assert latest["results"] == [{"rider": "Rider 01", "team": "Team X", "points": 50, "rank": 1}]
    assert client.get("/races/next").json()["race"]["name"] == "Amstel Gold"
