"""
Repository tests: rider lookups, season-scoped prices, races and results.
"""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from megabike.persistence.db import get_connection, init_db, set_db_path
from megabike.persistence.repositories import RaceRepository, RiderRepository

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


@pytest.fixture
def db_conn(tmp_path):
    db_path = tmp_path / "repo_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def rider_repo():
    return RiderRepository()


def test_season_price_and_points_default_to_none(db_conn, rider_repo):
    rider_repo.create(db_conn, "Wout van Aert", id="wva")
    rider_repo.set_price(db_conn, "wva", 2024, 1500)
    r = rider_repo.get(db_conn, "wva", 2025)
    assert r.price is None and r.points is None
    assert r.to_dict()["price"] == 0
    assert rider_repo.get(db_conn, "wva", 2024).price == 1500


def test_set_price_replaces(db_conn, rider_repo):
    rider_repo.create(db_conn, "Mads Pedersen", id="mp")
    rider_repo.set_price(db_conn, "mp", 2025, 1000)
    rider_repo.set_price(db_conn, "mp", 2025, 1100)
    assert rider_repo.get(db_conn, "mp", 2025).price == 1100
    assert db_conn.execute("SELECT COUNT(*) FROM rider_prices").fetchone()[0] == 1


def test_find_by_name_is_exact(db_conn, rider_repo):
    rider_repo.create(db_conn, "Tom Pidcock", id="tp")
    assert [r.id for r in rider_repo.find_by_name(db_conn, "Tom Pidcock", 2025)] == ["tp"]
    assert rider_repo.find_by_name(db_conn, "tom pidcock", 2025) == []
    assert rider_repo.find_by_name(db_conn, "Pidcock", 2025) == []


def test_search_is_case_insensitive_substring(db_conn, rider_repo):
    for name in ["Tadej Pogačar", "Jonas Vingegaard", "Primož Roglič"]:
        rider_repo.create(db_conn, name)
    names = [r.rider_name for r in rider_repo.search(db_conn, "gaard", 2025)]
    assert names == ["Jonas Vingegaard"]
    names = [r.rider_name for r in rider_repo.search(db_conn, "TADEJ", 2025)]
    assert names == ["Tadej Pogačar"]


def test_search_treats_wildcards_literally(db_conn, rider_repo):
    rider_repo.create(db_conn, "Rider_One")
    rider_repo.create(db_conn, "RiderXOne")
    rider_repo.create(db_conn, "Hundred%")
    assert [r.rider_name for r in rider_repo.search(db_conn, "r_o", 2025)] == ["Rider_One"]
    assert [r.rider_name for r in rider_repo.search(db_conn, "%", 2025)] == ["Hundred%"]


def test_search_limit(db_conn, rider_repo):
    for i in range(15):
        rider_repo.create(db_conn, f"Domestique {i:02d}")
    assert len(rider_repo.search(db_conn, "domestique", 2025)) == 10
    assert len(rider_repo.search(db_conn, "domestique", 2025, limit=3)) == 3


def test_load_from_json(db_conn, rider_repo, tmp_path):
    path = tmp_path / "riders.json"
    path.write_text(json.dumps({
        "season": 2025,
        "riders": [
            {"rider_name": "Biniam Girmay", "team_name": "Intermarché-Wanty", "nationality": "ERI", "price": 800},
            {"id": "milan", "rider_name": "Jonathan Milan", "points": 120, "active": False},
        ],
    }))
    assert rider_repo.load_from_json(db_conn, path, 2025) == 2
    girmay = rider_repo.find_by_name(db_conn, "Biniam Girmay", 2025)[0]
    assert girmay.id == "biniam_girmay"
    assert girmay.price == 800 and girmay.points is None
    milan = rider_repo.get(db_conn, "milan", 2025)
    assert milan.active is False
    assert milan.price is None and milan.points == 120


def test_bundled_rider_file_loads(tmp_path):
    db_path = tmp_path / "seeded.db"
    init_db(db_path=db_path, riders_path=PROJECT_ROOT / "data" / "riders.json", season=2025)
    conn = get_connection(db_path)
    try:
        riders = RiderRepository().search(conn, "", 2025, limit=100)
        assert len(riders) >= 12
        assert all(r.price is not None for r in riders)
    finally:
        conn.close()


class TestRaces:
    @pytest.fixture
    def races(self, db_conn, rider_repo):
        repo = RaceRepository()
        for rid in ("a", "b", "c"):
            rider_repo.create(db_conn, f"Rider {rid.upper()}", team_name="Team", id=rid)
        done = repo.create(db_conn, "Milan-San Remo", "2025-03-22", 2025, id="msr")
        repo.create(db_conn, "Tour of Flanders", "2025-04-06", 2025, id="rvv")
        repo.create(db_conn, "Omloop", "2025-03-01", 2025, id="omloop")
        repo.add_result(db_conn, done.id, "b", 2, 30)
        repo.add_result(db_conn, done.id, "a", 1, 50)
        repo.add_result(db_conn, done.id, "c", 3, 20)
        return repo

    def test_latest_on_or_before_today(self, db_conn, races):
        assert races.latest(db_conn, "2025-03-30").id == "msr"
        assert races.latest(db_conn, "2025-03-22").id == "msr"
        assert races.latest(db_conn, "2025-02-01") is None

    def test_next_strictly_after_today(self, db_conn, races):
        assert races.next(db_conn, "2025-03-22").id == "rvv"
        assert races.next(db_conn, "2025-04-06") is None

    def test_results_ordered_by_rank(self, db_conn, races):
        results = races.results(db_conn, "msr")
        assert [r.rank for r in results] == [1, 2, 3]
        assert results[0].to_dict() == {"rider": "Rider A", "team": "Team", "points": 50, "rank": 1}
        assert len(races.results(db_conn, "msr", limit=2)) == 2
