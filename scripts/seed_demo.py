#!/usr/bin/env python3
"""
Demo seed: load riders → create an access code → redeem it → build a team → read it back.
Run from project root: python3 scripts/seed_demo.py [--code CODE]
"""
from __future__ import annotations

import argparse
import sys
from datetime import date, timedelta
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from megabike.config import BUDGET_CEILING, CURRENT_SEASON, ROSTER_SIZE
from megabike.logging_setup import setup_logging
from megabike.persistence import (
    AccessCodeRepository,
    RaceRepository,
    RiderRepository,
    get_connection,
    init_db,
)
from megabike.persistence.db import set_db_path
from megabike.services import AccessCodeService, RiderRef, RosterError, TeamService


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo MegaBike database")
    parser.add_argument("--db", default=str(PROJECT_ROOT / "data" / "demo.db"))
    parser.add_argument("--code", default="demo-rider")
    args = parser.parse_args()

    setup_logging()
    set_db_path(args.db)
    init_db(db_path=args.db, riders_path=PROJECT_ROOT / "data" / "riders.json", season=CURRENT_SEASON)

    conn = get_connection()
    try:
        # 1. Access code
        code_repo = AccessCodeRepository()
        if code_repo.get_by_code(conn, args.code) is None:
            code_repo.create(conn, args.code)
            print(f"Created access code: {args.code}")

        # 2. Redeem
        token, user = AccessCodeService().redeem(conn, args.code)
        print(f"User {user.id} ({user.display_name}); token {token[:12]}...")

        # 3. Races: one finished, one upcoming
        race_repo = RaceRepository()
        today = date.today()
        if race_repo.latest(conn, today.isoformat()) is None:
            past = race_repo.create(conn, "Omloop Het Nieuwsblad", (today - timedelta(days=3)).isoformat(), CURRENT_SEASON)
            race_repo.create(conn, "Strade Bianche", (today + timedelta(days=4)).isoformat(), CURRENT_SEASON)
            riders = RiderRepository().search(conn, "", CURRENT_SEASON, limit=5)
            for rank, r in enumerate(riders, start=1):
                race_repo.add_result(conn, past.id, r.id, rank, max(0, 60 - 10 * rank))

        # 4. Cheapest legal roster by price
        riders = RiderRepository().search(conn, "", CURRENT_SEASON, limit=200)
        picks = sorted(riders, key=lambda r: r.price or 0)[:ROSTER_SIZE]
        svc = TeamService()
        try:
            team = svc.create_team(
                conn, user.id, CURRENT_SEASON, "Demo Domestiques",
                [RiderRef(id=r.id) for r in picks],
            )
            print(f"Created team {team.team_name}: cost {team.total_cost} / {BUDGET_CEILING}")
        except RosterError as e:
            print(f"Team not created: {e}")

        # 5. Read back
        mine = svc.get_team_for_user(conn, user.id, CURRENT_SEASON)
        assert mine is not None
        for tr in mine.riders:
            print(f"  #{tr.slot:>2} {tr.rider.rider_name} ({tr.rider.price})")
        print("\nSeed complete.")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
