"""
Repository interfaces for MegaBike data.
No business logic, only read/write operations.

Most writes commit immediately. TeamRepository.insert_team / insert_slot do
not: they run inside a caller-owned transaction (see db.transaction).
"""
from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

from megabike.models import (
    AccessCode,
    LeaderboardEntry,
    Race,
    RaceResult,
    Rider,
    Team,
    TeamRider,
    User,
)


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _slug(name: str) -> str:
    """Stable id from rider name (lowercase, spaces to underscores)."""
    return name.strip().lower().replace(" ", "_").replace("-", "_").replace(".", "")


# ---------- AccessCodeRepository ----------


class AccessCodeRepository:
    """CRUD for access codes."""

    def create(
        self, conn: sqlite3.Connection, code: str, is_active: bool = True, id: str | None = None
    ) -> AccessCode:
        cid = id or str(uuid.uuid4())
        now = datetime.utcnow().isoformat()
        conn.execute(
            "INSERT INTO access_codes (id, code, is_active, created_at) VALUES (?, ?, ?, ?)",
            (cid, code, 1 if is_active else 0, now),
        )
        conn.commit()
        return AccessCode(id=cid, code=code, is_active=is_active, created_at=datetime.fromisoformat(now))

    def get_by_code(self, conn: sqlite3.Connection, code: str) -> AccessCode | None:
        row = conn.execute(
            "SELECT id, code, is_active, created_at FROM access_codes WHERE code = ?",
            (code,),
        ).fetchone()
        if row is None:
            return None
        return AccessCode(
            id=row["id"],
            code=row["code"],
            is_active=bool(row["is_active"]),
            created_at=_parse_datetime(row["created_at"]),
        )

    def set_active(self, conn: sqlite3.Connection, code_id: str, is_active: bool) -> None:
        conn.execute("UPDATE access_codes SET is_active = ? WHERE id = ?", (1 if is_active else 0, code_id))
        conn.commit()


# ---------- UserRepository ----------


_USER_COLS = "id, access_code_id, display_name, profile_image_url, created_at"


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        display_name=row["display_name"],
        created_at=_parse_datetime(row["created_at"]),
        access_code_id=row["access_code_id"],
        profile_image_url=row["profile_image_url"],
    )


class UserRepository:
    """CRUD for users. A user is bound to exactly one access code."""

    def create(
        self,
        conn: sqlite3.Connection,
        display_name: str,
        access_code_id: str | None = None,
        id: str | None = None,
    ) -> User:
        uid = id or str(uuid.uuid4())
        now = datetime.utcnow().isoformat()
        conn.execute(
            "INSERT INTO users (id, access_code_id, display_name, profile_image_url, created_at) VALUES (?, ?, ?, ?, ?)",
            (uid, access_code_id, display_name, None, now),
        )
        conn.commit()
        return User(
            id=uid, display_name=display_name, created_at=datetime.fromisoformat(now),
            access_code_id=access_code_id,
        )

    def get(self, conn: sqlite3.Connection, user_id: str) -> User | None:
        row = conn.execute(f"SELECT {_USER_COLS} FROM users WHERE id = ?", (user_id,)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_access_code(self, conn: sqlite3.Connection, access_code_id: str) -> User | None:
        row = conn.execute(
            f"SELECT {_USER_COLS} FROM users WHERE access_code_id = ?", (access_code_id,)
        ).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_profile(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        display_name: str | None = None,
        profile_image_url: str | None = None,
        clear_image: bool = False,
    ) -> User | None:
        """Update only the provided fields. clear_image sets profile_image_url to NULL."""
        sets: list[str] = []
        args: list[Any] = []
        if display_name:
            sets.append("display_name = ?")
            args.append(display_name)
        if profile_image_url is not None or clear_image:
            sets.append("profile_image_url = ?")
            args.append(profile_image_url)
        if sets:
            conn.execute(f"UPDATE users SET {', '.join(sets)} WHERE id = ?", (*args, user_id))
            conn.commit()
        return self.get(conn, user_id)


# ---------- RiderRepository ----------


# Riders joined with one season's price and points (NULL when absent)
_RIDER_SELECT = """
    SELECT r.id, r.rider_name, r.team_name, r.nationality, r.active, p.price, pt.points
    FROM riders r
    LEFT JOIN rider_prices p ON p.rider_id = r.id AND p.season_year = ?
    LEFT JOIN rider_points pt ON pt.rider_id = r.id AND pt.season_year = ?
"""


def _row_to_rider(row: sqlite3.Row) -> Rider:
    return Rider(
        id=row["id"],
        rider_name=row["rider_name"],
        team_name=row["team_name"],
        nationality=row["nationality"],
        active=bool(row["active"]),
        price=row["price"],
        points=row["points"],
    )


class RiderRepository:
    """Riders and their season prices/points. Read-only from the team-building flow."""

    def create(
        self,
        conn: sqlite3.Connection,
        rider_name: str,
        team_name: str | None = None,
        nationality: str | None = None,
        active: bool = True,
        id: str | None = None,
    ) -> Rider:
        rid = id or str(uuid.uuid4())
        conn.execute(
            "INSERT INTO riders (id, rider_name, team_name, nationality, active) VALUES (?, ?, ?, ?, ?)",
            (rid, rider_name, team_name, nationality, 1 if active else 0),
        )
        conn.commit()
        return Rider(id=rid, rider_name=rider_name, team_name=team_name, nationality=nationality, active=active)

    def set_price(self, conn: sqlite3.Connection, rider_id: str, season: int, price: int) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO rider_prices (rider_id, season_year, price) VALUES (?, ?, ?)",
            (rider_id, season, price),
        )
        conn.commit()

    def set_points(self, conn: sqlite3.Connection, rider_id: str, season: int, points: int) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO rider_points (rider_id, season_year, points) VALUES (?, ?, ?)",
            (rider_id, season, points),
        )
        conn.commit()

    def get(self, conn: sqlite3.Connection, rider_id: str, season: int) -> Rider | None:
        row = conn.execute(_RIDER_SELECT + " WHERE r.id = ?", (season, season, rider_id)).fetchone()
        return _row_to_rider(row) if row is not None else None

    def find_by_name(
        self, conn: sqlite3.Connection, rider_name: str, season: int, limit: int = 2
    ) -> list[Rider]:
        """Exact display-name match. Default limit 2 is enough to detect ambiguity."""
        rows = conn.execute(
            _RIDER_SELECT + " WHERE r.rider_name = ? ORDER BY r.id LIMIT ?",
            (season, season, rider_name, int(limit)),
        ).fetchall()
        return [_row_to_rider(r) for r in rows]

    def search(self, conn: sqlite3.Connection, query: str, season: int, limit: int = 10) -> list[Rider]:
        """Case-insensitive substring match on rider_name, for autocomplete."""
        escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        rows = conn.execute(
            _RIDER_SELECT + " WHERE r.rider_name LIKE ? ESCAPE '\\' ORDER BY r.rider_name LIMIT ?",
            (season, season, f"%{escaped}%", int(limit)),
        ).fetchall()
        return [_row_to_rider(r) for r in rows]

    def load_from_json(self, conn: sqlite3.Connection, path: Path, season: int) -> int:
        """
        Load riders from JSON: {"riders": [{"rider_name", "team_name", "nationality",
        "active", "price", "points", "id"?}]}. Missing id falls back to a name slug.
        Upserts; returns the number of riders loaded.
        """
        data = json.loads(Path(path).read_text())
        riders = data.get("riders", [])
        season = int(data.get("season", season))
        cur = conn.cursor()
        for r in riders:
            name = r["rider_name"]
            rid = r.get("id") or _slug(name)
            cur.execute(
                "INSERT OR REPLACE INTO riders (id, rider_name, team_name, nationality, active) VALUES (?, ?, ?, ?, ?)",
                (rid, name, r.get("team_name"), r.get("nationality"), 1 if r.get("active", True) else 0),
            )
            if r.get("price") is not None:
                cur.execute(
                    "INSERT OR REPLACE INTO rider_prices (rider_id, season_year, price) VALUES (?, ?, ?)",
                    (rid, season, int(r["price"])),
                )
            if r.get("points") is not None:
                cur.execute(
                    "INSERT OR REPLACE INTO rider_points (rider_id, season_year, points) VALUES (?, ?, ?)",
                    (rid, season, int(r["points"])),
                )
        conn.commit()
        return len(riders)


# ---------- TeamRepository ----------


_TEAM_COLS = "t.id, t.user_id, t.team_name, t.season_year, t.total_cost, t.points, t.idempotency_key, t.created_at, u.display_name"


def _row_to_team(row: sqlite3.Row) -> Team:
    return Team(
        id=row["id"],
        user_id=row["user_id"],
        team_name=row["team_name"],
        season_year=row["season_year"],
        total_cost=row["total_cost"],
        points=row["points"],
        created_at=_parse_datetime(row["created_at"]),
        idempotency_key=row["idempotency_key"],
        owner_name=row["display_name"],
    )


class TeamRepository:
    """Teams and their roster slots (team_riders)."""

    def insert_team(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        team_name: str,
        season: int,
        total_cost: int,
        idempotency_key: str | None = None,
        id: str | None = None,
    ) -> Team:
        """Insert a team row. Does not commit. Raises sqlite3.IntegrityError if (user, season) exists."""
        tid = id or str(uuid.uuid4())
        now = datetime.utcnow().isoformat()
        conn.execute(
            "INSERT INTO teams (id, user_id, team_name, season_year, total_cost, points, idempotency_key, created_at) "
            "VALUES (?, ?, ?, ?, ?, 0, ?, ?)",
            (tid, user_id, team_name, season, total_cost, idempotency_key, now),
        )
        return Team(
            id=tid, user_id=user_id, team_name=team_name, season_year=season,
            total_cost=total_cost, points=0, created_at=datetime.fromisoformat(now),
            idempotency_key=idempotency_key,
        )

    def insert_slot(self, conn: sqlite3.Connection, team_id: str, rider_id: str, slot: int) -> None:
        """Insert one roster slot. Does not commit."""
        conn.execute(
            "INSERT INTO team_riders (team_id, rider_id, slot) VALUES (?, ?, ?)",
            (team_id, rider_id, slot),
        )

    def get(self, conn: sqlite3.Connection, team_id: str) -> Team | None:
        row = conn.execute(
            f"SELECT {_TEAM_COLS} FROM teams t LEFT JOIN users u ON u.id = t.user_id WHERE t.id = ?",
            (team_id,),
        ).fetchone()
        return _row_to_team(row) if row is not None else None

    def get_by_user_and_season(self, conn: sqlite3.Connection, user_id: str, season: int) -> Team | None:
        """One team per user per season. Returns None if the user has no team yet."""
        row = conn.execute(
            f"SELECT {_TEAM_COLS} FROM teams t LEFT JOIN users u ON u.id = t.user_id "
            "WHERE t.user_id = ? AND t.season_year = ?",
            (user_id, season),
        ).fetchone()
        return _row_to_team(row) if row is not None else None

    def get_roster(self, conn: sqlite3.Connection, team_id: str, season: int) -> list[TeamRider]:
        """Slots ordered 1..N, each rider with the given season's price/points."""
        rows = conn.execute(
            """
            SELECT tr.slot, r.id, r.rider_name, r.team_name, r.nationality, r.active, p.price, pt.points
            FROM team_riders tr
            JOIN riders r ON r.id = tr.rider_id
            LEFT JOIN rider_prices p ON p.rider_id = r.id AND p.season_year = ?
            LEFT JOIN rider_points pt ON pt.rider_id = r.id AND pt.season_year = ?
            WHERE tr.team_id = ?
            ORDER BY tr.slot
            """,
            (season, season, team_id),
        ).fetchall()
        return [TeamRider(slot=r["slot"], rider=_row_to_rider(r)) for r in rows]

    def leaderboard(self, conn: sqlite3.Connection, season: int, limit: int = 200) -> list[LeaderboardEntry]:
        rows = conn.execute(
            """
            SELECT t.id, t.team_name, t.points, u.display_name
            FROM teams t LEFT JOIN users u ON u.id = t.user_id
            WHERE t.season_year = ?
            ORDER BY t.points DESC, t.created_at
            LIMIT ?
            """,
            (season, int(limit)),
        ).fetchall()
        return [
            LeaderboardEntry(
                team_id=r["id"], team_name=r["team_name"], points=r["points"], owner_name=r["display_name"],
            )
            for r in rows
        ]


# ---------- RaceRepository ----------


def _row_to_race(row: sqlite3.Row) -> Race:
    return Race(id=row["id"], name=row["name"], race_date=row["race_date"], season_year=row["season_year"])


class RaceRepository:
    """Races and results. Results are written by an external scoring process; create/add_result serve seeding."""

    def create(
        self, conn: sqlite3.Connection, name: str, race_date: str, season: int, id: str | None = None
    ) -> Race:
        rid = id or str(uuid.uuid4())
        conn.execute(
            "INSERT INTO races (id, name, race_date, season_year) VALUES (?, ?, ?, ?)",
            (rid, name, race_date, season),
        )
        conn.commit()
        return Race(id=rid, name=name, race_date=race_date, season_year=season)

    def add_result(
        self, conn: sqlite3.Connection, race_id: str, rider_id: str, rank: int, points_awarded: int
    ) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO race_results (race_id, rider_id, rank, points_awarded) VALUES (?, ?, ?, ?)",
            (race_id, rider_id, rank, points_awarded),
        )
        conn.commit()

    def latest(self, conn: sqlite3.Connection, today: str) -> Race | None:
        """Most recent race on or before today (ISO date)."""
        row = conn.execute(
            "SELECT id, name, race_date, season_year FROM races WHERE race_date <= ? ORDER BY race_date DESC LIMIT 1",
            (today,),
        ).fetchone()
        return _row_to_race(row) if row is not None else None

    def next(self, conn: sqlite3.Connection, today: str) -> Race | None:
        """Earliest race strictly after today (ISO date)."""
        row = conn.execute(
            "SELECT id, name, race_date, season_year FROM races WHERE race_date > ? ORDER BY race_date ASC LIMIT 1",
            (today,),
        ).fetchone()
        return _row_to_race(row) if row is not None else None

    def results(self, conn: sqlite3.Connection, race_id: str, limit: int = 50) -> list[RaceResult]:
        rows = conn.execute(
            """
            SELECT rr.race_id, rr.rider_id, r.rider_name, r.team_name, rr.rank, rr.points_awarded
            FROM race_results rr JOIN riders r ON r.id = rr.rider_id
            WHERE rr.race_id = ?
            ORDER BY rr.rank ASC
            LIMIT ?
            """,
            (race_id, int(limit)),
        ).fetchall()
        return [
            RaceResult(
                race_id=r["race_id"], rider_id=r["rider_id"], rider_name=r["rider_name"],
                team_name=r["team_name"], rank=r["rank"], points_awarded=r["points_awarded"],
            )
            for r in rows
        ]
