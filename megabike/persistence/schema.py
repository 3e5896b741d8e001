"""
SQLite schema for MegaBike entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def access_codes_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS access_codes (
        id TEXT PRIMARY KEY,
        code TEXT NOT NULL UNIQUE,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL
    );
    """


def users_schema() -> str:
    """One user per access code."""
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        access_code_id TEXT UNIQUE,
        display_name TEXT NOT NULL,
        profile_image_url TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (access_code_id) REFERENCES access_codes(id)
    );
    """


def riders_schema() -> str:
    """Riders plus season-keyed price and points. At most one price/points row per (rider, season)."""
    return """
    CREATE TABLE IF NOT EXISTS riders (
        id TEXT PRIMARY KEY,
        rider_name TEXT NOT NULL,
        team_name TEXT,
        nationality TEXT,
        active INTEGER NOT NULL DEFAULT 1
    );
    CREATE INDEX IF NOT EXISTS ix_riders_name ON riders(rider_name);

    CREATE TABLE IF NOT EXISTS rider_prices (
        rider_id TEXT NOT NULL,
        season_year INTEGER NOT NULL,
        price INTEGER NOT NULL CHECK (price >= 0),
        PRIMARY KEY (rider_id, season_year),
        FOREIGN KEY (rider_id) REFERENCES riders(id)
    );

    CREATE TABLE IF NOT EXISTS rider_points (
        rider_id TEXT NOT NULL,
        season_year INTEGER NOT NULL,
        points INTEGER NOT NULL CHECK (points >= 0),
        PRIMARY KEY (rider_id, season_year),
        FOREIGN KEY (rider_id) REFERENCES riders(id)
    );
    """


def teams_schema() -> str:
    """One team per user per season; the unique index is the source of truth, not a pre-check."""
    return """
    CREATE TABLE IF NOT EXISTS teams (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        team_name TEXT NOT NULL,
        season_year INTEGER NOT NULL,
        total_cost INTEGER NOT NULL,
        points INTEGER NOT NULL DEFAULT 0,
        idempotency_key TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id)
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_teams_user_season ON teams(user_id, season_year);
    CREATE INDEX IF NOT EXISTS ix_teams_season_points ON teams(season_year, points);
    """


def team_riders_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS team_riders (
        team_id TEXT NOT NULL,
        rider_id TEXT NOT NULL,
        slot INTEGER NOT NULL CHECK (slot >= 1),
        PRIMARY KEY (team_id, slot),
        UNIQUE (team_id, rider_id),
        FOREIGN KEY (team_id) REFERENCES teams(id),
        FOREIGN KEY (rider_id) REFERENCES riders(id)
    );
    CREATE INDEX IF NOT EXISTS ix_team_riders_rider ON team_riders(rider_id);
    """


def races_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS races (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        race_date TEXT NOT NULL,
        season_year INTEGER NOT NULL
    );
    CREATE INDEX IF NOT EXISTS ix_races_date ON races(race_date);

    CREATE TABLE IF NOT EXISTS race_results (
        race_id TEXT NOT NULL,
        rider_id TEXT NOT NULL,
        rank INTEGER NOT NULL,
        points_awarded INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (race_id, rider_id),
        FOREIGN KEY (race_id) REFERENCES races(id),
        FOREIGN KEY (rider_id) REFERENCES riders(id)
    );
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution. Order follows foreign-key dependencies."""
    return "\n".join([
        access_codes_schema(),
        users_schema(),
        riders_schema(),
        teams_schema(),
        team_riders_schema(),
        races_schema(),
    ])
