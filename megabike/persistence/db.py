"""
Database connection, transactions and initialization.
"""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from megabike.config import DB_PATH, DB_TIMEOUT_SECONDS

from .schema import all_schema_sql


# Default DB path (project root / data / megabike.db)
def _default_db_path() -> Path:
    return Path(__file__).resolve().parent.parent.parent / "data" / "megabike.db"


_db_path: Path | None = Path(DB_PATH) if DB_PATH else None


def set_db_path(path: str | Path) -> None:
    """Set the database path. Call before first get_connection if not using default."""
    global _db_path
    _db_path = Path(path)


def get_db_path() -> Path:
    """Return the current database path."""
    if _db_path is not None:
        return _db_path
    return _default_db_path()


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """
    Return a new SQLite connection with foreign keys enforced.
    Use as context manager or ensure close() is called.
    timeout bounds how long a writer waits on another writer's lock.
    """
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=DB_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


class NestedTransactionError(RuntimeError):
    """transaction() was entered on a connection that already has an open transaction."""


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """
    All-or-nothing write unit. Takes the write lock up front (BEGIN IMMEDIATE),
    commits on normal exit and rolls back on any exception.
    The connection must not already be inside a transaction; if it is,
    NestedTransactionError is raised and nothing is touched.
    """
    if conn.in_transaction:
        raise NestedTransactionError("connection already has an open transaction")
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


def init_db(
    db_path: str | Path | None = None,
    riders_path: str | Path | None = None,
    season: int | None = None,
) -> None:
    """
    Create or ensure all tables exist.
    If riders_path is provided, also load riders with season prices/points
    from JSON (see RiderRepository.load_from_json).
    """
    conn = get_connection(db_path)
    try:
        conn.executescript(all_schema_sql())
        conn.commit()
        if riders_path:
            from megabike.config import CURRENT_SEASON
            from .repositories import RiderRepository
            RiderRepository().load_from_json(
                conn, Path(riders_path), season if season is not None else CURRENT_SEASON
            )
    finally:
        conn.close()
