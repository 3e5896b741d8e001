"""
Persistence layer for MegaBike data.
Connection handling, schema and repositories.
"""
from .db import NestedTransactionError, get_connection, init_db, transaction
from .repositories import (
    AccessCodeRepository,
    UserRepository,
    RiderRepository,
    TeamRepository,
    RaceRepository,
)

__all__ = [
    "NestedTransactionError",
    "get_connection",
    "init_db",
    "transaction",
    "AccessCodeRepository",
    "UserRepository",
    "RiderRepository",
    "TeamRepository",
    "RaceRepository",
]
