"""
Access-code login: an active code maps to exactly one user, created on first use.
"""
from __future__ import annotations

import sqlite3

from loguru import logger

from megabike.auth import create_access_token
from megabike.models import User
from megabike.persistence.repositories import AccessCodeRepository, UserRepository


class InvalidAccessCode(ValueError):
    """Code is empty, unknown or deactivated."""


class AccessCodeService:
    def __init__(self) -> None:
        self._code_repo = AccessCodeRepository()
        self._user_repo = UserRepository()

    def redeem(self, conn: sqlite3.Connection, access_code: str) -> tuple[str, User]:
        """Return (token, user). The first redemption creates the user with the code as display name."""
        code = (access_code or "").strip()
        if not code:
            raise InvalidAccessCode("Access code is required")
        row = self._code_repo.get_by_code(conn, code)
        if row is None or not row.is_active:
            logger.info("Rejected access code redemption")
            raise InvalidAccessCode("Invalid access code")
        user = self._user_repo.get_by_access_code(conn, row.id)
        if user is None:
            try:
                user = self._user_repo.create(conn, display_name=code, access_code_id=row.id)
                logger.info(f"Created user {user.id} for access code {row.id}")
            except sqlite3.IntegrityError:
                # Concurrent first redemption of the same code
                conn.rollback()
                user = self._user_repo.get_by_access_code(conn, row.id)
                if user is None:
                    raise
        return create_access_token(user.id), user
