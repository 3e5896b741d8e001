"""
Tests for access-code redemption and bearer tokens.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from megabike.auth import ALGORITHM, create_access_token, decode_token
from megabike.config import JWT_SECRET_KEY
from megabike.persistence.db import get_connection, init_db, set_db_path
from megabike.persistence.repositories import AccessCodeRepository, UserRepository
from megabike.services.access_codes import AccessCodeService, InvalidAccessCode


@pytest.fixture
def db_conn(tmp_path):
    db_path = tmp_path / "codes_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def code(db_conn):
    return AccessCodeRepository().create(db_conn, "peloton-42")


def test_first_redemption_creates_user(db_conn, code):
    token, user = AccessCodeService().redeem(db_conn, "peloton-42")
    assert user.display_name == "peloton-42"
    assert user.access_code_id == code.id
    assert decode_token(token) == user.id


def test_redemption_is_stable(db_conn, code):
    _, first = AccessCodeService().redeem(db_conn, "peloton-42")
    _, second = AccessCodeService().redeem(db_conn, "  peloton-42 ")
    assert first.id == second.id
    assert db_conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 1


def test_renamed_user_keeps_name_on_redeem(db_conn, code):
    _, user = AccessCodeService().redeem(db_conn, "peloton-42")
    UserRepository().update_profile(db_conn, user.id, display_name="Eddy")
    _, again = AccessCodeService().redeem(db_conn, "peloton-42")
    assert again.display_name == "Eddy"


@pytest.mark.parametrize("attempt", ["", "   ", "unknown-code", "PELOTON-42"])
def test_bad_codes_rejected(db_conn, code, attempt):
    with pytest.raises(InvalidAccessCode):
        AccessCodeService().redeem(db_conn, attempt)


def test_inactive_code_rejected(db_conn, code):
    AccessCodeRepository().set_active(db_conn, code.id, False)
    with pytest.raises(InvalidAccessCode):
        AccessCodeService().redeem(db_conn, "peloton-42")


class TestTokens:
    def test_claims(self):
        token = create_access_token("user-1")
        claims = jwt.decode(token, JWT_SECRET_KEY, algorithms=[ALGORITHM], audience="authenticated")
        assert claims["sub"] == "user-1"
        assert claims["role"] == "authenticated"
        assert claims["aud"] == "authenticated"

    def test_wrong_secret_rejected(self):
        token = create_access_token("user-1", secret="someone-else")
        assert decode_token(token) is None

    def test_expired_rejected(self):
        past = datetime.now(timezone.utc) - timedelta(minutes=1)
        token = jwt.encode(
            {"sub": "user-1", "aud": "authenticated", "role": "authenticated", "exp": past},
            JWT_SECRET_KEY, algorithm=ALGORITHM,
        )
        assert decode_token(token) is None

    def test_missing_audience_rejected(self):
        future = datetime.now(timezone.utc) + timedelta(minutes=5)
        token = jwt.encode({"sub": "user-1", "exp": future}, JWT_SECRET_KEY, algorithm=ALGORITHM)
        assert decode_token(token) is None

    def test_garbage_rejected(self):
        assert decode_token("not-a-token") is None
