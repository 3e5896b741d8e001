"""
Bearer tokens for access-code users.
Claims: sub (user id), aud/role "authenticated", exp one week out.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from megabike.config import JWT_SECRET_KEY

ALGORITHM = "HS256"
AUDIENCE = "authenticated"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days


def create_access_token(subject: str, secret: str = JWT_SECRET_KEY) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {"sub": subject, "aud": AUDIENCE, "role": AUDIENCE, "exp": expire}
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def decode_token(token: str, secret: str = JWT_SECRET_KEY) -> str | None:
    """Return the user id in the token, or None if missing, expired or badly signed."""
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM], audience=AUDIENCE)
    except JWTError:
        return None
    if payload.get("role") != AUDIENCE:
        return None
    return payload.get("sub")
