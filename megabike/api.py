"""
REST API for the MegaBike backend.
Thin wrappers around domain logic and persistence.

The caller's identity comes only from the bearer token, resolved per request
by a dependency and passed explicitly into services. Each request opens and
closes its own connection.
"""
from __future__ import annotations

import sqlite3
from contextlib import asynccontextmanager, contextmanager
from datetime import date
from typing import Any, AsyncGenerator, Generator

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from megabike.auth import decode_token
from megabike.config import BUDGET_CEILING, CORS_ORIGINS, CURRENT_SEASON, ROSTER_SIZE
from megabike.logging_setup import setup_logging
from megabike.persistence import (
    get_connection,
    init_db,
    RaceRepository,
    RiderRepository,
    UserRepository,
)
from megabike.persistence.db import get_db_path
from megabike.services import (
    AccessCodeService,
    InvalidAccessCode,
    RiderRef,
    RosterError,
    StorageUnavailable,
    TeamAlreadyExists,
    TeamService,
    UnknownUser,
)

STORAGE_RETRY_AFTER_SECONDS = 2


@contextmanager
def db_conn() -> Generator[sqlite3.Connection, None, None]:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    init_db(db_path=get_db_path())
    logger.info(f"MegaBike API ready (season {CURRENT_SEASON}, db {get_db_path()})")
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title="MegaBike API",
    description="Fantasy cycling: access-code login, team builder, leaderboard and race results",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(sqlite3.OperationalError)
async def _storage_error_handler(request: Request, exc: sqlite3.OperationalError) -> JSONResponse:
    logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": StorageUnavailable().payload()},
        headers={"Retry-After": str(STORAGE_RETRY_AFTER_SECONDS)},
    )


# ---------- Request/Response models ----------


security = HTTPBearer(auto_error=False)


class VerifyCodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_code: str = Field(..., alias="accessCode", max_length=200)


class UpdateMeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: str | None = Field(None, alias="displayName", max_length=100)
    profile_image_url: str | None = Field(None, alias="profileImageUrl", max_length=2000)


class RiderSlot(BaseModel):
    id: str | None = None
    rider_name: str | None = None


class CreateTeamRequest(BaseModel):
    """Client-sent user fields are ignored; ownership comes from the token."""
    model_config = ConfigDict(populate_by_name=True)

    team_name: str = Field(..., alias="teamName", max_length=200)
    riders: list[RiderSlot | None] = Field(
        ..., max_length=ROSTER_SIZE, description="Ordered slots; null for an empty slot"
    )

    def rider_refs(self) -> list[RiderRef | None]:
        return [RiderRef(id=r.id, rider_name=r.rider_name) if r else None for r in self.riders]


def _get_current_user_id(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> str | None:
    """Return user_id from the bearer token, or None if no/invalid token."""
    if credentials is None:
        return None
    return decode_token(credentials.credentials)


def _require_user_id(user_id: str | None = Depends(_get_current_user_id)) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="Login required")
    return user_id


def _roster_http_error(e: RosterError) -> HTTPException:
    if isinstance(e, UnknownUser):
        return HTTPException(status_code=401, detail=e.payload())
    if isinstance(e, TeamAlreadyExists):
        return HTTPException(status_code=409, detail=e.payload())
    if isinstance(e, StorageUnavailable):
        return HTTPException(
            status_code=503, detail=e.payload(), headers={"Retry-After": str(STORAGE_RETRY_AFTER_SECONDS)}
        )
    return HTTPException(status_code=400, detail=e.payload())


# ---------- Endpoints ----------


@app.get("/settings")
def get_settings() -> dict[str, Any]:
    """Season rules the team builder needs."""
    return {"season": CURRENT_SEASON, "budget": BUDGET_CEILING, "rosterSize": ROSTER_SIZE}


@app.post("/auth/verify-code")
def verify_code(req: VerifyCodeRequest) -> dict[str, Any]:
    """Redeem an access code. Returns a bearer token and the user (created on first use)."""
    with db_conn() as conn:
        try:
            token, user = AccessCodeService().redeem(conn, req.access_code)
        except InvalidAccessCode as e:
            raise HTTPException(status_code=401, detail=str(e))
        return {"token": token, "user": user.to_dict()}


@app.get("/me")
def get_me(user_id: str = Depends(_require_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        user = UserRepository().get(conn, user_id)
        if user is None:
            raise HTTPException(status_code=401, detail="User not found")
        return user.to_dict()


@app.patch("/me")
def update_me(req: UpdateMeRequest, user_id: str = Depends(_require_user_id)) -> dict[str, Any]:
    """Update display name and/or profile image. An explicit null profileImageUrl clears it."""
    with db_conn() as conn:
        user_repo = UserRepository()
        if user_repo.get(conn, user_id) is None:
            raise HTTPException(status_code=401, detail="User not found")
        clear_image = "profile_image_url" in req.model_fields_set and req.profile_image_url is None
        user = user_repo.update_profile(
            conn, user_id,
            display_name=(req.display_name or "").strip() or None,
            profile_image_url=req.profile_image_url,
            clear_image=clear_image,
        )
        return user.to_dict()


@app.get("/riders")
def search_riders(
    q: str = Query(default="", max_length=100),
    limit: int = Query(default=10, ge=1, le=50),
) -> dict[str, Any]:
    """Rider autocomplete with current-season price and points."""
    query = q.strip()
    if not query:
        return {"riders": []}
    with db_conn() as conn:
        riders = RiderRepository().search(conn, query, CURRENT_SEASON, limit=limit)
        return {"riders": [r.to_dict() for r in riders]}


@app.get("/teams/me")
def get_my_team(user_id: str = Depends(_require_user_id)) -> dict[str, Any]:
    """The caller's team for the current season, or null if not created yet."""
    with db_conn() as conn:
        team = TeamService().get_team_for_user(conn, user_id, CURRENT_SEASON)
        return {"team": team.to_dict() if team else None}


@app.post("/teams/preview")
def preview_team(req: CreateTeamRequest) -> dict[str, Any]:
    """Validate a roster without saving it. Totals are reported even when invalid."""
    with db_conn() as conn:
        total, remaining, error = TeamService().preview(conn, CURRENT_SEASON, req.team_name, req.rider_refs())
        return {
            "valid": error is None,
            "totalCost": total,
            "remaining": remaining,
            "budget": BUDGET_CEILING,
            "error": error.payload() if error else None,
        }


@app.post("/teams")
def create_team(
    req: CreateTeamRequest,
    user_id: str = Depends(_require_user_id),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=200),
) -> dict[str, Any]:
    """
    Create the caller's team for the current season (once; locked afterwards).
    Rider prices come from the store, never from the request.
    """
    with db_conn() as conn:
        if UserRepository().get(conn, user_id) is None:
            raise HTTPException(status_code=401, detail="User not found")
        try:
            team = TeamService().create_team(
                conn, user_id, CURRENT_SEASON, req.team_name, req.rider_refs(),
                idempotency_key=idempotency_key,
            )
        except RosterError as e:
            raise _roster_http_error(e)
        return team.to_dict()


@app.get("/teams/{team_id}")
def get_team(team_id: str) -> dict[str, Any]:
    """Any team by id, with owner name and roster."""
    with db_conn() as conn:
        team = TeamService().get_team(conn, team_id)
        if team is None:
            raise HTTPException(status_code=404, detail="Team not found")
        return team.to_dict()


@app.get("/leaderboard")
def get_leaderboard(limit: int = Query(default=200, ge=1, le=500)) -> dict[str, Any]:
    with db_conn() as conn:
        entries = TeamService().leaderboard(conn, CURRENT_SEASON, limit=limit)
        return {"season": CURRENT_SEASON, "teams": [e.to_dict() for e in entries]}


@app.get("/races/latest")
def get_latest_race() -> dict[str, Any]:
    """Most recent race up to today, with the top 50 results."""
    with db_conn() as conn:
        race_repo = RaceRepository()
        race = race_repo.latest(conn, date.today().isoformat())
        if race is None:
            return {"race": None}
        results = race_repo.results(conn, race.id, limit=50)
        return {
            "race": {
                "name": race.name,
                "date": race.race_date,
                "results": [r.to_dict() for r in results],
            }
        }


@app.get("/races/next")
def get_next_race() -> dict[str, Any]:
    with db_conn() as conn:
        race = RaceRepository().next(conn, date.today().isoformat())
        if race is None:
            return {"race": None}
        return {"race": {"name": race.name, "date": race.race_date}}


# ---------- Run with: uvicorn megabike.api:app --reload ----------
