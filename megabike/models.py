"""
Data models for the MegaBike backend.
Plain dataclasses; serialization for the API lives in to_dict.

Season-scoped: rider prices, rider points and team uniqueness are all keyed by
season year. A team is created once per user per season and never edited.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


# ---------- AccessCode ----------
@dataclass
class AccessCode:
    """A redeemable code. Inactive codes cannot be redeemed."""
    id: str
    code: str
    is_active: bool
    created_at: datetime


# ---------- User ----------
@dataclass
class User:
    """
    A MegaBike user. One user per access code; display_name starts as the code.
    """
    id: str
    display_name: str
    created_at: datetime
    access_code_id: str | None = None
    profile_image_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "profileImageUrl": self.profile_image_url,
        }


# ---------- Rider ----------
@dataclass
class Rider:
    """
    A professional rider. price/points are for one season; None when the
    season has no price or points record for this rider.
    """
    id: str
    rider_name: str
    team_name: str | None = None
    nationality: str | None = None
    active: bool = True
    price: int | None = None
    points: int | None = None

    def to_dict(self) -> dict[str, Any]:
        # Absent season records read as 0
        return {
            "id": self.id,
            "rider_name": self.rider_name,
            "team_name": self.team_name,
            "nationality": self.nationality,
            "active": self.active,
            "price": self.price or 0,
            "points": self.points or 0,
        }


# ---------- TeamRider (roster slot) ----------
@dataclass
class TeamRider:
    """One numbered slot (1..N) in a team's roster."""
    slot: int
    rider: Rider

    def to_dict(self) -> dict[str, Any]:
        d = self.rider.to_dict()
        d["slot"] = self.slot
        return d


# ---------- Team ----------
@dataclass
class Team:
    """
    A user's fantasy team for one season. total_cost is the price snapshot at
    creation; points accrue from race results processed elsewhere.
    """
    id: str
    user_id: str
    team_name: str
    season_year: int
    total_cost: int
    points: int
    created_at: datetime
    idempotency_key: str | None = None
    owner_name: str | None = None
    riders: list[TeamRider] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "teamName": self.team_name,
            "season": self.season_year,
            "totalPrice": self.total_cost,
            "points": self.points,
            "createdAt": self.created_at.isoformat(),
            "riders": [r.to_dict() for r in self.riders],
        }
        if self.owner_name is not None:
            d["ownerName"] = self.owner_name
        return d


# ---------- Race ----------
@dataclass
class Race:
    id: str
    name: str
    race_date: str  # ISO date
    season_year: int


@dataclass
class RaceResult:
    """One rider's placing in a race."""
    race_id: str
    rider_id: str
    rider_name: str
    team_name: str | None
    rank: int
    points_awarded: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "rider": self.rider_name,
            "team": self.team_name or "",
            "points": self.points_awarded,
            "rank": self.rank,
        }


# ---------- Leaderboard ----------
@dataclass
class LeaderboardEntry:
    team_id: str
    team_name: str
    points: int
    owner_name: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.team_id,
            "teamName": self.team_name,
            "points": self.points,
            "ownerName": self.owner_name,
        }
