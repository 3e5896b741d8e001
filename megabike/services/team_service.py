"""
Team creation and team reads.

create_team resolves every rider before writing anything, re-runs the roster
checks against stored prices (the client is not trusted), then writes the team
row and all N slot rows in one transaction. The (user_id, season_year) unique
index decides which of two concurrent attempts wins.
"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Sequence

from loguru import logger

from megabike.config import BUDGET_CEILING, ROSTER_SIZE
from megabike.models import LeaderboardEntry, Rider, Team, TeamRider
from megabike.persistence.db import transaction
from megabike.persistence.repositories import RiderRepository, TeamRepository, UserRepository
from megabike.services.errors import (
    IncompleteRoster,
    RosterError,
    StorageUnavailable,
    TeamAlreadyExists,
    UnknownUser,
    UnresolvedRider,
)
from megabike.services.roster_validator import RiderCandidate, check_team_name, summarize, validate


@dataclass(frozen=True)
class RiderRef:
    """A submitted slot: rider id and/or display name. Name is only used when id is missing."""
    id: str | None = None
    rider_name: str | None = None


class TeamService:
    """
    Domain logic for teams: one-time creation, roster reads, leaderboard.
    Persistence is delegated to repositories.
    """

    def __init__(
        self,
        team_repo: TeamRepository | None = None,
        rider_repo: RiderRepository | None = None,
        user_repo: UserRepository | None = None,
        roster_size: int = ROSTER_SIZE,
        budget: int = BUDGET_CEILING,
    ) -> None:
        self._team_repo = team_repo or TeamRepository()
        self._rider_repo = rider_repo or RiderRepository()
        self._user_repo = user_repo or UserRepository()
        self.roster_size = roster_size
        self.budget = budget

    # ---------- Creation ----------

    def _check_shape(self, team_name: str, rider_refs: Sequence[RiderRef | None]) -> None:
        """Name and slot count, checked before any rider lookup."""
        check_team_name(team_name)
        if len(rider_refs) != self.roster_size:
            filled = sum(1 for r in rider_refs if r is not None)
            raise IncompleteRoster(filled, self.roster_size, submitted=len(rider_refs))

    def resolve_riders(
        self, conn: sqlite3.Connection, rider_refs: Sequence[RiderRef | None], season: int
    ) -> tuple[list[Rider | None], list[int]]:
        """
        Look up every ref: by id when present, else by exact display name.
        Returns (riders, unresolved_indices). Empty slots (None) stay None and are not unresolved.
        A name matching several riders is unresolved, not guessed.
        """
        riders: list[Rider | None] = []
        unresolved: list[int] = []
        for idx, ref in enumerate(rider_refs):
            if ref is None:
                riders.append(None)
                continue
            rider: Rider | None = None
            if ref.id:
                rider = self._rider_repo.get(conn, ref.id, season)
            elif ref.rider_name:
                matches = self._rider_repo.find_by_name(conn, ref.rider_name, season)
                if len(matches) == 1:
                    rider = matches[0]
                elif len(matches) > 1:
                    logger.warning(f"Rider name '{ref.rider_name}' is ambiguous ({len(matches)}+ matches)")
            if rider is None:
                unresolved.append(idx)
            riders.append(rider)
        return riders, unresolved

    def preview(
        self,
        conn: sqlite3.Connection,
        season: int,
        team_name: str,
        rider_refs: Sequence[RiderRef | None],
    ) -> tuple[int, int, RosterError | None]:
        """
        Dry run for the team builder: (total_cost, remaining, first_error).
        Totals use stored prices of whichever riders resolve, so they are
        meaningful even when the roster is not yet legal. Writes nothing.
        """
        if len(rider_refs) > self.roster_size:
            try:
                self._check_shape(team_name, rider_refs)
            except RosterError as e:
                return 0, self.budget, e
        riders, unresolved = self.resolve_riders(conn, rider_refs, season)
        candidates = [
            RiderCandidate(id=r.id, rider_name=r.rider_name, price=r.price, points=r.points) if r else None
            for r in riders
        ]
        total, remaining = summarize(candidates, self.budget)
        if unresolved:
            return total, remaining, UnresolvedRider(unresolved)
        try:
            validate(team_name, candidates, roster_size=self.roster_size, budget=self.budget)
        except RosterError as e:
            return total, remaining, e
        return total, remaining, None

    def create_team(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        season: int,
        team_name: str,
        rider_refs: Sequence[RiderRef | None],
        idempotency_key: str | None = None,
    ) -> Team:
        """
        Create the user's team for the season. All-or-nothing.
        Raises InvalidName, IncompleteRoster, UnresolvedRider, DuplicateRider,
        BudgetExceeded, UnknownUser, TeamAlreadyExists or StorageUnavailable.
        Name and slot count are checked before any rider lookup.
        With an idempotency_key matching the existing team's, returns that team instead.
        """
        self._check_shape(team_name, rider_refs)
        try:
            riders, unresolved = self.resolve_riders(conn, rider_refs, season)
        except sqlite3.OperationalError as e:
            logger.error(f"Rider lookup failed for user {user_id}: {e}")
            raise StorageUnavailable(str(e)) from e
        if unresolved:
            logger.warning(f"Team creation aborted for user {user_id}: unresolved riders at {unresolved}")
            raise UnresolvedRider(unresolved)

        candidates = [
            RiderCandidate(id=r.id, rider_name=r.rider_name, price=r.price, points=r.points) if r else None
            for r in riders
        ]
        result = validate(team_name, candidates, roster_size=self.roster_size, budget=self.budget)

        try:
            with transaction(conn):
                team = self._team_repo.insert_team(
                    conn, user_id, result.team_name, season, result.total_cost, idempotency_key
                )
                for slot, candidate in enumerate(result.slots, start=1):
                    self._team_repo.insert_slot(conn, team.id, candidate.id, slot)
        except sqlite3.IntegrityError as e:
            existing = self._team_repo.get_by_user_and_season(conn, user_id, season)
            if existing is None:
                if self._user_repo.get(conn, user_id) is None:
                    logger.warning(f"Team creation rejected: unknown user {user_id}")
                    raise UnknownUser(user_id) from e
                raise
            if idempotency_key is not None and existing.idempotency_key == idempotency_key:
                logger.info(f"Replaying team {existing.id} for user {user_id} (idempotency key match)")
                existing.riders = self._team_repo.get_roster(conn, existing.id, season)
                return existing
            logger.info(f"Team creation rejected: user {user_id} already has a team for {season}")
            raise TeamAlreadyExists(user_id, season) from e
        except sqlite3.OperationalError as e:
            logger.error(f"Team creation rolled back for user {user_id}: {e}")
            raise StorageUnavailable(str(e)) from e

        team.riders = [TeamRider(slot=i, rider=r) for i, r in enumerate(riders, start=1) if r is not None]
        logger.info(
            f"Team {team.id} '{team.team_name}' created for user {user_id} season {season}, "
            f"cost {result.total_cost} (remaining {result.remaining})"
        )
        return team

    # ---------- Reads ----------

    def get_team(self, conn: sqlite3.Connection, team_id: str) -> Team | None:
        """Team with roster; rider price/points are from the team's own season."""
        team = self._team_repo.get(conn, team_id)
        if team is None:
            return None
        team.riders = self._team_repo.get_roster(conn, team.id, team.season_year)
        return team

    def get_team_for_user(self, conn: sqlite3.Connection, user_id: str, season: int) -> Team | None:
        team = self._team_repo.get_by_user_and_season(conn, user_id, season)
        if team is None:
            return None
        team.riders = self._team_repo.get_roster(conn, team.id, season)
        return team

    def leaderboard(self, conn: sqlite3.Connection, season: int, limit: int = 200) -> list[LeaderboardEntry]:
        return self._team_repo.leaderboard(conn, season, limit=limit)
