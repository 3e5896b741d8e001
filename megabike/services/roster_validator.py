"""
Roster legality checks. Pure functions; no I/O.

Checks run in a fixed order and stop at the first failure:
name length, completeness, distinct display names, budget.
Uniqueness is by display name, not id: two riders sharing a name cannot
both be picked, matching the name-based lookup used when creating teams.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Sequence

from megabike.config import BUDGET_CEILING, ROSTER_SIZE
from megabike.services.errors import BudgetExceeded, DuplicateRider, IncompleteRoster, InvalidName

MIN_TEAM_NAME_LENGTH = 2


@dataclass(frozen=True)
class RiderCandidate:
    """A rider picked into a slot, as seen by the validator."""
    id: str | None
    rider_name: str
    price: int | None = None
    points: int | None = None

    @property
    def cost(self) -> int:
        # price, else points, else 0. Points standing in for price is a known
        # modeling quirk kept for compatibility with existing rosters.
        if self.price is not None:
            return self.price
        if self.points is not None:
            return self.points
        return 0


@dataclass(frozen=True)
class ValidationResult:
    team_name: str  # trimmed
    slots: tuple[RiderCandidate, ...]
    total_cost: int
    remaining: int


def summarize(slots: Sequence[RiderCandidate | None], budget: int = BUDGET_CEILING) -> tuple[int, int]:
    """(total_cost, remaining) over the filled slots. Usable on partial or invalid rosters."""
    total = sum(s.cost for s in slots if s is not None)
    return total, budget - total


def check_team_name(team_name: str | None) -> str:
    """Return the trimmed name, or raise InvalidName."""
    name = (team_name or "").strip()
    if len(name) < MIN_TEAM_NAME_LENGTH:
        raise InvalidName(MIN_TEAM_NAME_LENGTH)
    return name


def check_slot_count(slots: Sequence[object | None], roster_size: int = ROSTER_SIZE) -> None:
    """
    Raise IncompleteRoster unless there are exactly roster_size slots, all occupied.
    Works on anything where None marks an empty slot, so it can run before lookups.
    """
    filled = sum(1 for s in slots if s is not None)
    if len(slots) != roster_size or filled != roster_size:
        raise IncompleteRoster(filled, roster_size, submitted=len(slots))


def validate(
    team_name: str,
    slots: Sequence[RiderCandidate | None],
    *,
    roster_size: int = ROSTER_SIZE,
    budget: int = BUDGET_CEILING,
) -> ValidationResult:
    """
    Validate a roster. Returns a ValidationResult or raises the first failing
    check: InvalidName, IncompleteRoster, DuplicateRider, BudgetExceeded.
    """
    name = check_team_name(team_name)
    check_slot_count(slots, roster_size)
    filled = [s for s in slots if s is not None]

    counts = Counter(s.rider_name for s in filled)
    dupes = [n for n, c in counts.items() if c > 1]
    if dupes:
        raise DuplicateRider(sorted(dupes))

    total, remaining = summarize(filled, budget)
    if total > budget:
        raise BudgetExceeded(total - budget, total, budget)

    return ValidationResult(team_name=name, slots=tuple(filled), total_cost=total, remaining=remaining)
