"""
Roster and team-creation errors.
Each carries a stable `code` so the API can report it without string matching.
"""
from __future__ import annotations

from typing import Any, Sequence


class RosterError(ValueError):
    """Base for every team-building failure."""

    code = "roster_error"
    retryable = False

    def payload(self) -> dict[str, Any]:
        return {"code": self.code, "message": str(self)}


# ---------- Validation (recoverable: re-prompt the user) ----------


class InvalidName(RosterError):
    code = "invalid_name"

    def __init__(self, min_length: int = 2) -> None:
        super().__init__(f"Team name must be at least {min_length} characters.")
        self.min_length = min_length


class IncompleteRoster(RosterError):
    code = "incomplete_roster"

    def __init__(self, filled: int, required: int, submitted: int | None = None) -> None:
        if submitted is not None and submitted > required:
            message = f"Too many riders: {submitted} slots submitted, a roster has exactly {required}."
        else:
            message = f"Please pick all riders ({filled} of {required} slots filled)."
        super().__init__(message)
        self.filled = filled
        self.required = required
        self.submitted = submitted

    def payload(self) -> dict[str, Any]:
        d = {**super().payload(), "filled": self.filled, "required": self.required}
        if self.submitted is not None:
            d["submitted"] = self.submitted
        return d


class DuplicateRider(RosterError):
    code = "duplicate_rider"

    def __init__(self, names: Sequence[str]) -> None:
        super().__init__(f"Each rider must be unique (duplicated: {', '.join(names)}).")
        self.names = list(names)

    def payload(self) -> dict[str, Any]:
        return {**super().payload(), "names": self.names}


class BudgetExceeded(RosterError):
    code = "budget_exceeded"

    def __init__(self, overage: int, total_cost: int, budget: int) -> None:
        super().__init__(f"Budget exceeded by {overage}.")
        self.overage = overage
        self.total_cost = total_cost
        self.budget = budget

    def payload(self) -> dict[str, Any]:
        return {
            **super().payload(),
            "overage": self.overage,
            "totalCost": self.total_cost,
            "budget": self.budget,
        }


# ---------- Creation (rejected requests) ----------


class UnresolvedRider(RosterError):
    """Some entries matched no rider (or an ambiguous name). indices are 0-based input positions."""

    code = "unresolved_rider"

    def __init__(self, indices: Sequence[int]) -> None:
        super().__init__(f"Could not resolve riders at positions {', '.join(str(i) for i in indices)}.")
        self.indices = list(indices)

    def payload(self) -> dict[str, Any]:
        return {**super().payload(), "indices": self.indices}


class TeamAlreadyExists(RosterError):
    code = "team_already_exists"

    def __init__(self, user_id: str, season: int) -> None:
        super().__init__(f"A team already exists for this user in season {season}.")
        self.user_id = user_id
        self.season = season


class UnknownUser(RosterError):
    """The owning user does not exist. Nothing was written."""

    code = "unknown_user"

    def __init__(self, user_id: str) -> None:
        super().__init__("User not found.")
        self.user_id = user_id


class StorageUnavailable(RosterError):
    """Transient storage fault (lock timeout, I/O). Nothing was committed; caller may retry with backoff."""

    code = "storage_unavailable"
    retryable = True

    def __init__(self, detail: str = "") -> None:
        super().__init__("Storage temporarily unavailable." + (f" ({detail})" if detail else ""))
