"""
Service layer: roster validation, team creation, access-code login.
Roster validation is pure; team_service and access_codes orchestrate persistence.
"""
from .errors import (
    RosterError,
    InvalidName,
    IncompleteRoster,
    DuplicateRider,
    BudgetExceeded,
    UnresolvedRider,
    TeamAlreadyExists,
    UnknownUser,
    StorageUnavailable,
)
from .roster_validator import (
    RiderCandidate,
    ValidationResult,
    check_slot_count,
    check_team_name,
    summarize,
    validate,
)
from .team_service import RiderRef, TeamService
from .access_codes import AccessCodeService, InvalidAccessCode

__all__ = [
    "RosterError",
    "InvalidName",
    "IncompleteRoster",
    "DuplicateRider",
    "BudgetExceeded",
    "UnresolvedRider",
    "TeamAlreadyExists",
    "UnknownUser",
    "StorageUnavailable",
    "RiderCandidate",
    "ValidationResult",
    "check_slot_count",
    "check_team_name",
    "summarize",
    "validate",
    "RiderRef",
    "TeamService",
    "AccessCodeService",
    "InvalidAccessCode",
]
