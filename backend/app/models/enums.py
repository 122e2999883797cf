"""
Status and role enumerations shared by models, schemas and services.

Stored as VARCHAR (non-native enums) so the same schema works on
PostgreSQL and on the SQLite test database.
"""

import enum


class ClubRole(str, enum.Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class MembershipStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"


class SuggestionStatus(str, enum.Enum):
    """
    Suggestion lifecycle.

    ACTIVE is the only non-terminal state. After a cycle closes, the
    suggestions still ACTIVE are that cycle's winners (one, or several on a
    tie) until winner selection resolves them.
    """

    ACTIVE = "ACTIVE"
    SELECTED = "SELECTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self is not SuggestionStatus.ACTIVE


class ClubBookStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


class CycleState(str, enum.Enum):
    """Derived per-club voting state reported by the status endpoint."""

    IDLE = "IDLE"
    OPEN = "OPEN"
    EXPIRED_PENDING_CLOSE = "EXPIRED_PENDING_CLOSE"


class TallyOutcome(str, enum.Enum):
    NO_VOTES = "NO_VOTES"
    SINGLE_WINNER = "SINGLE_WINNER"
    TIE = "TIE"
