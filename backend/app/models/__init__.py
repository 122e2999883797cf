"""
ORM models. Importing this package registers every table with
`Base.metadata` (Alembic and the test fixtures rely on that).
"""

from app.models.club import Club, ClubMembership
from app.models.club_book import ClubBook
from app.models.enums import (
    ClubBookStatus,
    ClubRole,
    CycleState,
    MembershipStatus,
    SuggestionStatus,
    TallyOutcome,
)
from app.models.suggestion import ClubBookSuggestion, SuggestionVote
from app.models.user import Book, User

__all__ = [
    "Book",
    "Club",
    "ClubBook",
    "ClubBookStatus",
    "ClubBookSuggestion",
    "ClubMembership",
    "ClubRole",
    "CycleState",
    "MembershipStatus",
    "SuggestionStatus",
    "SuggestionVote",
    "TallyOutcome",
    "User",
]
