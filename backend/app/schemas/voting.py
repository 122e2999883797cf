"""
ClubShelf Voting Backend — Pydantic Request/Response Schemas
==============================================================

What:  The API contract for suggestions, votes, voting cycles, winner
       selection and book completion.
How:   FastAPI validates request bodies against the request models (bad
       input becomes a 400 `validation_error`) and serializes the response
       models the services return.

Design Decision:
    Schemas are separate from the ORM models so internal columns (the
    optimistic `version` counter, membership rows) never leak into
    responses, and so request-level rules (rating range, non-empty notes)
    are enforced before a transaction is opened.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.enums import ClubBookStatus, CycleState, SuggestionStatus, TallyOutcome


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class SuggestionCreate(BaseModel):
    """Body of POST /api/clubs/{id}/suggestions."""

    book_id: uuid.UUID = Field(description="Book to propose for the current cycle")
    reason: Optional[str] = Field(
        default=None,
        max_length=1000,
        description="Why the proposer thinks the club should read it",
    )

    @field_validator("reason")
    @classmethod
    def blank_reason_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class OpenCycleRequest(BaseModel):
    """
    Body of POST /api/clubs/{id}/voting/open.

    The window starts now; omitting `duration_hours` applies the configured
    default. The upper bound is checked by the service against settings.
    """

    duration_hours: Optional[float] = Field(
        default=None,
        gt=0,
        description="Length of the voting window in hours",
    )


class SelectWinnerRequest(BaseModel):
    """Body of POST /api/clubs/{id}/voting/select-winner."""

    book_id: uuid.UUID = Field(
        alias="bookId",
        description="Book of a winning (still ACTIVE) suggestion",
    )

    model_config = {"populate_by_name": True}


class CompleteBookRequest(BaseModel):
    """Body of POST /api/clubs/{id}/complete-book."""

    status: ClubBookStatus = Field(
        default=ClubBookStatus.COMPLETED,
        description="COMPLETED or ABANDONED",
    )
    rating: Optional[int] = Field(
        default=None,
        ge=1,
        le=5,
        description="Club rating 1-5; required when status is COMPLETED",
    )
    discussion_notes: str = Field(
        alias="discussionNotes",
        min_length=1,
        description="Summary of the club's discussion",
    )

    model_config = {"populate_by_name": True}

    @field_validator("status")
    @classmethod
    def finished_status_only(cls, v: ClubBookStatus) -> ClubBookStatus:
        if v is ClubBookStatus.IN_PROGRESS:
            raise ValueError("status must be COMPLETED or ABANDONED")
        return v


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class SuggestionResponse(BaseModel):
    """A suggestion with its live vote count, as seen by one viewer."""

    id: uuid.UUID
    club_id: uuid.UUID
    book_id: uuid.UUID
    book_title: Optional[str] = None
    book_author: Optional[str] = None
    suggested_by: uuid.UUID
    reason: Optional[str] = None
    status: SuggestionStatus
    vote_count: int = 0
    has_voted: bool = False
    voting_ends: Optional[datetime] = None
    created_at: datetime


class VoteResponse(BaseModel):
    message: str
    suggestion_id: uuid.UUID
    vote_count: int = Field(description="Total votes on the suggestion after this change")


class VotingCycleResponse(BaseModel):
    """Club-level voting state."""

    club_id: uuid.UUID
    state: CycleState
    voting_cycle_active: bool
    voting_starts_at: Optional[datetime] = None
    voting_ends_at: Optional[datetime] = None
    voting_started_by: Optional[uuid.UUID] = None
    current_book_id: Optional[uuid.UUID] = None
    active_suggestions: Optional[int] = Field(
        default=None,
        description="ACTIVE suggestions in the club (winners awaiting selection once closed)",
    )


class SuggestionTally(BaseModel):
    suggestion_id: uuid.UUID
    book_id: uuid.UUID
    vote_count: int


class VotingResultsResponse(BaseModel):
    """
    Result of closing a cycle.

    `winners` has zero entries when nobody voted, one for a clear winner,
    and several on a tie; ties are left for an admin to resolve through
    select-winner.
    """

    message: str = "Voting cycle processed successfully"
    club: VotingCycleResponse
    outcome: TallyOutcome
    max_votes: int
    total_suggestions: int
    winners: List[SuggestionTally]
    rejected_suggestion_ids: List[uuid.UUID]
    expired_suggestion_ids: List[uuid.UUID]


class ClubBookResponse(BaseModel):
    id: uuid.UUID
    club_id: uuid.UUID
    book_id: uuid.UUID
    status: ClubBookStatus
    started_at: datetime
    finished_at: Optional[datetime] = None
    rating: Optional[int] = None
    discussion_notes: Optional[str] = None

    model_config = {"from_attributes": True}


class SelectWinnerResponse(BaseModel):
    message: str = "Book selected as current book successfully"
    club_id: uuid.UUID
    current_book_id: uuid.UUID
    selected_suggestion_id: uuid.UUID
    rejected_suggestion_ids: List[uuid.UUID]
    club_book: ClubBookResponse


class CompleteBookResponse(BaseModel):
    success: bool = True
    message: str
    club_book: ClubBookResponse


class SweepResponse(BaseModel):
    """Summary of one expiry sweep run."""

    closed: List[uuid.UUID] = Field(default_factory=list)
    skipped: List[uuid.UUID] = Field(default_factory=list)
    failed: List[uuid.UUID] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standard error body for every failure.

    Example:
        {
            "error": "already_voted",
            "message": "You have already voted for this suggestion",
            "request_id": "a1b2c3d4"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy or unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    uptime_seconds: float
