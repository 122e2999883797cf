"""
ClubShelf Voting Backend — Custom Exception Hierarchy
=======================================================

What:  Application-specific exceptions for every declared failure kind of
       the voting subsystem.
How:   Each class carries a user-safe message, an optional context dict
       (logged, never returned), a machine-readable `error_code` and the
       HTTP `status_code` it maps to. One global handler in main.py turns
       any ClubShelfError into `{"error", "message", "request_id"}`.
Who:   Raised by services and auth dependencies; caught by global handlers.

Exception Hierarchy:
    ClubShelfError (base)                     → 500
    ├── NotAuthenticatedError                 → 401
    ├── NotAuthorizedError                    → 403
    │   └── NotAMemberError                   → 403
    ├── ValidationError                       → 400
    ├── NotFoundError                         → 404
    │   ├── ClubNotFoundError
    │   ├── BookNotFoundError
    │   ├── SuggestionNotFoundError
    │   ├── SuggestionNotEligibleError
    │   └── VoteNotFoundError
    ├── ConflictError                         → 409
    │   ├── CycleNotOpenError
    │   ├── CycleAlreadyOpenError
    │   ├── CycleNotYetExpiredError
    │   ├── VotingClosedError
    │   ├── AlreadyVotedError
    │   ├── ClubAlreadyReadingError
    │   ├── NoCurrentBookError
    │   ├── DuplicateSuggestionError
    │   └── SuggestionLimitReachedError
    └── StoreError                            → 500
        └── StoreConflictError                → 503 (retried before surfacing)
"""

from datetime import datetime
from typing import Any, Dict, Optional


class ClubShelfError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    error_code = "server_error"
    status_code = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


# ── Identity & Permission ─────────────────────────────────────────────────


class NotAuthenticatedError(ClubShelfError):
    """No valid caller identity (missing, malformed or expired bearer token)."""

    error_code = "not_authenticated"
    status_code = 401

    def __init__(self, message: str = "Authentication required", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class NotAuthorizedError(ClubShelfError):
    """Caller lacks the role (member vs admin/owner) the operation requires."""

    error_code = "not_authorized"
    status_code = 403

    def __init__(
        self,
        message: str = "Only club admins and owners can perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotAMemberError(NotAuthorizedError):
    """Caller is not an active member of the target club."""

    error_code = "not_a_member"

    def __init__(self, club_id: Any = None, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        if club_id is not None:
            ctx["club_id"] = str(club_id)
        super().__init__(message="You must be an active member of this club", context=ctx)


# ── Input ─────────────────────────────────────────────────────────────────


class ValidationError(ClubShelfError):
    """
    Raised when client input fails a business rule.

    HTTP 400. Schema-level problems (wrong JSON types) are caught earlier by
    FastAPI and rendered through the same `validation_error` code.
    """

    error_code = "validation_error"
    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


# ── Missing Resources ─────────────────────────────────────────────────────


class NotFoundError(ClubShelfError):
    """Raised when a requested resource does not exist."""

    error_code = "not_found"
    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ClubNotFoundError(NotFoundError):
    error_code = "club_not_found"

    def __init__(self, club_id: Any):
        super().__init__(resource="club", resource_id=str(club_id))


class BookNotFoundError(NotFoundError):
    error_code = "book_not_found"

    def __init__(self, book_id: Any):
        super().__init__(resource="book", resource_id=str(book_id))


class SuggestionNotFoundError(NotFoundError):
    error_code = "suggestion_not_found"

    def __init__(self, suggestion_id: Any):
        super().__init__(resource="suggestion", resource_id=str(suggestion_id))


class SuggestionNotEligibleError(NotFoundError):
    """No ACTIVE suggestion exists for the requested (club, book) pair."""

    error_code = "suggestion_not_eligible"

    def __init__(self, book_id: Any):
        super().__init__(
            resource="suggestion",
            message="Book suggestion not found or not eligible for selection",
            context={"book_id": str(book_id)},
        )


class VoteNotFoundError(NotFoundError):
    error_code = "vote_not_found"

    def __init__(self, suggestion_id: Any):
        super().__init__(
            resource="vote",
            message="You haven't voted for this suggestion",
            context={"suggestion_id": str(suggestion_id)},
        )


# ── State Conflicts ───────────────────────────────────────────────────────


class ConflictError(ClubShelfError):
    """A state precondition of the voting cycle or vote ledger was violated."""

    error_code = "conflict"
    status_code = 409


class CycleNotOpenError(ConflictError):
    error_code = "cycle_not_open"

    def __init__(self, club_id: Any = None):
        super().__init__(
            message="No active voting cycle for this club",
            context={"club_id": str(club_id)} if club_id else None,
        )


class CycleAlreadyOpenError(ConflictError):
    error_code = "cycle_already_open"

    def __init__(self, club_id: Any = None):
        super().__init__(
            message="A voting cycle is already active for this club",
            context={"club_id": str(club_id)} if club_id else None,
        )


class CycleNotYetExpiredError(ConflictError):
    """Closing before `voting_ends_at` would cut the other members' window short."""

    error_code = "cycle_not_yet_expired"

    def __init__(self, voting_ends_at: Optional[datetime] = None):
        message = "Voting cycle has not expired yet"
        if voting_ends_at is not None:
            message = f"Voting cycle has not expired yet; it ends at {voting_ends_at.isoformat()}"
        super().__init__(message=message)
        self.voting_ends_at = voting_ends_at


class VotingClosedError(ConflictError):
    error_code = "voting_closed"

    def __init__(self, message: str = "Voting period has ended"):
        super().__init__(message=message)


class AlreadyVotedError(ConflictError):
    """Declared conflict for a repeated vote; the ledger is unchanged."""

    error_code = "already_voted"

    def __init__(self, suggestion_id: Any = None):
        super().__init__(
            message="You have already voted for this suggestion",
            context={"suggestion_id": str(suggestion_id)} if suggestion_id else None,
        )


class ClubAlreadyReadingError(ConflictError):
    error_code = "club_already_reading"

    def __init__(self, message: str = "Club already has a current book"):
        super().__init__(message=message)


class NoCurrentBookError(ConflictError):
    error_code = "no_current_book"

    def __init__(self):
        super().__init__(message="No current book set for this club")


class DuplicateSuggestionError(ConflictError):
    error_code = "duplicate_suggestion"

    def __init__(self, book_id: Any = None):
        super().__init__(
            message="This book has already been suggested for this club",
            context={"book_id": str(book_id)} if book_id else None,
        )


class SuggestionLimitReachedError(ConflictError):
    error_code = "suggestion_limit_reached"

    def __init__(self, limit: int):
        super().__init__(
            message=f"You can only suggest up to {limit} books per voting cycle",
            context={"limit": limit},
        )
        self.limit = limit


# ── Persistence ───────────────────────────────────────────────────────────


class StoreError(ClubShelfError):
    """
    Raised when the persistence store fails.

    Security Note:
        The message returned to the client is always generic. Driver error
        text, constraint names and SQL are logged server-side only.
    """

    error_code = "store_error"
    status_code = 500

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StoreConflictError(StoreError):
    """
    A concurrent transaction won the race for the same rows.

    Raised for stale optimistic-version updates, serialization failures and
    deadlocks. The transaction runner retries these before surfacing them.
    """

    error_code = "store_conflict"
    status_code = 503

    def __init__(
        self,
        message: str = "The club was modified concurrently. Please retry.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
