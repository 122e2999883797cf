"""
ClubShelf Voting Backend — Suggestion Registry
================================================

What:  Creates book suggestions inside a club's open voting cycle and lists
       the club's current ballot.
Who:   Called by the suggestion routes.

Rules for a new suggestion:
    1. The club has an open cycle whose window has not elapsed
    2. The proposer is an active member
    3. The book exists and is not already ACTIVE on this club's ballot
       (enforced by a partial unique index; the insert relies on it)
    4. The proposer holds fewer than `max_suggestions_per_member` ACTIVE
       suggestions in this club
    The new row copies the club's `voting_ends_at` into `voting_ends`.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import run_in_transaction
from app.exceptions import (
    BookNotFoundError,
    CycleNotOpenError,
    DuplicateSuggestionError,
    SuggestionLimitReachedError,
    VotingClosedError,
)
from app.models import Book, ClubBookSuggestion, SuggestionStatus, SuggestionVote
from app.schemas.voting import SuggestionResponse
from app.services.club_access import ClubLock, load_club, require_member
from app.utils.timezone import utc_now

logger = logging.getLogger(__name__)


def to_suggestion_response(
    suggestion: ClubBookSuggestion,
    book: Optional[Book] = None,
    vote_count: int = 0,
    has_voted: bool = False,
) -> SuggestionResponse:
    return SuggestionResponse(
        id=suggestion.id,
        club_id=suggestion.club_id,
        book_id=suggestion.book_id,
        book_title=book.title if book else None,
        book_author=book.author if book else None,
        suggested_by=suggestion.suggested_by,
        reason=suggestion.reason,
        status=suggestion.status,
        vote_count=vote_count,
        has_voted=has_voted,
        voting_ends=suggestion.voting_ends,
        created_at=suggestion.created_at,
    )


class SuggestionService:
    """Suggestion Registry. Stateless; every call receives its session."""

    async def create_suggestion(
        self,
        db: AsyncSession,
        club_id: UUID,
        book_id: UUID,
        proposer_id: UUID,
        reason: Optional[str] = None,
    ) -> SuggestionResponse:
        """
        Put a book on the club's ballot for the open cycle.

        Raises:
            ClubNotFoundError, NotAMemberError, CycleNotOpenError,
            VotingClosedError (window elapsed, close pending),
            BookNotFoundError, DuplicateSuggestionError,
            SuggestionLimitReachedError, StoreError
        """

        async def work(session: AsyncSession) -> SuggestionResponse:
            # Share lock: a concurrent close must not tally around this insert
            club = await load_club(session, club_id, ClubLock.SHARE)
            await require_member(session, club, proposer_id)

            if not club.voting_cycle_active:
                raise CycleNotOpenError(club_id)
            if club.voting_ends_at is not None and utc_now() >= club.voting_ends_at:
                raise VotingClosedError("The voting window has ended; no new suggestions")

            book = await session.get(Book, book_id)
            if book is None:
                raise BookNotFoundError(book_id)

            active_count = await session.scalar(
                select(func.count(ClubBookSuggestion.id)).where(
                    ClubBookSuggestion.club_id == club_id,
                    ClubBookSuggestion.suggested_by == proposer_id,
                    ClubBookSuggestion.status == SuggestionStatus.ACTIVE,
                )
            )
            if (active_count or 0) >= settings.max_suggestions_per_member:
                raise SuggestionLimitReachedError(settings.max_suggestions_per_member)

            suggestion = ClubBookSuggestion(
                club_id=club_id,
                book_id=book_id,
                suggested_by=proposer_id,
                reason=reason,
                status=SuggestionStatus.ACTIVE,
                voting_ends=club.voting_ends_at,
            )
            session.add(suggestion)
            try:
                await session.flush()
            except IntegrityError as e:
                raise DuplicateSuggestionError(book_id) from e

            logger.info(
                "Suggestion %s created in club %s for book %s by %s",
                suggestion.id, club_id, book_id, proposer_id,
            )
            return to_suggestion_response(suggestion, book)

        return await run_in_transaction(db, work, operation="create_suggestion")

    async def list_suggestions(
        self,
        db: AsyncSession,
        club_id: UUID,
        viewer_id: UUID,
    ) -> List[SuggestionResponse]:
        """
        ACTIVE suggestions of a club, newest first, with vote counts and
        whether `viewer_id` has voted on each.

        Raises:
            ClubNotFoundError, NotAMemberError
        """
        club = await load_club(db, club_id)
        await require_member(db, club, viewer_id)

        vote_count = func.count(SuggestionVote.id).label("vote_count")
        has_voted = func.max(
            case((SuggestionVote.user_id == viewer_id, 1), else_=0)
        ).label("has_voted")

        result = await db.execute(
            select(ClubBookSuggestion, Book, vote_count, has_voted)
            .join(Book, Book.id == ClubBookSuggestion.book_id)
            .outerjoin(SuggestionVote, SuggestionVote.suggestion_id == ClubBookSuggestion.id)
            .where(
                ClubBookSuggestion.club_id == club_id,
                ClubBookSuggestion.status == SuggestionStatus.ACTIVE,
            )
            .group_by(ClubBookSuggestion.id, Book.id)
            .order_by(ClubBookSuggestion.created_at.desc())
        )
        return [
            to_suggestion_response(suggestion, book, count, bool(voted))
            for suggestion, book, count, voted in result.all()
        ]


suggestion_service = SuggestionService()
