"""
ClubShelf Voting Backend — Winner Selection Coordinator
=========================================================

What:  Turns a closed cycle's winner into the club's current book, and
       later retires that book into the club's reading history.
Who:   Called by the select-winner and complete-book routes.

select_winner (one transaction, club row locked FOR UPDATE):
    1. club.current_book_id = book
    2. the chosen suggestion → SELECTED
    3. one bulk UPDATE: every other ACTIVE suggestion of the club → REJECTED
       (this is where a tie is actually resolved)
    4. append ClubBook(started_at=now, status=IN_PROGRESS)

complete_current_book (one transaction, club row locked FOR UPDATE):
    1. close out the IN_PROGRESS ClubBook row for the current book, or
       create one if the history has none
    2. club.current_book_id = None, which allows the next cycle
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import run_in_transaction
from app.exceptions import (
    ClubAlreadyReadingError,
    CycleAlreadyOpenError,
    NoCurrentBookError,
    SuggestionNotEligibleError,
    ValidationError,
)
from app.models import ClubBook, ClubBookStatus, ClubBookSuggestion, SuggestionStatus
from app.schemas.voting import ClubBookResponse, CompleteBookResponse, SelectWinnerResponse
from app.services.club_access import ClubLock, load_club, require_admin
from app.utils.timezone import utc_now

logger = logging.getLogger(__name__)

FINISHED_STATUSES = frozenset({ClubBookStatus.COMPLETED, ClubBookStatus.ABANDONED})


class WinnerService:
    """Winner Selection Coordinator. Stateless; every call receives its session."""

    async def select_winner(
        self,
        db: AsyncSession,
        club_id: UUID,
        book_id: UUID,
        actor_id: UUID,
    ) -> SelectWinnerResponse:
        """
        Make `book_id` the club's current book.

        Raises:
            ClubNotFoundError, NotAMemberError, NotAuthorizedError
            CycleAlreadyOpenError: the cycle must be closed and tallied first
            ClubAlreadyReadingError: current_book is already set
            SuggestionNotEligibleError: no ACTIVE suggestion for that book
            StoreConflictError: still conflicting after the automatic retry
        """

        async def work(session: AsyncSession) -> SelectWinnerResponse:
            club = await load_club(session, club_id, ClubLock.UPDATE)
            await require_admin(session, club, actor_id)

            if club.voting_cycle_active:
                raise CycleAlreadyOpenError(club_id)
            if club.current_book_id is not None:
                raise ClubAlreadyReadingError()

            suggestion = (
                await session.execute(
                    select(ClubBookSuggestion)
                    .where(
                        ClubBookSuggestion.club_id == club_id,
                        ClubBookSuggestion.book_id == book_id,
                        ClubBookSuggestion.status == SuggestionStatus.ACTIVE,
                    )
                    .execution_options(populate_existing=True)
                )
            ).scalar_one_or_none()
            if suggestion is None:
                raise SuggestionNotEligibleError(book_id)

            displaced_ids = list(
                (
                    await session.execute(
                        select(ClubBookSuggestion.id).where(
                            ClubBookSuggestion.club_id == club_id,
                            ClubBookSuggestion.status == SuggestionStatus.ACTIVE,
                            ClubBookSuggestion.id != suggestion.id,
                        )
                    )
                ).scalars()
            )

            now = utc_now()
            club.current_book_id = book_id
            suggestion.status = SuggestionStatus.SELECTED
            await session.execute(
                update(ClubBookSuggestion)
                .where(
                    ClubBookSuggestion.club_id == club_id,
                    ClubBookSuggestion.status == SuggestionStatus.ACTIVE,
                    ClubBookSuggestion.id != suggestion.id,
                )
                .values(status=SuggestionStatus.REJECTED)
                .execution_options(synchronize_session="fetch")
            )

            club_book = ClubBook(
                club_id=club_id,
                book_id=book_id,
                started_at=now,
                status=ClubBookStatus.IN_PROGRESS,
            )
            session.add(club_book)
            await session.flush()

            logger.info(
                "Club %s selected book %s (suggestion %s) by %s; %d other suggestion(s) rejected",
                club_id, book_id, suggestion.id, actor_id, len(displaced_ids),
            )
            return SelectWinnerResponse(
                club_id=club_id,
                current_book_id=book_id,
                selected_suggestion_id=suggestion.id,
                rejected_suggestion_ids=displaced_ids,
                club_book=ClubBookResponse.model_validate(club_book),
            )

        return await run_in_transaction(db, work, operation="select_winner")

    def _validate_completion(
        self,
        status: ClubBookStatus,
        rating: Optional[int],
        notes: Optional[str],
    ) -> None:
        if status not in FINISHED_STATUSES:
            raise ValidationError("status must be COMPLETED or ABANDONED", field="status")
        if status is ClubBookStatus.COMPLETED and rating is None:
            raise ValidationError("Rating is required when completing a book", field="rating")
        if rating is not None and not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5", field="rating")
        if notes is None or not notes.strip():
            raise ValidationError("Discussion notes are required", field="discussion_notes")

    async def complete_current_book(
        self,
        db: AsyncSession,
        club_id: UUID,
        actor_id: UUID,
        status: ClubBookStatus,
        rating: Optional[int],
        notes: str,
    ) -> CompleteBookResponse:
        """
        Finish or abandon the current book and free the club for a new cycle.

        The rating is stored only for COMPLETED books.

        Raises:
            ValidationError: bad status, missing/out-of-range rating, empty notes
            ClubNotFoundError, NotAMemberError, NotAuthorizedError
            NoCurrentBookError: current_book is not set
        """
        self._validate_completion(status, rating, notes)

        async def work(session: AsyncSession) -> CompleteBookResponse:
            club = await load_club(session, club_id, ClubLock.UPDATE)
            await require_admin(session, club, actor_id)

            if club.current_book_id is None:
                raise NoCurrentBookError()

            book_id = club.current_book_id
            now = utc_now()
            club_book = (
                await session.execute(
                    select(ClubBook)
                    .where(
                        ClubBook.club_id == club_id,
                        ClubBook.book_id == book_id,
                        ClubBook.status == ClubBookStatus.IN_PROGRESS,
                    )
                    .order_by(ClubBook.started_at.desc())
                    .limit(1)
                    .execution_options(populate_existing=True)
                )
            ).scalar_one_or_none()
            if club_book is None:
                # Current book set outside winner selection; start it now
                club_book = ClubBook(club_id=club_id, book_id=book_id, started_at=now)
                session.add(club_book)

            club_book.status = status
            club_book.finished_at = now
            club_book.discussion_notes = notes.strip()
            club_book.rating = rating if status is ClubBookStatus.COMPLETED else None

            club.current_book_id = None
            await session.flush()

            logger.info(
                "Club %s finished book %s as %s by %s", club_id, book_id, status.value, actor_id
            )
            if status is ClubBookStatus.COMPLETED:
                message = "Book completed successfully and moved to history"
            else:
                message = "Book marked as not completed and moved to history"
            return CompleteBookResponse(
                message=message,
                club_book=ClubBookResponse.model_validate(club_book),
            )

        return await run_in_transaction(db, work, operation="complete_current_book")


winner_service = WinnerService()
