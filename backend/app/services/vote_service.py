"""
ClubShelf Voting Backend — Vote Ledger
========================================

What:  Records and retracts one vote per (suggestion, member).
Who:   Called by the vote routes.

Concurrency:
    Two requests from the same member can race on the same suggestion.
    There is deliberately no "has this user voted?" read before the insert:
    the UNIQUE (suggestion_id, user_id) constraint decides, and the loser's
    IntegrityError becomes AlreadyVotedError. Both operations share-lock
    the club row, so neither can interleave with a cycle close that is
    tallying the same suggestions.

A member may vote for several suggestions in the same cycle.
"""

import logging
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import run_in_transaction
from app.exceptions import (
    AlreadyVotedError,
    SuggestionNotFoundError,
    VoteNotFoundError,
    VotingClosedError,
)
from app.models import Club, ClubBookSuggestion, SuggestionStatus, SuggestionVote
from app.schemas.voting import VoteResponse
from app.services.club_access import ClubLock, load_club, require_member
from app.utils.timezone import utc_now

logger = logging.getLogger(__name__)


class VoteService:
    """Vote Ledger. Stateless; every call receives its session."""

    async def _load_open_suggestion(
        self, db: AsyncSession, club: Club, suggestion_id: UUID
    ) -> ClubBookSuggestion:
        suggestion = (
            await db.execute(
                select(ClubBookSuggestion)
                .where(
                    ClubBookSuggestion.id == suggestion_id,
                    ClubBookSuggestion.club_id == club.id,
                )
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if suggestion is None:
            raise SuggestionNotFoundError(suggestion_id)

        if suggestion.status is not SuggestionStatus.ACTIVE:
            raise VotingClosedError("Voting on this suggestion has ended")
        if suggestion.voting_ends is not None and utc_now() >= suggestion.voting_ends:
            raise VotingClosedError()
        return suggestion

    async def _count(self, db: AsyncSession, suggestion_id: UUID) -> int:
        count = await db.scalar(
            select(func.count(SuggestionVote.id)).where(
                SuggestionVote.suggestion_id == suggestion_id
            )
        )
        return count or 0

    async def cast_vote(
        self,
        db: AsyncSession,
        club_id: UUID,
        suggestion_id: UUID,
        voter_id: UUID,
    ) -> VoteResponse:
        """
        Record `voter_id`'s vote and return the suggestion's new total.

        Raises:
            ClubNotFoundError, NotAMemberError, SuggestionNotFoundError,
            VotingClosedError, AlreadyVotedError, StoreError
        """

        async def work(session: AsyncSession) -> VoteResponse:
            club = await load_club(session, club_id, ClubLock.SHARE)
            await require_member(session, club, voter_id)
            await self._load_open_suggestion(session, club, suggestion_id)

            session.add(SuggestionVote(suggestion_id=suggestion_id, user_id=voter_id))
            try:
                await session.flush()
            except IntegrityError as e:
                logger.info("Duplicate vote by %s on suggestion %s rejected", voter_id, suggestion_id)
                raise AlreadyVotedError(suggestion_id) from e

            count = await self._count(session, suggestion_id)
            logger.info("Vote by %s on suggestion %s recorded (total=%d)", voter_id, suggestion_id, count)
            return VoteResponse(
                message="Vote recorded successfully",
                suggestion_id=suggestion_id,
                vote_count=count,
            )

        return await run_in_transaction(db, work, operation="cast_vote")

    async def retract_vote(
        self,
        db: AsyncSession,
        club_id: UUID,
        suggestion_id: UUID,
        voter_id: UUID,
    ) -> VoteResponse:
        """
        Delete `voter_id`'s vote and return the suggestion's updated total.

        Retraction is only possible while the suggestion is still open for
        voting, so a closed tally can never be changed afterwards.

        Raises:
            ClubNotFoundError, NotAMemberError, SuggestionNotFoundError,
            VotingClosedError, VoteNotFoundError, StoreError
        """

        async def work(session: AsyncSession) -> VoteResponse:
            club = await load_club(session, club_id, ClubLock.SHARE)
            await require_member(session, club, voter_id)
            await self._load_open_suggestion(session, club, suggestion_id)

            result = await session.execute(
                delete(SuggestionVote).where(
                    SuggestionVote.suggestion_id == suggestion_id,
                    SuggestionVote.user_id == voter_id,
                )
            )
            if result.rowcount == 0:
                raise VoteNotFoundError(suggestion_id)

            count = await self._count(session, suggestion_id)
            logger.info("Vote by %s on suggestion %s retracted (total=%d)", voter_id, suggestion_id, count)
            return VoteResponse(
                message="Vote removed successfully",
                suggestion_id=suggestion_id,
                vote_count=count,
            )

        return await run_in_transaction(db, work, operation="retract_vote")


vote_service = VoteService()
