"""
ClubShelf Voting Backend — Voting Cycle Controller
====================================================

What:  Owns the per-club voting cycle: opening a window, closing it with a
       tally, reporting its state, and sweeping cycles whose window has
       elapsed.
Who:   Called by the voting routes and by `app.jobs.close_expired`.

State Machine (per club):
    IDLE ──open_cycle──▶ OPEN ──(now ≥ voting_ends_at, close_cycle)──▶ IDLE

Close-out Procedure (one transaction, club row locked FOR UPDATE):
    1. Load every ACTIVE suggestion of the club with its vote count
    2. max_votes = max(counts, default 0)
    3. max_votes > 0: suggestions at max_votes stay ACTIVE (winners, plural
       on a tie); one bulk UPDATE rejects the other ACTIVE suggestions
    4. max_votes == 0: one bulk UPDATE expires every ACTIVE suggestion
    5. Clear the four cycle fields on the club
    Either all five land or none do. Votes share-lock the same club row,
    so none can be accepted between the tally read and the status writes.

Concurrent Closes:
    Both callers queue on the club row lock. The winner commits; the loser
    then reads the cleared club and fails with CycleNotOpenError. Where the
    store reports a conflict instead, the transaction runner re-runs the
    whole close once and the same precondition check applies.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.database import async_session_factory, run_in_transaction
from app.exceptions import (
    ClubAlreadyReadingError,
    ConflictError,
    CycleAlreadyOpenError,
    CycleNotOpenError,
    CycleNotYetExpiredError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from app.models import Club, ClubBookSuggestion, CycleState, SuggestionStatus, SuggestionVote
from app.schemas.voting import (
    SuggestionTally,
    SweepResponse,
    VotingCycleResponse,
    VotingResultsResponse,
)
from app.services.club_access import ClubLock, load_club, require_admin, require_member
from app.services.tally import compute_tally
from app.utils.timezone import utc_now

logger = logging.getLogger(__name__)


def cycle_state(club: Club, now: datetime) -> CycleState:
    if not club.voting_cycle_active:
        return CycleState.IDLE
    if club.voting_ends_at is not None and now >= club.voting_ends_at:
        return CycleState.EXPIRED_PENDING_CLOSE
    return CycleState.OPEN


def to_cycle_response(
    club: Club,
    now: Optional[datetime] = None,
    active_suggestions: Optional[int] = None,
) -> VotingCycleResponse:
    return VotingCycleResponse(
        club_id=club.id,
        state=cycle_state(club, now or utc_now()),
        voting_cycle_active=club.voting_cycle_active,
        voting_starts_at=club.voting_starts_at,
        voting_ends_at=club.voting_ends_at,
        voting_started_by=club.voting_started_by,
        current_book_id=club.current_book_id,
        active_suggestions=active_suggestions,
    )


class VotingService:
    """Voting Cycle Controller. Stateless; every call receives its session."""

    # ── Open ──────────────────────────────────────────────────────────────

    def _resolve_duration(self, duration: Optional[timedelta]) -> timedelta:
        if duration is None:
            return timedelta(hours=settings.voting_default_duration_hours)
        if duration <= timedelta(0):
            raise ValidationError("Voting duration must be positive", field="duration_hours")
        if duration > timedelta(hours=settings.voting_max_duration_hours):
            raise ValidationError(
                f"Voting duration cannot exceed {settings.voting_max_duration_hours} hours",
                field="duration_hours",
            )
        return duration

    async def open_cycle(
        self,
        db: AsyncSession,
        club_id: UUID,
        actor_id: UUID,
        duration: Optional[timedelta] = None,
    ) -> VotingCycleResponse:
        """
        Start a voting window of `duration` (default from settings) now.

        Raises:
            ValidationError: duration not positive or above the maximum
            ClubNotFoundError, NotAMemberError, NotAuthorizedError
            CycleAlreadyOpenError: the club already has an active cycle
            ClubAlreadyReadingError: the club must finish its current book first
        """
        window = self._resolve_duration(duration)

        async def work(session: AsyncSession) -> VotingCycleResponse:
            club = await load_club(session, club_id, ClubLock.UPDATE)
            await require_admin(session, club, actor_id)

            if club.voting_cycle_active:
                raise CycleAlreadyOpenError(club_id)
            if club.current_book_id is not None:
                raise ClubAlreadyReadingError(
                    "Cannot start a voting cycle while a book is currently selected"
                )

            now = utc_now()
            club.voting_cycle_active = True
            club.voting_starts_at = now
            club.voting_ends_at = now + window
            club.voting_started_by = actor_id
            await session.flush()

            logger.info(
                "Voting cycle opened for club %s by %s, ends %s",
                club_id, actor_id, club.voting_ends_at.isoformat(),
            )
            return to_cycle_response(club, now)

        return await run_in_transaction(db, work, operation="open_cycle")

    # ── Close ─────────────────────────────────────────────────────────────

    async def _active_vote_counts(
        self, db: AsyncSession, club_id: UUID
    ) -> Dict[UUID, Tuple[ClubBookSuggestion, int]]:
        vote_count = func.count(SuggestionVote.id).label("vote_count")
        result = await db.execute(
            select(ClubBookSuggestion, vote_count)
            .outerjoin(SuggestionVote, SuggestionVote.suggestion_id == ClubBookSuggestion.id)
            .where(
                ClubBookSuggestion.club_id == club_id,
                ClubBookSuggestion.status == SuggestionStatus.ACTIVE,
            )
            .group_by(ClubBookSuggestion.id)
            .order_by(ClubBookSuggestion.created_at)
        )
        return {suggestion.id: (suggestion, count) for suggestion, count in result.all()}

    async def _tally_and_close(
        self, db: AsyncSession, club: Club, closed_by: Optional[UUID]
    ) -> VotingResultsResponse:
        rows = await self._active_vote_counts(db, club.id)
        tally = compute_tally({sid: count for sid, (_, count) in rows.items()})

        base = (
            update(ClubBookSuggestion)
            .where(
                ClubBookSuggestion.club_id == club.id,
                ClubBookSuggestion.status == SuggestionStatus.ACTIVE,
            )
            .execution_options(synchronize_session="fetch")
        )
        if tally.max_votes > 0:
            await db.execute(
                base.where(ClubBookSuggestion.id.notin_(tally.winner_ids)).values(
                    status=SuggestionStatus.REJECTED
                )
            )
        else:
            await db.execute(base.values(status=SuggestionStatus.EXPIRED))

        club.clear_voting_cycle()
        await db.flush()

        logger.info(
            "Voting cycle closed for club %s by %s: outcome=%s max_votes=%d "
            "winners=%d rejected=%d expired=%d",
            club.id, closed_by or "expiry-sweep", tally.outcome.value, tally.max_votes,
            len(tally.winner_ids), len(tally.rejected_ids), len(tally.expired_ids),
        )

        winners: List[SuggestionTally] = [
            SuggestionTally(
                suggestion_id=sid,
                book_id=rows[sid][0].book_id,
                vote_count=rows[sid][1],
            )
            for sid in tally.winner_ids
        ]
        return VotingResultsResponse(
            club=to_cycle_response(club, active_suggestions=len(winners)),
            outcome=tally.outcome,
            max_votes=tally.max_votes,
            total_suggestions=len(rows),
            winners=winners,
            rejected_suggestion_ids=tally.rejected_ids,
            expired_suggestion_ids=tally.expired_ids,
        )

    async def _close(
        self, db: AsyncSession, club_id: UUID, actor_id: Optional[UUID]
    ) -> VotingResultsResponse:
        async def work(session: AsyncSession) -> VotingResultsResponse:
            club = await load_club(session, club_id, ClubLock.UPDATE)
            # actor_id None is the expiry sweep acting for the system
            if actor_id is not None:
                await require_admin(session, club, actor_id)

            if not club.voting_cycle_active:
                raise CycleNotOpenError(club_id)
            if club.voting_ends_at is not None and utc_now() < club.voting_ends_at:
                raise CycleNotYetExpiredError(club.voting_ends_at)

            return await self._tally_and_close(session, club, actor_id)

        return await run_in_transaction(db, work, operation="close_cycle")

    async def close_cycle(
        self, db: AsyncSession, club_id: UUID, actor_id: UUID
    ) -> VotingResultsResponse:
        """
        Close an elapsed voting window and tally it.

        Raises:
            ClubNotFoundError, NotAMemberError, NotAuthorizedError
            CycleNotOpenError: no active cycle (including an already-closed one)
            CycleNotYetExpiredError: now is before voting_ends_at
            StoreConflictError: still conflicting after the automatic retry
        """
        return await self._close(db, club_id, actor_id)

    async def close_expired_cycles(
        self,
        session_factory: async_sessionmaker = async_session_factory,
    ) -> SweepResponse:
        """
        Close every cycle whose window has elapsed.

        Each club is closed in its own session through the same procedure
        as close_cycle. A club closed concurrently by an admin is skipped;
        a store failure on one club is logged and does not stop the sweep.
        Running it twice closes nothing the second time.
        """
        report = SweepResponse()
        async with session_factory() as db:
            club_ids = (
                await db.execute(
                    select(Club.id).where(
                        Club.voting_cycle_active.is_(True),
                        Club.voting_ends_at <= utc_now(),
                    )
                )
            ).scalars().all()

        for club_id in club_ids:
            async with session_factory() as db:
                try:
                    await self._close(db, club_id, actor_id=None)
                    report.closed.append(club_id)
                except (ConflictError, NotFoundError) as e:
                    logger.info("Sweep skipped club %s: %s", club_id, e.message)
                    report.skipped.append(club_id)
                except StoreError as e:
                    logger.error("Sweep failed to close club %s: %s | %s", club_id, e.message, e.context)
                    report.failed.append(club_id)

        logger.info(
            "Expiry sweep done: closed=%d skipped=%d failed=%d",
            len(report.closed), len(report.skipped), len(report.failed),
        )
        return report

    # ── Status ────────────────────────────────────────────────────────────

    async def get_cycle_status(
        self, db: AsyncSession, club_id: UUID, viewer_id: UUID
    ) -> VotingCycleResponse:
        """
        Raises:
            ClubNotFoundError, NotAMemberError
        """
        club = await load_club(db, club_id)
        await require_member(db, club, viewer_id)
        active = await db.scalar(
            select(func.count(ClubBookSuggestion.id)).where(
                ClubBookSuggestion.club_id == club_id,
                ClubBookSuggestion.status == SuggestionStatus.ACTIVE,
            )
        )
        return to_cycle_response(club, active_suggestions=active or 0)


voting_service = VotingService()
