"""
ClubShelf Voting Backend — Voting Cycle Route Handlers
========================================================

What:  Cycle status, opening a cycle, closing it with a tally, and picking
       the winning book.
Auth:  Bearer token. Status needs an active member; every write needs the
       club's owner or an admin.

Request Flow (close):
    POST /voting/results → VotingService.close_cycle
        → 200 with outcome NO_VOTES | SINGLE_WINNER | TIE and the winners
        → 409 cycle_not_open / cycle_not_yet_expired
    POST /voting/select-winner {"bookId": ...} → WinnerService.select_winner
"""

import logging
from datetime import timedelta
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.database import get_db_session
from app.models import User
from app.schemas.voting import (
    ErrorResponse,
    OpenCycleRequest,
    SelectWinnerRequest,
    SelectWinnerResponse,
    VotingCycleResponse,
    VotingResultsResponse,
)
from app.services.voting_service import voting_service
from app.services.winner_service import winner_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clubs", tags=["Voting"])

ADMIN_ERRORS = {
    401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
    403: {"description": "Caller is not the club's owner or an admin", "model": ErrorResponse},
    404: {"description": "Club not found", "model": ErrorResponse},
    409: {"description": "Voting cycle state does not allow this action", "model": ErrorResponse},
    503: {"description": "Concurrent update; retry", "model": ErrorResponse},
}


@router.get(
    "/{club_id}/voting",
    response_model=VotingCycleResponse,
    responses={k: v for k, v in ADMIN_ERRORS.items() if k in (401, 403, 404)},
    summary="Current voting cycle state",
)
async def get_voting_status(
    club_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> VotingCycleResponse:
    return await voting_service.get_cycle_status(db, club_id=club_id, viewer_id=user.id)


@router.post(
    "/{club_id}/voting/open",
    response_model=VotingCycleResponse,
    responses=ADMIN_ERRORS,
    summary="Open a voting cycle",
)
async def open_voting_cycle(
    club_id: UUID,
    body: Optional[OpenCycleRequest] = Body(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> VotingCycleResponse:
    """The window starts now; an empty body uses the configured default length."""
    duration = None
    if body is not None and body.duration_hours is not None:
        duration = timedelta(hours=body.duration_hours)
    return await voting_service.open_cycle(
        db, club_id=club_id, actor_id=user.id, duration=duration
    )


@router.post(
    "/{club_id}/voting/results",
    response_model=VotingResultsResponse,
    responses=ADMIN_ERRORS,
    summary="Close an elapsed voting cycle and tally the votes",
)
async def close_voting_cycle(
    club_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> VotingResultsResponse:
    """
    Ties are not broken: every suggestion at the top count stays ACTIVE and
    is listed in `winners` for an admin to choose from.
    """
    return await voting_service.close_cycle(db, club_id=club_id, actor_id=user.id)


@router.post(
    "/{club_id}/voting/select-winner",
    response_model=SelectWinnerResponse,
    responses=ADMIN_ERRORS,
    summary="Make a winning suggestion the club's current book",
)
async def select_winner(
    club_id: UUID,
    body: SelectWinnerRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SelectWinnerResponse:
    return await winner_service.select_winner(
        db, club_id=club_id, book_id=body.book_id, actor_id=user.id
    )
