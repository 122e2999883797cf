"""
ClubShelf Voting Backend — Suggestion & Vote Route Handlers
=============================================================

What:  Ballot listing, suggestion creation, vote cast and vote retraction.
Auth:  Bearer token; the caller must be an active member of the club.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.database import get_db_session
from app.models import User
from app.schemas.voting import (
    ErrorResponse,
    SuggestionCreate,
    SuggestionResponse,
    VoteResponse,
)
from app.services.suggestion_service import suggestion_service
from app.services.vote_service import vote_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clubs", tags=["Suggestions"])

MEMBER_ERRORS = {
    401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
    403: {"description": "Not an active member of the club", "model": ErrorResponse},
    404: {"description": "Club or suggestion not found", "model": ErrorResponse},
}


@router.get(
    "/{club_id}/suggestions",
    response_model=List[SuggestionResponse],
    responses=MEMBER_ERRORS,
    summary="List the club's active suggestions",
)
async def list_suggestions(
    club_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[SuggestionResponse]:
    """Newest first, with vote counts and whether the caller has voted."""
    return await suggestion_service.list_suggestions(db, club_id=club_id, viewer_id=user.id)


@router.post(
    "/{club_id}/suggestions",
    status_code=201,
    response_model=SuggestionResponse,
    responses={
        **MEMBER_ERRORS,
        409: {"description": "No open cycle, duplicate book or suggestion limit", "model": ErrorResponse},
    },
    summary="Suggest a book for the open voting cycle",
)
async def create_suggestion(
    club_id: UUID,
    body: SuggestionCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuggestionResponse:
    return await suggestion_service.create_suggestion(
        db,
        club_id=club_id,
        book_id=body.book_id,
        proposer_id=user.id,
        reason=body.reason,
    )


@router.post(
    "/{club_id}/suggestions/{suggestion_id}/vote",
    status_code=201,
    response_model=VoteResponse,
    responses={
        **MEMBER_ERRORS,
        409: {"description": "Already voted, or voting on this suggestion has ended", "model": ErrorResponse},
    },
    summary="Vote for a suggestion",
)
async def cast_vote(
    club_id: UUID,
    suggestion_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> VoteResponse:
    """
    One vote per member per suggestion; members may vote for several
    suggestions. A repeat returns 409 `already_voted` and changes nothing.
    """
    return await vote_service.cast_vote(
        db, club_id=club_id, suggestion_id=suggestion_id, voter_id=user.id
    )


@router.delete(
    "/{club_id}/suggestions/{suggestion_id}/vote",
    response_model=VoteResponse,
    responses={
        **MEMBER_ERRORS,
        409: {"description": "Voting on this suggestion has ended", "model": ErrorResponse},
    },
    summary="Retract a vote",
)
async def retract_vote(
    club_id: UUID,
    suggestion_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> VoteResponse:
    return await vote_service.retract_vote(
        db, club_id=club_id, suggestion_id=suggestion_id, voter_id=user.id
    )
