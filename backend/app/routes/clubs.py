"""
ClubShelf Voting Backend — Club Reading Route Handlers
========================================================

What:  Finishing (or abandoning) the club's current book.
Auth:  Bearer token; owner or admin.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.database import get_db_session
from app.models import User
from app.schemas.voting import CompleteBookRequest, CompleteBookResponse, ErrorResponse
from app.services.winner_service import winner_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clubs", tags=["Clubs"])


@router.post(
    "/{club_id}/complete-book",
    response_model=CompleteBookResponse,
    responses={
        400: {"description": "Missing rating or discussion notes", "model": ErrorResponse},
        401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
        403: {"description": "Caller is not the club's owner or an admin", "model": ErrorResponse},
        404: {"description": "Club not found", "model": ErrorResponse},
        409: {"description": "The club has no current book", "model": ErrorResponse},
    },
    summary="Move the current book into the club's reading history",
)
async def complete_book(
    club_id: UUID,
    body: CompleteBookRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CompleteBookResponse:
    """
    COMPLETED requires a 1-5 rating; ABANDONED ignores any rating given.
    Afterwards the club can open a new voting cycle.
    """
    return await winner_service.complete_current_book(
        db,
        club_id=club_id,
        actor_id=user.id,
        status=body.status,
        rating=body.rating,
        notes=body.discussion_notes,
    )
