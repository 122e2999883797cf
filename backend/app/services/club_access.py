"""
Club loading and role resolution shared by the voting services.

Every voting operation starts here: load the club row (locked when the
operation will write it or must not interleave with a writer), then check
that the actor is an active member or an admin/owner.
"""

import enum
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ClubNotFoundError, NotAMemberError, NotAuthorizedError
from app.models import Club, ClubMembership, ClubRole, MembershipStatus

logger = logging.getLogger(__name__)

ADMIN_ROLES = frozenset({ClubRole.OWNER, ClubRole.ADMIN})


class ClubLock(str, enum.Enum):
    """Row lock taken on the club while loading it."""

    NONE = "none"
    # FOR SHARE: vote/suggestion writers; they wait out a close in progress
    SHARE = "share"
    # FOR UPDATE: cycle open/close, winner selection, book completion
    UPDATE = "update"


async def load_club(
    db: AsyncSession,
    club_id: UUID,
    lock: ClubLock = ClubLock.NONE,
) -> Club:
    """
    Load a club, optionally row-locked for the rest of the transaction.

    populate_existing makes a locked read overwrite any copy already in the
    session, so the caller always decides on the state it holds a lock on.

    Raises:
        ClubNotFoundError: No club with that id
    """
    stmt = select(Club).where(Club.id == club_id).execution_options(populate_existing=True)
    if lock is ClubLock.UPDATE:
        stmt = stmt.with_for_update()
    elif lock is ClubLock.SHARE:
        stmt = stmt.with_for_update(read=True)

    club = (await db.execute(stmt)).scalar_one_or_none()
    if club is None:
        raise ClubNotFoundError(club_id)
    return club


async def get_active_membership(
    db: AsyncSession, club_id: UUID, user_id: UUID
) -> Optional[ClubMembership]:
    result = await db.execute(
        select(ClubMembership).where(
            ClubMembership.club_id == club_id,
            ClubMembership.user_id == user_id,
            ClubMembership.status == MembershipStatus.ACTIVE,
        )
    )
    return result.scalar_one_or_none()


async def require_member(db: AsyncSession, club: Club, user_id: UUID) -> None:
    """
    Raises:
        NotAMemberError: user has no ACTIVE membership (the owner always passes)
    """
    if club.owner_id == user_id:
        return
    if await get_active_membership(db, club.id, user_id) is None:
        raise NotAMemberError(club.id)


async def require_admin(db: AsyncSession, club: Club, user_id: UUID) -> None:
    """
    Admin/owner = the club's owner, or an ACTIVE membership with role
    OWNER or ADMIN.

    Raises:
        NotAMemberError: user has no ACTIVE membership
        NotAuthorizedError: user is a plain member
    """
    if club.owner_id == user_id:
        return
    membership = await get_active_membership(db, club.id, user_id)
    if membership is None:
        raise NotAMemberError(club.id)
    if membership.role not in ADMIN_ROLES:
        logger.info(
            "User %s (role=%s) denied admin action on club %s",
            user_id, membership.role.value, club.id,
        )
        raise NotAuthorizedError()
