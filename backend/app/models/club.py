"""
ClubShelf Voting Backend — Club and Membership Models
=======================================================

What:  ORM models for the `clubs` and `club_memberships` tables.
Who:   Club rows are read by every voting operation and written only by
       the voting cycle controller and the winner coordinator.

Club Row as Serialization Point:
    The cycle fields and `current_book_id` are the shared state that two
    admins acting at once could race on. Writers load the row with
    SELECT ... FOR UPDATE and flush it through the ORM, where
    `version_id_col` turns the UPDATE into
    `... WHERE id = :id AND version = :seen`; a writer that still loses
    gets StaleDataError and the transaction runner retries it.

Invariant (also a CHECK constraint):
    voting_cycle_active = true  ⇒  voting_ends_at IS NOT NULL
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, UTCDateTime
from app.models.enums import ClubRole, MembershipStatus
from app.utils.timezone import utc_now


class Club(Base):
    """
    One row per book club.

    Voting state machine (per club):
        IDLE ──open_cycle──▶ OPEN ──(window elapses, close_cycle)──▶ IDLE
    IDLE means all four cycle fields are cleared.
    """

    __tablename__ = "clubs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )

    # ── Current Book ──────────────────────────────────────────────────────
    # A club reads at most one book at a time. Set by winner selection,
    # cleared when the book is completed or abandoned.
    current_book_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("books.id", ondelete="SET NULL"), nullable=True
    )

    # ── Voting Cycle ──────────────────────────────────────────────────────
    voting_cycle_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    voting_starts_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    voting_ends_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    voting_started_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Optimistic-concurrency counter, bumped by every ORM flush of this row
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=text("1")
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "NOT voting_cycle_active OR voting_ends_at IS NOT NULL",
            name="ck_clubs_active_cycle_has_deadline",
        ),
        # The expiry sweep scans for open cycles past their deadline
        Index("idx_clubs_open_cycle_deadline", "voting_cycle_active", "voting_ends_at"),
    )

    def clear_voting_cycle(self) -> None:
        """Return the club to IDLE. Only the cycle controller calls this."""
        self.voting_cycle_active = False
        self.voting_starts_at = None
        self.voting_ends_at = None
        self.voting_started_by = None

    def __repr__(self) -> str:
        return (
            f"<Club(id={self.id}, voting_cycle_active={self.voting_cycle_active}, "
            f"current_book_id={self.current_book_id})>"
        )


class ClubMembership(Base):
    """
    A user's membership in a club. Managed by the membership service; the
    voting subsystem only reads it to resolve roles.
    """

    __tablename__ = "club_memberships"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    club_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[ClubRole] = mapped_column(
        Enum(ClubRole, name="club_role", native_enum=False, length=20),
        nullable=False,
        default=ClubRole.MEMBER,
    )
    status: Mapped[MembershipStatus] = mapped_column(
        Enum(MembershipStatus, name="membership_status", native_enum=False, length=20),
        nullable=False,
        default=MembershipStatus.ACTIVE,
    )
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("user_id", "club_id", name="uq_club_memberships_user_club"),
    )

    def __repr__(self) -> str:
        return f"<ClubMembership(club_id={self.club_id}, user_id={self.user_id}, role={self.role})>"
