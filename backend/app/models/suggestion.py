"""
ClubShelf Voting Backend — Suggestion and Vote Models
=======================================================

What:  ORM models for `club_book_suggestions` and `suggestion_votes`.

Table Design Rationale:
    - voting_ends is a copy of the club's deadline taken when the
      suggestion is created, so a vote can be checked against the
      suggestion alone.
    - (suggestion_id, user_id) is UNIQUE. That constraint is the only
      thing preventing a double vote from two concurrent requests; the
      vote ledger inserts and lets the store reject the duplicate.
    - idx_suggestions_club_status serves every tally and bulk status
      update (WHERE club_id = ? AND status = 'ACTIVE').
"""

import uuid
from datetime import datetime

from sqlalchemy import Enum, ForeignKey, Index, Text, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, UTCDateTime
from app.models.enums import SuggestionStatus
from app.utils.timezone import utc_now


class ClubBookSuggestion(Base):
    """
    A proposal to read one book within a club's cycle.

    Lifecycle:
        ACTIVE ──close, lost──────────▶ REJECTED
        ACTIVE ──close, zero votes────▶ EXPIRED
        ACTIVE ──close, top count─────▶ ACTIVE (winner)
                  ──select this one───▶ SELECTED
                  ──select another────▶ REJECTED
    """

    __tablename__ = "club_book_suggestions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    club_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False
    )
    book_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("books.id", ondelete="CASCADE"), nullable=False
    )
    suggested_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[SuggestionStatus] = mapped_column(
        Enum(SuggestionStatus, name="suggestion_status", native_enum=False, length=20),
        nullable=False,
        default=SuggestionStatus.ACTIVE,
    )
    voting_ends: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)

    __table_args__ = (
        Index("idx_suggestions_club_status", "club_id", "status"),
        # A book can be on the ballot only once per club at a time
        Index(
            "uq_suggestions_active_club_book",
            "club_id",
            "book_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ClubBookSuggestion(id={self.id}, book_id={self.book_id}, "
            f"status='{self.status.value if self.status else None}')>"
        )


class SuggestionVote(Base):
    """One member's endorsement of one suggestion. Inserted or deleted, never updated."""

    __tablename__ = "suggestion_votes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    suggestion_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("club_book_suggestions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("suggestion_id", "user_id", name="uq_suggestion_votes_suggestion_user"),
    )
