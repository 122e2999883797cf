"""
ClubBook model — a club's reading history.

Rows are appended when a winner is selected (IN_PROGRESS) and closed out
when the book is completed or abandoned. The normal flow never deletes them.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Index, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, UTCDateTime
from app.models.enums import ClubBookStatus
from app.utils.timezone import utc_now


class ClubBook(Base):
    __tablename__ = "club_books"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    club_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False
    )
    book_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("books.id", ondelete="CASCADE"), nullable=False
    )
    started_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)
    finished_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    status: Mapped[ClubBookStatus] = mapped_column(
        Enum(ClubBookStatus, name="club_book_status", native_enum=False, length=20),
        nullable=False,
        default=ClubBookStatus.IN_PROGRESS,
    )
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    discussion_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_club_books_rating_range"),
        Index("idx_club_books_club_book", "club_id", "book_id"),
    )

    def __repr__(self) -> str:
        return f"<ClubBook(club_id={self.club_id}, book_id={self.book_id}, status={self.status})>"
