"""Create voting tables

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

What:  Users and books (owned by the identity and catalog services, mirrored
       here for foreign keys), clubs with their voting cycle fields,
       memberships, suggestions, votes and the club reading history.

Integrity enforced by the schema:
    - one vote per (suggestion, user)
    - one ACTIVE suggestion per (club, book), as a partial unique index
    - an active cycle always has a deadline
    - ratings in 1..5

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.TIMESTAMP(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )

    op.create_table(
        "books",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("author", sa.String(255), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_books"),
    )

    op.create_table(
        "clubs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("current_book_id", sa.Uuid(), nullable=True),
        sa.Column(
            "voting_cycle_active", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        _timestamp("voting_starts_at", nullable=True),
        _timestamp("voting_ends_at", nullable=True),
        sa.Column("voting_started_by", sa.Uuid(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_clubs"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["current_book_id"], ["books.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["voting_started_by"], ["users.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "NOT voting_cycle_active OR voting_ends_at IS NOT NULL",
            name="ck_clubs_active_cycle_has_deadline",
        ),
    )
    op.create_index(
        "idx_clubs_open_cycle_deadline", "clubs", ["voting_cycle_active", "voting_ends_at"]
    )

    op.create_table(
        "club_memberships",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("club_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        _timestamp("joined_at"),
        sa.PrimaryKeyConstraint("id", name="pk_club_memberships"),
        sa.ForeignKeyConstraint(["club_id"], ["clubs.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "club_id", name="uq_club_memberships_user_club"),
    )

    op.create_table(
        "club_book_suggestions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("club_id", sa.Uuid(), nullable=False),
        sa.Column("book_id", sa.Uuid(), nullable=False),
        sa.Column("suggested_by", sa.Uuid(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        _timestamp("voting_ends", nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_club_book_suggestions"),
        sa.ForeignKeyConstraint(["club_id"], ["clubs.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["suggested_by"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "idx_suggestions_club_status", "club_book_suggestions", ["club_id", "status"]
    )
    op.create_index(
        "uq_suggestions_active_club_book",
        "club_book_suggestions",
        ["club_id", "book_id"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        "suggestion_votes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("suggestion_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_suggestion_votes"),
        sa.ForeignKeyConstraint(
            ["suggestion_id"], ["club_book_suggestions.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "suggestion_id", "user_id", name="uq_suggestion_votes_suggestion_user"
        ),
    )

    op.create_table(
        "club_books",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("club_id", sa.Uuid(), nullable=False),
        sa.Column("book_id", sa.Uuid(), nullable=False),
        _timestamp("started_at"),
        _timestamp("finished_at", nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("discussion_notes", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_club_books"),
        sa.ForeignKeyConstraint(["club_id"], ["clubs.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "rating IS NULL OR (rating >= 1 AND rating <= 5)",
            name="ck_club_books_rating_range",
        ),
    )
    op.create_index("idx_club_books_club_book", "club_books", ["club_id", "book_id"])


def downgrade() -> None:
    op.drop_index("idx_club_books_club_book", table_name="club_books")
    op.drop_table("club_books")
    op.drop_table("suggestion_votes")
    op.drop_index("uq_suggestions_active_club_book", table_name="club_book_suggestions")
    op.drop_index("idx_suggestions_club_status", table_name="club_book_suggestions")
    op.drop_table("club_book_suggestions")
    op.drop_table("club_memberships")
    op.drop_index("idx_clubs_open_cycle_deadline", table_name="clubs")
    op.drop_table("clubs")
    op.drop_table("books")
    op.drop_table("users")
