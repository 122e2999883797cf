"""
ClubShelf Voting Backend — Test Configuration (conftest.py)
=============================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Services run against a real in-memory SQLite database (aiosqlite,
       one shared connection via StaticPool) so constraints, bulk updates
       and optimistic version checks behave as they do in production.
       FOR UPDATE / FOR SHARE are no-ops on SQLite; lock ordering is
       covered by the sequential race tests instead.

Fixture Hierarchy (all function-scoped):
    ├── engine / session_factory / db_session: fresh schema per test
    ├── club: seeded users, books, one club and its memberships
    ├── helpers: direct DB writes for arranging state (open cycle, votes,
    │            moving deadlines into the past)
    ├── auth_headers: bearer headers for a seeded user
    ├── mock_db_session: AsyncMock session for transaction runner tests
    └── test_client: HTTPX AsyncClient bound to the app and the test DB
"""

import os

# Override settings for testing BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-not-real"
os.environ["LOG_LEVEL"] = "WARNING"

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.jwt import create_access_token
from app.database import Base, get_db_session
from app.models import (
    Book,
    Club,
    ClubBookSuggestion,
    ClubMembership,
    ClubRole,
    MembershipStatus,
    SuggestionStatus,
    SuggestionVote,
    User,
)
from app.utils.timezone import utc_now


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Seed Data
# ══════════════════════════════════════════════════════════════════════════

@dataclass
class SeededClub:
    """One club with a user in every role the services distinguish."""

    club_id: UUID
    owner: User
    admin: User
    member: User
    second_member: User
    pending: User
    outsider: User
    books: List[Book] = field(default_factory=list)


@pytest_asyncio.fixture
async def club(db_session) -> SeededClub:
    """
    Users: owner (club.owner_id), admin (ADMIN membership), member and
    second_member (MEMBER), pending (PENDING membership), outsider (none).
    Books: five titles, none on the ballot.
    """
    users: Dict[str, User] = {
        name: User(display_name=name)
        for name in ("owner", "admin", "member", "second_member", "pending", "outsider")
    }
    db_session.add_all(users.values())
    books = [Book(title=f"Book {i}", author=f"Author {i}") for i in range(1, 6)]
    db_session.add_all(books)
    await db_session.flush()

    club = Club(name="Tuesday Readers", owner_id=users["owner"].id)
    db_session.add(club)
    await db_session.flush()

    db_session.add_all([
        ClubMembership(club_id=club.id, user_id=users["owner"].id, role=ClubRole.OWNER),
        ClubMembership(club_id=club.id, user_id=users["admin"].id, role=ClubRole.ADMIN),
        ClubMembership(club_id=club.id, user_id=users["member"].id, role=ClubRole.MEMBER),
        ClubMembership(club_id=club.id, user_id=users["second_member"].id, role=ClubRole.MEMBER),
        ClubMembership(
            club_id=club.id,
            user_id=users["pending"].id,
            role=ClubRole.MEMBER,
            status=MembershipStatus.PENDING,
        ),
    ])
    await db_session.commit()
    # Detached copies stay readable after a service rolls the session back
    db_session.expunge_all()

    return SeededClub(club_id=club.id, books=books, **users)


class DbHelpers:
    """Arranges state by writing rows directly, bypassing the services."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def reload_club(self, club_id: UUID) -> Club:
        return await self.session.get(Club, club_id, populate_existing=True)

    async def reload_suggestion(self, suggestion_id: UUID) -> ClubBookSuggestion:
        return await self.session.get(ClubBookSuggestion, suggestion_id, populate_existing=True)

    async def open_cycle(
        self, club_id: UUID, started_by: UUID, ends_in: timedelta = timedelta(days=7)
    ) -> Club:
        club = await self.reload_club(club_id)
        now = utc_now()
        club.voting_cycle_active = True
        club.voting_starts_at = now
        club.voting_ends_at = now + ends_in
        club.voting_started_by = started_by
        await self.session.commit()
        self.session.expunge(club)
        return club

    async def add_suggestion(
        self,
        club_id: UUID,
        book: Book,
        suggested_by: UUID,
        status: SuggestionStatus = SuggestionStatus.ACTIVE,
    ) -> ClubBookSuggestion:
        club = await self.reload_club(club_id)
        suggestion = ClubBookSuggestion(
            club_id=club_id,
            book_id=book.id,
            suggested_by=suggested_by,
            status=status,
            voting_ends=club.voting_ends_at,
        )
        self.session.add(suggestion)
        await self.session.commit()
        self.session.expunge(suggestion)
        return suggestion

    async def add_votes(self, suggestion: ClubBookSuggestion, voters: List[User]) -> None:
        self.session.add_all(
            SuggestionVote(suggestion_id=suggestion.id, user_id=voter.id) for voter in voters
        )
        await self.session.commit()

    async def expire_cycle(self, club_id: UUID, ago: timedelta = timedelta(minutes=1)) -> None:
        """Move the club's deadline (and its ballot's) into the past."""
        past = utc_now() - ago
        await self.session.execute(
            update(Club).where(Club.id == club_id).values(voting_ends_at=past)
        )
        await self.session.execute(
            update(ClubBookSuggestion)
            .where(
                ClubBookSuggestion.club_id == club_id,
                ClubBookSuggestion.status == SuggestionStatus.ACTIVE,
            )
            .values(voting_ends=past)
        )
        await self.session.commit()

    async def set_current_book(self, club_id: UUID, book_id: Optional[UUID]) -> None:
        club = await self.reload_club(club_id)
        club.current_book_id = book_id
        await self.session.commit()


@pytest.fixture
def helpers(db_session) -> DbHelpers:
    return DbHelpers(db_session)


# ══════════════════════════════════════════════════════════════════════════
# Mocks & HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        work = AsyncMock(return_value="done")
        await run_in_transaction(mock_db_session, work, operation="test")
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def auth_headers():
    """auth_headers(user) → {"Authorization": "Bearer <token>"}"""

    def _headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest_asyncio.fixture
async def test_client(session_factory):
    """
    Provides an async HTTP test client for endpoint testing.

    Each request gets its own session from the test database, mirroring
    the per-request session of the real dependency.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
    """
    from app.main import create_app

    app = create_app()

    async def override_get_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
