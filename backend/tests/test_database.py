"""
ClubShelf Voting Backend — Transaction Runner Tests
=====================================================

What:  run_in_transaction commits, maps store failures, and retries
       write conflicts exactly once.
How:   Mock sessions for the error mapping; the real SQLite session for
       an optimistic version conflict on the club row.
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from app.config import settings
from app.database import run_in_transaction
from app.exceptions import CycleNotOpenError, StoreConflictError, StoreError
from app.models import Club
from app.services.club_access import ClubLock, load_club


class _SerializationFailure(Exception):
    sqlstate = "40001"


class _DiskFull(Exception):
    sqlstate = "53100"


class TestRunInTransaction:

    @pytest.mark.asyncio
    async def test_commits_and_returns_result(self, mock_db_session):
        work = AsyncMock(return_value="done")

        result = await run_in_transaction(mock_db_session, work, operation="test")

        assert result == "done"
        work.assert_awaited_once_with(mock_db_session)
        mock_db_session.commit.assert_awaited_once()
        mock_db_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_version_is_retried_once(self, mock_db_session):
        work = AsyncMock(side_effect=[StaleDataError("version mismatch"), "done"])

        result = await run_in_transaction(mock_db_session, work, operation="close_cycle")

        assert result == "done"
        assert work.await_count == 2
        mock_db_session.rollback.assert_awaited_once()
        mock_db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_conflict_surfaces_after_retries_spent(self, mock_db_session):
        work = AsyncMock(side_effect=StaleDataError("version mismatch"))

        with pytest.raises(StoreConflictError) as exc_info:
            await run_in_transaction(mock_db_session, work, operation="close_cycle")

        assert work.await_count == settings.tx_retry_attempts
        assert exc_info.value.context["operation"] == "close_cycle"

    @pytest.mark.asyncio
    async def test_serialization_failure_is_a_conflict(self, mock_db_session):
        failure = DBAPIError("UPDATE clubs", {}, _SerializationFailure())
        work = AsyncMock(side_effect=[failure, "done"])

        assert await run_in_transaction(mock_db_session, work, operation="t") == "done"
        assert work.await_count == 2

    @pytest.mark.asyncio
    async def test_other_store_errors_are_not_retried(self, mock_db_session):
        work = AsyncMock(side_effect=DBAPIError("INSERT", {}, _DiskFull()))

        with pytest.raises(StoreError) as exc_info:
            await run_in_transaction(mock_db_session, work, operation="t")

        assert not isinstance(exc_info.value, StoreConflictError)
        assert work.await_count == 1
        mock_db_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unhandled_integrity_error_is_a_store_error(self, mock_db_session):
        work = AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("unique")))

        with pytest.raises(StoreError):
            await run_in_transaction(mock_db_session, work, operation="t")

    @pytest.mark.asyncio
    async def test_domain_errors_pass_through_without_retry(self, mock_db_session):
        work = AsyncMock(side_effect=CycleNotOpenError())

        with pytest.raises(CycleNotOpenError):
            await run_in_transaction(mock_db_session, work, operation="t")

        assert work.await_count == 1
        mock_db_session.rollback.assert_awaited_once()
        mock_db_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retry_can_be_disabled(self, mock_db_session):
        work = AsyncMock(side_effect=StaleDataError("version mismatch"))

        with pytest.raises(StoreConflictError):
            await run_in_transaction(mock_db_session, work, operation="t", retry_conflicts=False)

        assert work.await_count == 1


class TestOptimisticVersionCheck:
    """A concurrent writer bumps the club version between read and write."""

    @pytest.mark.asyncio
    async def test_lost_race_reruns_against_fresh_state(self, db_session, club):
        attempts = []

        async def work(session):
            loaded = await load_club(session, club.club_id, ClubLock.UPDATE)
            attempts.append(loaded.version)
            if len(attempts) == 1:
                # Another writer commits in between; the identity map is not told
                await session.execute(
                    update(Club)
                    .where(Club.id == club.club_id)
                    .values(version=Club.version + 1)
                    .execution_options(synchronize_session=False)
                )
            loaded.name = "Renamed"
            await session.flush()
            return loaded.name

        result = await run_in_transaction(db_session, work, operation="rename")

        assert result == "Renamed"
        assert len(attempts) == 2
        assert attempts[0] == attempts[1]
        reloaded = await db_session.get(Club, club.club_id, populate_existing=True)
        assert reloaded.name == "Renamed"
        assert reloaded.version == attempts[0] + 1
