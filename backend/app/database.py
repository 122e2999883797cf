"""
ClubShelf Voting Backend — Database Session Management
========================================================

What:  Async SQLAlchemy engine, session factory, FastAPI session dependency
       and the transaction runner every voting operation goes through.
How:   The engine owns the connection pool; `get_db_session` hands one
       session to each request; `run_in_transaction` executes a unit of
       work on that session, commits it, maps store failures onto
       StoreError and retries write conflicts with tenacity.

Transaction Model:
    Services never call commit themselves. A unit of work is an async
    callable taking the session; it reads (locking the club row when it
    will write it), mutates, and returns a result. The runner commits, or
    rolls back on any exception. Conflicts (stale optimistic version,
    serialization failure, deadlock) roll back and re-run the whole unit
    of work against fresh state, so a loser of a race re-evaluates its
    preconditions and fails with the declared error instead of a 5xx.
"""

import logging
from datetime import datetime, timezone
from typing import AsyncGenerator, Awaitable, Callable, Optional, TypeVar

from sqlalchemy import DateTime
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.types import TypeDecorator
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from app.config import settings
from app.exceptions import ClubShelfError, StoreConflictError, StoreError
from app.utils.timezone import ensure_utc

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATE codes PostgreSQL uses when a concurrent transaction wins.
CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})


# ── Engine Configuration ──────────────────────────────────────────────────
def _engine_kwargs() -> dict:
    kwargs = {"echo": settings.log_level == "DEBUG"}
    # SQLite (tests, local tooling) uses its own pool without sizing knobs
    if not settings.is_sqlite:
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return kwargs


engine = create_async_engine(settings.database_url, **_engine_kwargs())

# expire_on_commit=False: response building reads attributes after commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """Base class for all ORM models; shares one metadata for Alembic."""
    pass


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp that always round-trips as UTC.

    PostgreSQL stores TIMESTAMPTZ natively. SQLite drops the offset, so
    values are normalized to UTC on the way in and re-tagged on the way out;
    deadline comparisons in Python never mix naive and aware datetimes.
    """

    impl = DateTime
    cache_ok = True

    def __init__(self):
        super().__init__(timezone=True)

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    Writes are committed by `run_in_transaction`; the commit here only
    closes out read-only requests. Any exception rolls back.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Transaction Runner ────────────────────────────────────────────────────
def _is_conflict(exc: DBAPIError) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code in CONFLICT_SQLSTATES


async def _attempt(
    db: AsyncSession,
    work: Callable[[AsyncSession], Awaitable[T]],
    operation: str,
) -> T:
    try:
        result = await work(db)
        await db.commit()
        return result
    except ClubShelfError:
        await db.rollback()
        raise
    except StaleDataError as e:
        await db.rollback()
        logger.warning("%s lost an optimistic version check: %s", operation, e)
        raise StoreConflictError(context={"operation": operation}) from e
    except DBAPIError as e:
        await db.rollback()
        if _is_conflict(e):
            logger.warning("%s hit a serialization conflict: %s", operation, e.orig)
            raise StoreConflictError(context={"operation": operation}) from e
        logger.error("%s failed in the store: %s", operation, e, exc_info=True)
        raise StoreError(context={"operation": operation, "error_type": type(e).__name__}) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("%s failed in the ORM: %s", operation, e, exc_info=True)
        raise StoreError(context={"operation": operation, "error_type": type(e).__name__}) from e
    except Exception:
        await db.rollback()
        raise


async def run_in_transaction(
    db: AsyncSession,
    work: Callable[[AsyncSession], Awaitable[T]],
    operation: str,
    retry_conflicts: bool = True,
) -> T:
    """
    Run `work` as one atomic unit on `db` and commit it.

    Args:
        db: Session to run on; any transaction it already has (e.g. from
            the auth lookup) is extended, not replaced
        work: Async callable performing the reads and writes
        operation: Name used in logs and error context
        retry_conflicts: Re-run on StoreConflictError up to
            `settings.tx_retry_attempts` total attempts

    Raises:
        Whatever ClubShelfError `work` raises, StoreConflictError once the
        retries are spent, StoreError for any other store failure.
    """
    attempts = settings.tx_retry_attempts if retry_conflicts else 1
    result = None
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(StoreConflictError),
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(settings.tx_retry_wait_ms / 1000),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            result = await _attempt(db, work, operation)
    return result


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Gracefully closes all pooled connections on shutdown."""
    await engine.dispose()
