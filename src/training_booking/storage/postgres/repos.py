"""PostgreSQL record store built on SQLAlchemy's async ORM.

:class:`SqlRecordStore` opens one :class:`AsyncSession` per transaction.
:class:`SqlStoreTransaction` holds the repository operations the booking
engine uses; every one of them runs inside that session's transaction.

Driver exceptions never leave this module raw: they are translated into
the :mod:`training_booking.core.errors` store hierarchy by
:func:`translate_db_error`.

Conversion helpers translate between core domain models
(:mod:`training_booking.core.models`) and ORM records.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping, TypeVar

from sqlalchemy import exists, select, text, update
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from training_booking.core.config import DatabaseConfig
from training_booking.core.enums import EnrollmentStatus
from training_booking.core.errors import (
    CheckViolationError,
    StoreError,
    StoreUnavailableError,
    TransactionConflictError,
    UniqueViolationError,
)
from training_booking.core.models import Enrollment, Training, User

from .connection import create_engine
from .models import EnrollmentRecord, TrainingRecord, UserRecord

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

UNIQUE_VIOLATION = "23505"
CHECK_VIOLATION = "23514"
SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"

_KNOWN_CONSTRAINTS = (
    "uq_enrollments_user_training",
    "uq_users_email",
    "ck_trainings_enrollment_within_capacity",
    "ck_trainings_capacity_positive",
)

_STORE_EXCEPTIONS = (DBAPIError, PoolTimeoutError, OSError)


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

def _driver_errors(exc: BaseException) -> list[BaseException]:
    """The DBAPI exception and the asyncpg exception it wraps, if any."""
    orig = getattr(exc, "orig", None)
    return [e for e in (orig, getattr(orig, "__cause__", None)) if e is not None]


def _sqlstate(exc: BaseException) -> str | None:
    for source in _driver_errors(exc):
        code = getattr(source, "sqlstate", None) or getattr(source, "pgcode", None)
        if code:
            return str(code)
    return None


def _constraint_name(exc: BaseException) -> str:
    for source in _driver_errors(exc):
        name = getattr(source, "constraint_name", None)
        if name:
            return str(name)
    messages = [str(exc)] + [str(e) for e in _driver_errors(exc)]
    return next(
        (name for name in _KNOWN_CONSTRAINTS if any(name in m for m in messages)),
        "unknown",
    )


def translate_db_error(exc: BaseException) -> StoreError:
    """Map a SQLAlchemy / driver exception onto the store error hierarchy."""
    code = _sqlstate(exc)

    if code == UNIQUE_VIOLATION:
        return UniqueViolationError(_constraint_name(exc))

    if code == CHECK_VIOLATION:
        return CheckViolationError(_constraint_name(exc))

    if code in (SERIALIZATION_FAILURE, DEADLOCK_DETECTED):
        return TransactionConflictError(f"Transaction conflict ({code}): {exc}")

    if isinstance(exc, (OperationalError, InterfaceError, PoolTimeoutError, OSError)):
        return StoreUnavailableError(f"Database unavailable: {exc}")

    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return StoreUnavailableError(f"Database connection lost: {exc}")

    return StoreError(f"Database error: {exc}")


def _translate_errors(
    fn: Callable[..., Awaitable[_T]],
) -> Callable[..., Awaitable[_T]]:
    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> _T:
        try:
            return await fn(*args, **kwargs)
        except _STORE_EXCEPTIONS as exc:
            raise translate_db_error(exc) from exc

    return wrapper


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------

def _record_to_user(record: UserRecord) -> User:
    return User(id=record.id, name=record.name, email=record.email)


def _record_to_training(record: TrainingRecord | Mapping[str, Any]) -> Training:
    """Convert an ORM record or a RETURNING row mapping to a :class:`Training`."""
    get = record.get if isinstance(record, Mapping) else functools.partial(getattr, record)
    return Training(
        id=get("id"),
        title=get("title"),
        description=get("description"),
        instructor=get("instructor"),
        start_date=get("start_date"),
        end_date=get("end_date"),
        max_capacity=get("max_capacity"),
        current_enrollment=get("current_enrollment"),
    )


def _record_to_enrollment(record: EnrollmentRecord) -> Enrollment:
    return Enrollment(
        id=record.id,
        user_id=record.user_id,
        training_id=record.training_id,
        enrolled_at=record.enrolled_at,
        status=EnrollmentStatus(record.status),
    )


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------

class SqlStoreTransaction:
    """Repository operations bound to one :class:`AsyncSession`."""

    def __init__(self, session: AsyncSession, read_only: bool = False) -> None:
        self._session = session
        self._read_only = read_only

    @property
    def read_only(self) -> bool:
        return self._read_only

    def _require_writable(self, op: str) -> None:
        if self._read_only:
            raise StoreError(f"{op} is not allowed in a read-only transaction")

    # -- Reads -------------------------------------------------------------

    @_translate_errors
    async def find_training_by_id(self, training_id: int) -> Training | None:
        record = await self._session.get(TrainingRecord, training_id)
        return _record_to_training(record) if record is not None else None

    @_translate_errors
    async def find_user_by_id(self, user_id: int) -> User | None:
        record = await self._session.get(UserRecord, user_id)
        return _record_to_user(record) if record is not None else None

    @_translate_errors
    async def exists_enrollment(self, user_id: int, training_id: int) -> bool:
        stmt = select(
            exists().where(
                EnrollmentRecord.user_id == user_id,
                EnrollmentRecord.training_id == training_id,
            )
        )
        return bool(await self._session.scalar(stmt))

    @_translate_errors
    async def find_enrollment(self, user_id: int, training_id: int) -> Enrollment | None:
        stmt = select(EnrollmentRecord).where(
            EnrollmentRecord.user_id == user_id,
            EnrollmentRecord.training_id == training_id,
        )
        record = (await self._session.execute(stmt)).scalar_one_or_none()
        return _record_to_enrollment(record) if record is not None else None

    @_translate_errors
    async def find_active_enrollments_for_user(self, user_id: int) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRecord)
            .where(
                EnrollmentRecord.user_id == user_id,
                EnrollmentRecord.status == EnrollmentStatus.ACTIVE.value,
            )
            .order_by(EnrollmentRecord.id)
        )
        result = await self._session.execute(stmt)
        return [_record_to_enrollment(r) for r in result.scalars().all()]

    # -- Writes ------------------------------------------------------------

    @_translate_errors
    async def insert_enrollment(
        self,
        user_id: int,
        training_id: int,
        status: EnrollmentStatus,
        enrolled_at: datetime,
    ) -> Enrollment:
        self._require_writable("insert_enrollment")
        record = EnrollmentRecord(
            user_id=user_id,
            training_id=training_id,
            status=status.value,
            enrolled_at=enrolled_at,
        )
        self._session.add(record)
        # Flush now so a duplicate pair fails here, not at commit.
        await self._session.flush()
        logger.debug("Inserted enrollment %s (user=%s, training=%s)", record.id, user_id, training_id)
        return _record_to_enrollment(record)

    @_translate_errors
    async def increment_training_enrollment(self, training_id: int) -> Training | None:
        self._require_writable("increment_training_enrollment")
        table = TrainingRecord.__table__
        # Row lock plus re-evaluated predicate: concurrent increments queue
        # up and each one succeeds while a slot is free.
        stmt = (
            update(table)
            .where(
                table.c.id == training_id,
                table.c.current_enrollment < table.c.max_capacity,
            )
            .values(current_enrollment=table.c.current_enrollment + 1)
            .returning(*table.c)
        )
        row = (await self._session.execute(stmt)).mappings().one_or_none()
        if row is None:
            return None
        return _record_to_training(row)

    @_translate_errors
    async def insert_user(self, name: str, email: str) -> User:
        self._require_writable("insert_user")
        record = UserRecord(name=name, email=email)
        self._session.add(record)
        await self._session.flush()
        return _record_to_user(record)

    @_translate_errors
    async def insert_training(
        self,
        title: str,
        max_capacity: int,
        *,
        description: str | None = None,
        instructor: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> Training:
        self._require_writable("insert_training")
        record = TrainingRecord(
            title=title,
            description=description,
            instructor=instructor,
            start_date=start_date,
            end_date=end_date,
            max_capacity=max_capacity,
            current_enrollment=0,
        )
        self._session.add(record)
        await self._session.flush()
        return _record_to_training(record)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class SqlRecordStore:
    """Record store backed by PostgreSQL."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> SqlRecordStore:
        engine = create_engine(
            config.url,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=config.pool_timeout,
            isolation_level=config.isolation_level,
            echo=config.echo,
        )
        return cls(engine)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def transaction(self, *, read_only: bool = False) -> AsyncIterator[SqlStoreTransaction]:
        """Yield a transaction scoped to the caller's block.

        Usage::

            async with store.transaction() as tx:
                training = await tx.find_training_by_id(1)
                ...

        The session is committed on successful exit and rolled back on
        any other exit, cancellation included. It is always closed
        afterwards.
        """
        session = self._session_factory()
        try:
            try:
                if read_only:
                    await session.connection(
                        execution_options={"postgresql_readonly": True}
                    )
                yield SqlStoreTransaction(session, read_only)
                await session.commit()
            except _STORE_EXCEPTIONS as exc:
                raise translate_db_error(exc) from exc
        except BaseException:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def ping(self) -> bool:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except _STORE_EXCEPTIONS as exc:
            logger.warning("Database ping failed: %s", exc)
            return False

    async def close(self) -> None:
        await self._engine.dispose()
        logger.info("Engine disposed.")
