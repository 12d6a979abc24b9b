"""Protocol interfaces for the record store.

The booking engine depends only on these Protocols. Implementations
(in-memory, PostgreSQL) can be swapped without changing callers.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol, runtime_checkable

from .enums import EnrollmentStatus
from .models import Enrollment, Training, User


@runtime_checkable
class IStoreTransaction(Protocol):
    """Repository operations bound to one open transaction.

    Every call participates in the enclosing transaction; nothing is
    visible to other transactions until it commits.
    """

    async def find_training_by_id(self, training_id: int) -> Training | None: ...

    async def find_user_by_id(self, user_id: int) -> User | None: ...

    async def exists_enrollment(self, user_id: int, training_id: int) -> bool: ...

    async def find_enrollment(
        self, user_id: int, training_id: int
    ) -> Enrollment | None: ...

    async def insert_enrollment(
        self,
        user_id: int,
        training_id: int,
        status: EnrollmentStatus,
        enrolled_at: datetime,
    ) -> Enrollment:
        """Raises ``UniqueViolationError`` if the pair is already enrolled."""
        ...

    async def increment_training_enrollment(self, training_id: int) -> Training | None:
        """Add one to the enrollment counter if a slot is still free.

        Returns the updated training, or ``None`` when the counter has
        already reached ``max_capacity``. A store that validates at commit
        raises ``CheckViolationError`` there if concurrent increments
        would push the counter past capacity.
        """
        ...

    async def find_active_enrollments_for_user(self, user_id: int) -> list[Enrollment]: ...

    async def insert_user(self, name: str, email: str) -> User: ...

    async def insert_training(
        self,
        title: str,
        max_capacity: int,
        *,
        description: str | None = None,
        instructor: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> Training: ...


@runtime_checkable
class IRecordStore(Protocol):
    """Transactional store holding users, trainings and enrollments."""

    def transaction(
        self, *, read_only: bool = False
    ) -> AbstractAsyncContextManager[IStoreTransaction]:
        """Open a scoped transaction.

        Commits on normal exit, rolls back on every other exit path.
        """
        ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...
