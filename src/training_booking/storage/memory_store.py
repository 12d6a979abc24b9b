"""In-memory record store with optimistic, snapshot-isolated transactions.

Design invariants
-----------------
1.  Committed state is never mutated in place. A commit builds a new
    ``_State`` and swaps it in, so a read-only transaction can keep
    reading the snapshot it started with.
2.  A write transaction works on a private copy of the committed state.
    Nothing it does is visible to others until commit.
3.  Commit re-validates against the *current* committed state under a
    lock: enrollment ``(user_id, training_id)`` pairs and user emails
    are unique (``UniqueViolationError``), and the committed enrollment
    counter plus this transaction's increments stays within
    ``max_capacity`` (``CheckViolationError``). Increments are applied
    to the committed counter, so concurrent bookings of a training with
    free slots all commit.
4.  IDs come from store-wide sequences and are not reused after a
    rollback, like database sequences.

Every operation yields to the event loop, so concurrent bookings
interleave the way they would against a networked store.

Good for: unit tests, demos, local development.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime

from training_booking.core.enums import EnrollmentStatus
from training_booking.core.errors import CheckViolationError, StoreError, UniqueViolationError
from training_booking.core.models import Enrollment, Training, User

logger = logging.getLogger(__name__)

ENROLLMENT_PAIR_CONSTRAINT = "uq_enrollments_user_training"
USER_EMAIL_CONSTRAINT = "uq_users_email"
CAPACITY_CONSTRAINT = "ck_trainings_enrollment_within_capacity"


@dataclass
class _State:
    users: dict[int, User] = field(default_factory=dict)
    trainings: dict[int, Training] = field(default_factory=dict)
    enrollments: dict[int, Enrollment] = field(default_factory=dict)
    # Unique indexes
    emails: dict[str, int] = field(default_factory=dict)
    pairs: dict[tuple[int, int], int] = field(default_factory=dict)

    def copy(self) -> _State:
        return _State(
            users=dict(self.users),
            trainings=dict(self.trainings),
            enrollments=dict(self.enrollments),
            emails=dict(self.emails),
            pairs=dict(self.pairs),
        )


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------

class InMemoryTransaction:
    """One open transaction against an :class:`InMemoryRecordStore`."""

    def __init__(self, store: InMemoryRecordStore, view: _State, read_only: bool) -> None:
        self._store = store
        self._view = view
        self._read_only = read_only
        self._new_users: list[User] = []
        self._new_trainings: list[Training] = []
        self._new_enrollments: list[Enrollment] = []
        # training_id -> number of increments in this transaction
        self._increments: dict[int, int] = {}

    @property
    def read_only(self) -> bool:
        return self._read_only

    def _require_writable(self, op: str) -> None:
        if self._read_only:
            raise StoreError(f"{op} is not allowed in a read-only transaction")

    # -- Reads -------------------------------------------------------------

    async def find_training_by_id(self, training_id: int) -> Training | None:
        await self._store._io()
        return self._view.trainings.get(training_id)

    async def find_user_by_id(self, user_id: int) -> User | None:
        await self._store._io()
        return self._view.users.get(user_id)

    async def exists_enrollment(self, user_id: int, training_id: int) -> bool:
        await self._store._io()
        return (user_id, training_id) in self._view.pairs

    async def find_enrollment(self, user_id: int, training_id: int) -> Enrollment | None:
        await self._store._io()
        enrollment_id = self._view.pairs.get((user_id, training_id))
        if enrollment_id is None:
            return None
        return self._view.enrollments[enrollment_id]

    async def find_active_enrollments_for_user(self, user_id: int) -> list[Enrollment]:
        await self._store._io()
        return [
            e for e in self._view.enrollments.values()
            if e.user_id == user_id and e.status == EnrollmentStatus.ACTIVE
        ]

    # -- Writes ------------------------------------------------------------

    async def insert_enrollment(
        self,
        user_id: int,
        training_id: int,
        status: EnrollmentStatus,
        enrolled_at: datetime,
    ) -> Enrollment:
        self._require_writable("insert_enrollment")
        await self._store._io()

        if user_id not in self._view.users or training_id not in self._view.trainings:
            raise StoreError(
                f"Enrollment references missing user {user_id} "
                f"or training {training_id}"
            )
        if (user_id, training_id) in self._view.pairs:
            raise UniqueViolationError(ENROLLMENT_PAIR_CONSTRAINT)

        enrollment = Enrollment(
            id=next(self._store._enrollment_ids),
            user_id=user_id,
            training_id=training_id,
            enrolled_at=enrolled_at,
            status=status,
        )
        self._view.enrollments[enrollment.id] = enrollment
        self._view.pairs[(user_id, training_id)] = enrollment.id
        self._new_enrollments.append(enrollment)
        return enrollment

    async def increment_training_enrollment(self, training_id: int) -> Training | None:
        self._require_writable("increment_training_enrollment")
        await self._store._io()

        training = self._view.trainings.get(training_id)
        if training is None:
            raise StoreError(f"Training {training_id} does not exist")
        if training.current_enrollment >= training.max_capacity:
            return None

        updated = training.model_copy(
            update={"current_enrollment": training.current_enrollment + 1}
        )
        self._view.trainings[training_id] = updated
        self._increments[training_id] = self._increments.get(training_id, 0) + 1
        return updated

    async def insert_user(self, name: str, email: str) -> User:
        self._require_writable("insert_user")
        await self._store._io()

        if email in self._view.emails:
            raise UniqueViolationError(USER_EMAIL_CONSTRAINT)
        user = User(id=next(self._store._user_ids), name=name, email=email)
        self._view.users[user.id] = user
        self._view.emails[email] = user.id
        self._new_users.append(user)
        return user

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
        await self._store._io()

        training = Training(
            id=next(self._store._training_ids),
            title=title,
            description=description,
            instructor=instructor,
            start_date=start_date,
            end_date=end_date,
            max_capacity=max_capacity,
            current_enrollment=0,
        )
        self._view.trainings[training.id] = training
        self._new_trainings.append(training)
        return training


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class InMemoryRecordStore:
    """Dict-backed record store. No persistence across restarts."""

    def __init__(self, io_delay: float = 0.0) -> None:
        self._state = _State()
        self._commit_lock = asyncio.Lock()
        self._io_delay = io_delay
        self._user_ids = itertools.count(1)
        self._training_ids = itertools.count(1)
        self._enrollment_ids = itertools.count(1)

    async def _io(self) -> None:
        await asyncio.sleep(self._io_delay)

    @asynccontextmanager
    async def transaction(self, *, read_only: bool = False) -> AsyncIterator[InMemoryTransaction]:
        """Yield a transaction; commit on success, discard on any exit path."""
        # Committed states are immutable, so readers share them.
        view = self._state if read_only else self._state.copy()
        txn = InMemoryTransaction(self, view, read_only)
        try:
            yield txn
        except BaseException:
            logger.debug("In-memory transaction rolled back")
            raise
        if not read_only:
            await self._commit(txn)

    async def _commit(self, txn: InMemoryTransaction) -> None:
        async with self._commit_lock:
            await self._io()
            committed = self._state

            for user in txn._new_users:
                if user.email in committed.emails:
                    raise UniqueViolationError(USER_EMAIL_CONSTRAINT)
            for enrollment in txn._new_enrollments:
                if (enrollment.user_id, enrollment.training_id) in committed.pairs:
                    raise UniqueViolationError(ENROLLMENT_PAIR_CONSTRAINT)

            trainings = dict(committed.trainings)
            for training in txn._new_trainings:
                trainings[training.id] = training
            for training_id, increment in txn._increments.items():
                base = trainings[training_id]
                new_count = base.current_enrollment + increment
                if new_count > base.max_capacity:
                    raise CheckViolationError(
                        CAPACITY_CONSTRAINT,
                        f"Training {training_id} enrollment {new_count} "
                        f"exceeds capacity {base.max_capacity}",
                    )
                trainings[training_id] = base.model_copy(
                    update={"current_enrollment": new_count}
                )

            new_state = committed.copy()
            new_state.trainings = trainings
            for user in txn._new_users:
                new_state.users[user.id] = user
                new_state.emails[user.email] = user.id
            for enrollment in txn._new_enrollments:
                new_state.enrollments[enrollment.id] = enrollment
                new_state.pairs[(enrollment.user_id, enrollment.training_id)] = enrollment.id
            self._state = new_state

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    # -- Testing helpers ---------------------------------------------------

    def get_training(self, training_id: int) -> Training | None:
        """Committed training row, outside any transaction."""
        return self._state.trainings.get(training_id)

    def list_enrollments(self) -> list[Enrollment]:
        """All committed enrollments in insertion order."""
        return list(self._state.enrollments.values())
