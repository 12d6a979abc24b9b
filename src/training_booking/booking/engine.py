"""Booking engine: the enrollment transaction and the enrollment listing.

Booking runs as one store transaction per attempt:

    1. training exists          else NotFoundError("training")
    2. user exists              else NotFoundError("user")
    3. pair not yet enrolled    else DuplicateEnrollmentError
    4. free slot left           else CapacityExceededError
    5. insert ACTIVE enrollment
    6. increment the enrollment counter, only while it is below capacity

A lost race on step 5 (unique pair) is a duplicate booking. A lost race
on step 6 (a concurrent booking took the last slot) is a full training.
Both are final. Concurrent bookings of a training with free slots do not
conflict with each other. Only a serialization conflict reported by the
store rolls the attempt back and re-runs it from step 1. Each attempt is
bounded by a timeout; expiry is a retryable store failure, not a
business failure.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, TypeVar

from training_booking.core.clock import IClock, WallClock
from training_booking.core.config import BookingConfig
from training_booking.core.enums import BookingOutcome, EnrollmentStatus
from training_booking.core.errors import (
    CapacityExceededError,
    CheckViolationError,
    DuplicateEnrollmentError,
    NotFoundError,
    StoreTimeoutError,
    TransactionConflictError,
    UniqueViolationError,
)
from training_booking.core.interfaces import IRecordStore
from training_booking.core.models import (
    BookingResult,
    Enrollment,
    EnrollmentInfo,
    Training,
    TrainingDetails,
    TrainingSnapshot,
    UserTrainings,
)
from training_booking.observability import metrics

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

BOOKING_SUCCESS_MESSAGE = "Successfully enrolled in training"

_OUTCOMES: dict[type[Exception], BookingOutcome] = {
    NotFoundError: BookingOutcome.NOT_FOUND,
    DuplicateEnrollmentError: BookingOutcome.DUPLICATE,
    CapacityExceededError: BookingOutcome.FULL,
}


class BookingEngine:
    """Enforces the duplicate and capacity rules on top of a record store."""

    def __init__(
        self,
        store: IRecordStore,
        *,
        clock: IClock | None = None,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
        transaction_timeout_seconds: float = 5.0,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if transaction_timeout_seconds <= 0:
            raise ValueError("transaction_timeout_seconds must be > 0")
        self._store = store
        self._clock = clock or WallClock()
        self._max_attempts = max_attempts
        self._retry_backoff = retry_backoff_seconds
        self._timeout = transaction_timeout_seconds

    @classmethod
    def from_config(
        cls,
        store: IRecordStore,
        config: BookingConfig,
        clock: IClock | None = None,
    ) -> BookingEngine:
        return cls(
            store,
            clock=clock,
            max_attempts=config.max_attempts,
            retry_backoff_seconds=config.retry_backoff_seconds,
            transaction_timeout_seconds=config.transaction_timeout_seconds,
        )

    @property
    def store(self) -> IRecordStore:
        return self._store

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    async def book_training(self, training_id: int, user_id: int) -> BookingResult:
        """Enroll *user_id* in *training_id*.

        Raises:
            NotFoundError: training (checked first) or user does not exist.
            DuplicateEnrollmentError: the pair is already enrolled.
            CapacityExceededError: no free slot, including a slot lost to
                a concurrent booking.
            StoreTimeoutError: an attempt exceeded the transaction timeout.
            TransactionConflictError: conflicts persisted through every attempt.
            StoreError: any other store failure.
        """
        logger.info("Attempting to book training %s for user %s", training_id, user_id)
        start = time.monotonic()
        outcome = BookingOutcome.ERROR
        try:
            result = await self._with_retries(
                lambda: self._book_once(training_id, user_id)
            )
            outcome = BookingOutcome.BOOKED
            return result
        except (NotFoundError, DuplicateEnrollmentError, CapacityExceededError) as exc:
            outcome = _OUTCOMES[type(exc)]
            raise
        finally:
            metrics.record_booking(outcome.value, time.monotonic() - start)

    async def _book_once(self, training_id: int, user_id: int) -> BookingResult:
        try:
            async with self._store.transaction() as tx:
                training = await tx.find_training_by_id(training_id)
                if training is None:
                    raise NotFoundError("training", training_id)

                if await tx.find_user_by_id(user_id) is None:
                    raise NotFoundError("user", user_id)

                if await tx.exists_enrollment(user_id, training_id):
                    logger.warning("User %s already enrolled in training %s", user_id, training_id)
                    raise DuplicateEnrollmentError(user_id, training_id)

                if not training.has_free_slot:
                    logger.warning(
                        "Training %s is full (capacity: %s)", training_id, training.max_capacity,
                    )
                    raise CapacityExceededError(training_id, training.max_capacity)

                enrollment = await tx.insert_enrollment(
                    user_id,
                    training_id,
                    EnrollmentStatus.ACTIVE,
                    self._clock.now(),
                )
                updated = await tx.increment_training_enrollment(training_id)
                if updated is None:
                    logger.warning(
                        "Training %s filled up during booking (capacity: %s)",
                        training_id, training.max_capacity,
                    )
                    raise CapacityExceededError(training_id, training.max_capacity)
        except UniqueViolationError as exc:
            # Raised on insert or at commit, depending on the store.
            logger.warning(
                "Concurrent booking already enrolled user %s in training %s",
                user_id, training_id,
            )
            raise DuplicateEnrollmentError(user_id, training_id) from exc
        except CheckViolationError as exc:
            # Capacity bound checked at commit, depending on the store.
            logger.warning(
                "Concurrent bookings filled training %s before commit", training_id,
            )
            raise CapacityExceededError(training_id, training.max_capacity) from exc

        logger.info(
            "Successfully booked training %s for user %s (enrollment %s). "
            "Current enrollment: %s/%s",
            training_id, user_id, enrollment.id,
            updated.current_enrollment, updated.max_capacity,
        )
        return BookingResult(
            message=BOOKING_SUCCESS_MESSAGE,
            enrollment_id=enrollment.id,
            training=TrainingSnapshot(
                id=updated.id,
                title=updated.title,
                start_date=updated.start_date,
            ),
        )

    async def _with_retries(self, attempt_fn: Callable[[], Awaitable[_T]]) -> _T:
        """Run *attempt_fn* with the timeout and conflict-retry policy."""
        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self._timed(attempt_fn())
            except TransactionConflictError as exc:
                if attempt == self._max_attempts:
                    raise TransactionConflictError(
                        f"Booking conflicted on all {self._max_attempts} attempts: {exc}"
                    ) from exc
                metrics.record_retry("conflict")
                wait = self._backoff_delay(attempt)
                logger.info(
                    "Booking transaction conflict (attempt %d/%d), retrying in %.3fs",
                    attempt, self._max_attempts, wait,
                )
                await asyncio.sleep(wait)

        # max_attempts >= 1 guarantees a return or raise above
        raise AssertionError("unreachable")

    def _backoff_delay(self, attempt: int) -> float:
        """Exponential backoff with jitter."""
        base = self._retry_backoff * (2 ** (attempt - 1))
        return base + random.uniform(0, base * 0.5)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def get_user_trainings(self, user_id: int) -> UserTrainings:
        """List the user's ACTIVE enrollments with their training details.

        Raises:
            NotFoundError: the user does not exist.
            StoreTimeoutError: the read exceeded the transaction timeout.
        """
        logger.info("Fetching trainings for user %s", user_id)
        try:
            result = await self._timed(self._list_once(user_id))
        except NotFoundError:
            metrics.record_enrollment_query(BookingOutcome.NOT_FOUND.value)
            raise
        except Exception:
            metrics.record_enrollment_query(BookingOutcome.ERROR.value)
            raise
        metrics.record_enrollment_query("ok")
        return result

    async def _list_once(self, user_id: int) -> UserTrainings:
        async with self._store.transaction(read_only=True) as tx:
            user = await tx.find_user_by_id(user_id)
            if user is None:
                raise NotFoundError("user", user_id)

            enrollments = await tx.find_active_enrollments_for_user(user_id)
            logger.info("Found %d active enrollments for user %s", len(enrollments), user_id)

            infos: list[EnrollmentInfo] = []
            for enrollment in enrollments:
                training = await tx.find_training_by_id(enrollment.training_id)
                if training is None:
                    # Foreign keys make this unreachable on a consistent store.
                    logger.error(
                        "Enrollment %s references missing training %s",
                        enrollment.id, enrollment.training_id,
                    )
                    continue
                infos.append(_to_enrollment_info(enrollment, training))

        return UserTrainings(
            user_id=user.id,
            user_name=user.name,
            trainings=infos,
            total_enrollments=len(infos),
        )

    async def _timed(self, coro: Awaitable[_T]) -> _T:
        try:
            return await asyncio.wait_for(coro, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise StoreTimeoutError(
                f"Store transaction exceeded {self._timeout:.2f}s"
            ) from exc


def _to_enrollment_info(enrollment: Enrollment, training: Training) -> EnrollmentInfo:
    return EnrollmentInfo(
        enrollment_id=enrollment.id,
        enrolled_at=enrollment.enrolled_at,
        status=enrollment.status,
        training=TrainingDetails(
            id=training.id,
            title=training.title,
            description=training.description,
            instructor=training.instructor,
            start_date=training.start_date,
            end_date=training.end_date,
        ),
    )