"""Integration test: concurrent bookings against one training.

Runs many bookings at once on the in-memory store with a small I/O delay,
so every transaction interleaves with the others, and verifies that:
- A training never holds more enrollments than its capacity.
- The enrollment counter always equals the number of enrollment rows.
- The same user booking twice at once is enrolled exactly once.
- Losers of a race get a business error, not a store error.
- Bookings of a training with free slots all succeed on the first attempt,
  with the default retry settings.
"""

import asyncio

import pytest
from prometheus_client import REGISTRY

from training_booking.booking.engine import BookingEngine
from training_booking.core.clock import SimClock
from training_booking.core.config import BookingConfig
from training_booking.core.errors import CapacityExceededError, DuplicateEnrollmentError
from training_booking.storage.memory_store import InMemoryRecordStore


async def _setup(n_users: int, capacity: int, io_delay: float = 0.001):
    store = InMemoryRecordStore(io_delay=io_delay)
    async with store.transaction() as tx:
        users = [
            await tx.insert_user(f"User {i}", f"user{i}@example.com")
            for i in range(n_users)
        ]
        training = await tx.insert_training("Popular Training", capacity)
    engine = BookingEngine.from_config(store, BookingConfig(), clock=SimClock())
    return store, engine, users, training


def _retries() -> float:
    return REGISTRY.get_sample_value("booking_retries_total", {"reason": "conflict"}) or 0.0


def _split(results):
    booked = [r for r in results if not isinstance(r, BaseException)]
    failed = [r for r in results if isinstance(r, BaseException)]
    return booked, failed


class TestConcurrentBooking:
    @pytest.mark.asyncio
    async def test_last_slot_goes_to_exactly_one_user(self):
        store, engine, users, training = await _setup(n_users=2, capacity=1)

        results = await asyncio.gather(
            *(engine.book_training(training.id, u.id) for u in users),
            return_exceptions=True,
        )

        booked, failed = _split(results)
        assert len(booked) == 1
        assert len(failed) == 1
        assert isinstance(failed[0], CapacityExceededError)
        assert store.get_training(training.id).current_enrollment == 1
        assert len(store.list_enrollments()) == 1

    @pytest.mark.asyncio
    async def test_same_user_twice_is_enrolled_once(self):
        store, engine, users, training = await _setup(n_users=1, capacity=5)
        user = users[0]

        results = await asyncio.gather(
            engine.book_training(training.id, user.id),
            engine.book_training(training.id, user.id),
            return_exceptions=True,
        )

        booked, failed = _split(results)
        assert len(booked) == 1
        assert len(failed) == 1
        assert isinstance(failed[0], DuplicateEnrollmentError)
        assert store.get_training(training.id).current_enrollment == 1
        assert [e.user_id for e in store.list_enrollments()] == [user.id]

    @pytest.mark.asyncio
    async def test_free_slots_book_everyone_without_retries(self):
        store, engine, users, training = await _setup(n_users=10, capacity=30)
        retries_before = _retries()

        results = await asyncio.gather(
            *(engine.book_training(training.id, u.id) for u in users),
            return_exceptions=True,
        )

        booked, failed = _split(results)
        assert failed == []
        assert len(booked) == 10
        assert store.get_training(training.id).current_enrollment == 10
        assert len(store.list_enrollments()) == 10
        assert _retries() == retries_before

    @pytest.mark.asyncio
    async def test_many_users_never_oversell(self):
        store, engine, users, training = await _setup(n_users=20, capacity=7)

        results = await asyncio.gather(
            *(engine.book_training(training.id, u.id) for u in users),
            return_exceptions=True,
        )

        booked, failed = _split(results)
        assert len(booked) == 7
        assert len(failed) == 13
        assert all(isinstance(f, CapacityExceededError) for f in failed)

        enrollments = store.list_enrollments()
        assert store.get_training(training.id).current_enrollment == len(enrollments) == 7
        assert len({e.user_id for e in enrollments}) == 7
        assert {r.enrollment_id for r in booked} == {e.id for e in enrollments}

    @pytest.mark.asyncio
    async def test_listing_during_bookings_sees_committed_state(self):
        store, engine, users, training = await _setup(n_users=5, capacity=5)

        results = await asyncio.gather(
            *(engine.book_training(training.id, u.id) for u in users),
            *(engine.get_user_trainings(u.id) for u in users),
        )

        listings = results[len(users):]
        for listing in listings:
            assert listing.total_enrollments in (0, 1)
        assert store.get_training(training.id).current_enrollment == 5

        final = await asyncio.gather(*(engine.get_user_trainings(u.id) for u in users))
        assert all(listing.total_enrollments == 1 for listing in final)
