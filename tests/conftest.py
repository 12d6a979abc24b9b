"""Shared fixtures for the training-booking test suite."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from training_booking.booking.engine import BookingEngine
from training_booking.core.clock import SimClock
from training_booking.core.models import Training, User
from training_booking.storage.memory_store import InMemoryRecordStore

START = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

@dataclass
class Catalog:
    """Users and trainings seeded into the store before a test."""

    alice: User
    bob: User
    carol: User
    workshop: Training  # capacity 5
    seminar: Training  # capacity 1


async def seed_catalog(store: InMemoryRecordStore) -> Catalog:
    async with store.transaction() as tx:
        alice = await tx.insert_user("Alice Example", "alice@example.com")
        bob = await tx.insert_user("Bob Example", "bob@example.com")
        carol = await tx.insert_user("Carol Example", "carol@example.com")
        workshop = await tx.insert_training(
            "Python Workshop",
            5,
            description="Hands-on Python",
            instructor="Guido",
            start_date=START + timedelta(days=10),
            end_date=START + timedelta(days=12),
        )
        seminar = await tx.insert_training(
            "Private Seminar",
            1,
            description="One seat only",
            instructor="Ada",
            start_date=START + timedelta(days=20),
            end_date=START + timedelta(days=21),
        )
    return Catalog(alice=alice, bob=bob, carol=carol, workshop=workshop, seminar=seminar)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> SimClock:
    """Deterministic clock fixed at START."""
    return SimClock(START)


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def catalog(store: InMemoryRecordStore) -> Catalog:
    """Seed the in-memory store with three users and two trainings.

    Uses a private loop so the loop of an async test is left untouched.
    """
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(seed_catalog(store))
    finally:
        loop.close()


@pytest.fixture
def engine(store: InMemoryRecordStore, clock: SimClock) -> BookingEngine:
    """Booking engine over the in-memory store with no retry backoff."""
    return BookingEngine(
        store,
        clock=clock,
        max_attempts=10,
        retry_backoff_seconds=0.0,
        transaction_timeout_seconds=2.0,
    )
