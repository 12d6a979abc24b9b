"""Demo data: three users and four upcoming trainings.

Trainings start 10, 15, 20 and 25 days from the clock's "now" and run
for two days each. All start with zero enrollments.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from training_booking.core.clock import IClock, WallClock
from training_booking.core.errors import UniqueViolationError
from training_booking.core.interfaces import IRecordStore
from training_booking.core.models import Training, User

logger = logging.getLogger(__name__)

DEMO_USERS: tuple[tuple[str, str], ...] = (
    ("Hardik Jaiswal", "hardik@gradguide.com"),
    ("John Doe", "john@example.com"),
    ("Jane Smith", "jane@example.com"),
)

# (title, description, instructor, starts_in_days, max_capacity)
DEMO_TRAININGS: tuple[tuple[str, str, str, int, int], ...] = (
    (
        "Spring Boot Masterclass",
        "Learn Spring Boot from scratch with hands-on projects",
        "John Doe", 10, 30,
    ),
    (
        "React Advanced Patterns",
        "Master React hooks, context, and advanced patterns",
        "Jane Smith", 15, 25,
    ),
    (
        "Docker & Kubernetes",
        "Container orchestration and deployment strategies",
        "Mike Johnson", 20, 20,
    ),
    (
        "Microservices Architecture",
        "Design and build scalable microservices",
        "Sarah Williams", 25, 15,
    ),
)

TRAINING_DURATION = timedelta(days=2)


async def seed_demo_data(
    store: IRecordStore,
    clock: IClock | None = None,
) -> tuple[list[User], list[Training]]:
    """Insert the demo users and trainings in one transaction.

    Returns the created rows, or two empty lists if the demo users are
    already present (the transaction is rolled back in that case).
    """
    now = (clock or WallClock()).now()
    users: list[User] = []
    trainings: list[Training] = []
    try:
        async with store.transaction() as tx:
            for name, email in DEMO_USERS:
                users.append(await tx.insert_user(name, email))
            for title, description, instructor, starts_in_days, capacity in DEMO_TRAININGS:
                start = now + timedelta(days=starts_in_days)
                trainings.append(
                    await tx.insert_training(
                        title,
                        capacity,
                        description=description,
                        instructor=instructor,
                        start_date=start,
                        end_date=start + TRAINING_DURATION,
                    )
                )
    except UniqueViolationError:
        logger.info("Demo data already present; skipping seed")
        return [], []

    logger.info("Seeded %d users and %d trainings", len(users), len(trainings))
    return users, trainings
