"""Enumerations used across the booking service."""

from enum import Enum


class EnrollmentStatus(str, Enum):
    ACTIVE = "ACTIVE"


class StoreBackend(str, Enum):
    MEMORY = "memory"
    POSTGRES = "postgres"


class BookingOutcome(str, Enum):
    """Label values for booking metrics."""

    BOOKED = "booked"
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"
    FULL = "full"
    ERROR = "error"
