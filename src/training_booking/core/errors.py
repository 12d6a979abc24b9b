"""Custom exception hierarchy for the booking service."""

from __future__ import annotations


class BookingError(Exception):
    """Base exception for all booking service errors."""


# --- Configuration ---
class ConfigError(BookingError):
    """Invalid or missing configuration."""


# --- Business rules ---
class BusinessRuleError(BookingError):
    """A booking request violated a business rule. Never retried."""


class NotFoundError(BusinessRuleError):
    """Referenced training or user does not exist."""

    def __init__(self, kind: str, entity_id: object) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.capitalize()} not found with id: {entity_id}")


class DuplicateEnrollmentError(BusinessRuleError):
    """User is already enrolled in the training."""

    def __init__(self, user_id: object = None, training_id: object = None) -> None:
        self.user_id = user_id
        self.training_id = training_id
        super().__init__("User is already enrolled in this training")


class CapacityExceededError(BusinessRuleError):
    """Training has no free slot left."""

    def __init__(self, training_id: object = None, max_capacity: int | None = None) -> None:
        self.training_id = training_id
        self.max_capacity = max_capacity
        super().__init__("Training has reached maximum capacity")


# --- Record store ---
class StoreError(BookingError):
    """Record store failure. Surfaced to callers as an unexpected error."""

    retryable: bool = False


class StoreUnavailableError(StoreError):
    """Store could not be reached."""

    retryable = True


class StoreTimeoutError(StoreError):
    """Store transaction did not finish within its time budget."""

    retryable = True


class TransactionConflictError(StoreError):
    """Transaction lost a race with a concurrent writer."""


class UniqueViolationError(StoreError):
    """Insert collided with a uniqueness constraint."""

    def __init__(self, constraint: str, message: str = "") -> None:
        self.constraint = constraint
        super().__init__(message or f"Unique constraint violated: {constraint}")


class CheckViolationError(StoreError):
    """Write would break a CHECK constraint, such as the capacity bound."""

    def __init__(self, constraint: str, message: str = "") -> None:
        self.constraint = constraint
        super().__init__(message or f"Check constraint violated: {constraint}")
