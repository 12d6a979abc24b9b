"""Core domain models and result contracts of the booking service.

Entities (User, Training, Enrollment) are what the record store holds.
Result models are what the booking engine returns; they serialize with
camelCase aliases for the HTTP surface.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .enums import EnrollmentStatus


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

class User(BaseModel):
    id: int
    name: str
    email: str  # unique in the store


class Training(BaseModel):
    """A bookable training session.

    ``current_enrollment`` is only ever changed by the booking engine and
    never leaves ``[0, max_capacity]``.
    """

    id: int
    title: str
    description: str | None = None
    instructor: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    max_capacity: int = Field(gt=0)
    current_enrollment: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_enrollment_within_capacity(self) -> Training:
        if self.current_enrollment > self.max_capacity:
            raise ValueError(
                f"current_enrollment {self.current_enrollment} exceeds "
                f"max_capacity {self.max_capacity}"
            )
        return self

    @property
    def has_free_slot(self) -> bool:
        return self.current_enrollment < self.max_capacity


class Enrollment(BaseModel):
    """Join record linking one user to one training."""

    id: int
    user_id: int
    training_id: int
    enrolled_at: datetime
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class _ResultModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TrainingSnapshot(_ResultModel):
    id: int
    title: str
    start_date: datetime | None = None


class BookingResult(_ResultModel):
    message: str
    enrollment_id: int
    training: TrainingSnapshot


class TrainingDetails(_ResultModel):
    id: int
    title: str
    description: str | None = None
    instructor: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


class EnrollmentInfo(_ResultModel):
    enrollment_id: int
    enrolled_at: datetime
    status: EnrollmentStatus
    training: TrainingDetails


class UserTrainings(_ResultModel):
    user_id: int
    user_name: str
    trainings: list[EnrollmentInfo] = Field(default_factory=list)
    total_enrollments: int = 0
