"""Test domain model validation and result serialization."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from training_booking.core.enums import EnrollmentStatus
from training_booking.core.models import (
    BookingResult,
    Enrollment,
    Training,
    TrainingSnapshot,
    UserTrainings,
)

WHEN = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class TestTraining:
    def test_defaults(self):
        training = Training(id=1, title="T", max_capacity=3)
        assert training.current_enrollment == 0
        assert training.description is None
        assert training.has_free_slot is True

    def test_full_training_has_no_free_slot(self):
        training = Training(id=1, title="T", max_capacity=2, current_enrollment=2)
        assert training.has_free_slot is False

    @pytest.mark.parametrize("capacity", [0, -1])
    def test_capacity_must_be_positive(self, capacity):
        with pytest.raises(ValidationError):
            Training(id=1, title="T", max_capacity=capacity)

    def test_enrollment_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            Training(id=1, title="T", max_capacity=2, current_enrollment=-1)

    def test_enrollment_cannot_exceed_capacity(self):
        with pytest.raises(ValidationError, match="exceeds max_capacity"):
            Training(id=1, title="T", max_capacity=2, current_enrollment=3)


class TestEnrollment:
    def test_status_defaults_to_active(self):
        enrollment = Enrollment(id=1, user_id=2, training_id=3, enrolled_at=WHEN)
        assert enrollment.status == EnrollmentStatus.ACTIVE
        assert enrollment.status.value == "ACTIVE"


class TestResultSerialization:
    def test_booking_result_uses_camel_case(self):
        result = BookingResult(
            message="ok",
            enrollment_id=7,
            training=TrainingSnapshot(id=1, title="T", start_date=WHEN),
        )
        dumped = result.model_dump(by_alias=True)
        assert dumped["enrollmentId"] == 7
        assert dumped["training"]["startDate"] == WHEN

    def test_results_accept_field_names_and_aliases(self):
        by_name = UserTrainings(user_id=1, user_name="A")
        by_alias = UserTrainings(userId=1, userName="A")
        assert by_name == by_alias
        assert by_name.trainings == []
        assert by_name.total_enrollments == 0
