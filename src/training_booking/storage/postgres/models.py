"""SQLAlchemy ORM models for the booking database.

Constraints are declared directly on the tables rather than enforced in
application code:

    users.email                               UNIQUE
    enrollments (user_id, training_id)        UNIQUE
    enrollments.user_id / training_id         FOREIGN KEY
    0 <= current_enrollment <= max_capacity   CHECK

Relationships:
    UserRecord 1--* EnrollmentRecord *--1 TrainingRecord
    No relationship() attributes: joins are fetched explicitly.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Declarative base
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# UserRecord
# ---------------------------------------------------------------------------

class UserRecord(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
    )

    def __repr__(self) -> str:
        return f"<UserRecord(id={self.id!r}, email={self.email!r})>"


# ---------------------------------------------------------------------------
# TrainingRecord
# ---------------------------------------------------------------------------

class TrainingRecord(Base):
    """Bookable training. ``current_enrollment`` is the capacity counter."""

    __tablename__ = "trainings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    instructor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    current_enrollment: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0",
    )

    __table_args__ = (
        CheckConstraint("max_capacity > 0", name="ck_trainings_capacity_positive"),
        CheckConstraint(
            "current_enrollment >= 0 AND current_enrollment <= max_capacity",
            name="ck_trainings_enrollment_within_capacity",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<TrainingRecord(id={self.id!r}, title={self.title!r}, "
            f"enrollment={self.current_enrollment}/{self.max_capacity})>"
        )


# ---------------------------------------------------------------------------
# EnrollmentRecord
# ---------------------------------------------------------------------------

class EnrollmentRecord(Base):
    __tablename__ = "enrollments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    training_id: Mapped[int] = mapped_column(ForeignKey("trainings.id"), nullable=False)
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(),
    )
    status: Mapped[str] = mapped_column(String(24), nullable=False, default="ACTIVE")

    __table_args__ = (
        UniqueConstraint("user_id", "training_id", name="uq_enrollments_user_training"),
        Index("ix_enrollments_user_id_status", "user_id", "status"),
        Index("ix_enrollments_training_id", "training_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<EnrollmentRecord(id={self.id!r}, user_id={self.user_id!r}, "
            f"training_id={self.training_id!r}, status={self.status!r})>"
        )
