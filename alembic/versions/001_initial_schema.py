"""Initial schema: users, trainings, enrollments.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19 00:00:00.000000
"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    # Trainings
    op.create_table(
        "trainings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("instructor", sa.String(255), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("max_capacity", sa.Integer, nullable=False),
        sa.Column("current_enrollment", sa.Integer, nullable=False, server_default="0"),
        sa.CheckConstraint("max_capacity > 0", name="ck_trainings_capacity_positive"),
        sa.CheckConstraint(
            "current_enrollment >= 0 AND current_enrollment <= max_capacity",
            name="ck_trainings_enrollment_within_capacity",
        ),
    )

    # Enrollments
    op.create_table(
        "enrollments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("training_id", sa.Integer, sa.ForeignKey("trainings.id"), nullable=False),
        sa.Column(
            "enrolled_at", sa.DateTime(timezone=True),
            nullable=False, server_default=sa.func.now(),
        ),
        sa.Column("status", sa.String(24), nullable=False),
        sa.UniqueConstraint("user_id", "training_id", name="uq_enrollments_user_training"),
    )
    op.create_index("ix_enrollments_user_id_status", "enrollments", ["user_id", "status"])
    op.create_index("ix_enrollments_training_id", "enrollments", ["training_id"])


def downgrade() -> None:
    op.drop_index("ix_enrollments_training_id", table_name="enrollments")
    op.drop_index("ix_enrollments_user_id_status", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_table("trainings")
    op.drop_table("users")
