"""Create course_bookings table

Revision ID: 0005_create_course_bookings
Revises: 0004_create_credit_tables
Create Date: 2026-10-19

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0005_create_course_bookings"
down_revision = "0004_create_credit_tables"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "course_bookings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("booking_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
    )
    # Cancelled rows stay for history; only one active row per (user, course).
    op.create_index(
        "uq_course_bookings_active_user_course",
        "course_bookings",
        ["user_id", "course_id"],
        unique=True,
        postgresql_where=sa.text("cancelled_at IS NULL"),
    )
    op.create_index(
        "ix_course_bookings_course_id_cancelled_at",
        "course_bookings",
        ["course_id", "cancelled_at"],
        unique=False,
    )
    op.create_index(
        "ix_course_bookings_user_id_cancelled_at",
        "course_bookings",
        ["user_id", "cancelled_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_course_bookings_user_id_cancelled_at", table_name="course_bookings")
    op.drop_index("ix_course_bookings_course_id_cancelled_at", table_name="course_bookings")
    op.drop_index("uq_course_bookings_active_user_course", table_name="course_bookings")
    op.drop_table("course_bookings")
