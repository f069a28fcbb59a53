"""Create credit_packages and credit_purchases tables

Revision ID: 0004_create_credit_tables
Revises: 0003_create_courses
Create Date: 2026-10-19

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0004_create_credit_tables"
down_revision = "0003_create_courses"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "credit_packages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("credit_amount", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("name", name="uq_credit_packages_name"),
        sa.CheckConstraint("credit_amount >= 0", name="ck_credit_packages_credit_amount"),
        sa.CheckConstraint("price >= 0", name="ck_credit_packages_price"),
    )

    op.create_table(
        "credit_purchases",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("credit_package_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("purchased_credits", sa.Integer(), nullable=False),
        sa.Column("price_paid", sa.Numeric(10, 2), nullable=False),
        sa.Column("purchase_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["credit_package_id"], ["credit_packages.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_credit_purchases_user_id", "credit_purchases", ["user_id"], unique=False)
    op.create_index(
        "ix_credit_purchases_credit_package_id",
        "credit_purchases",
        ["credit_package_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_credit_purchases_credit_package_id", table_name="credit_purchases")
    op.drop_index("ix_credit_purchases_user_id", table_name="credit_purchases")
    op.drop_table("credit_purchases")
    op.drop_table("credit_packages")
