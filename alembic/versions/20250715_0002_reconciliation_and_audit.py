"""Add daily reconciliations and audit logs.

Revision ID: 0002_reconciliation_and_audit
Revises: 0001_initial_schema
Create Date: 2025-07-15
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "0002_reconciliation_and_audit"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "daily_reconciliations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("truck_id", sa.Integer(), nullable=False),
        sa.Column("reconciliation_date", sa.Date(), nullable=False),
        sa.Column("load_weight", sa.Numeric(10, 2), nullable=False),
        sa.Column("sold_weight", sa.Numeric(10, 2), nullable=False),
        sa.Column("wastage_weight", sa.Numeric(10, 2), nullable=False),
        sa.Column("wastage_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["truck_id"], ["trucks.id"]),
    )
    op.create_index(
        "ix_daily_reconciliations_truck_date",
        "daily_reconciliations",
        ["truck_id", "reconciliation_date"],
        unique=True,
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("table_name", sa.String(50), nullable=False),
        sa.Column("operation", sa.String(20), nullable=False),
        sa.Column("old_values", sa.Text(), nullable=True),
        sa.Column("new_values", sa.Text(), nullable=True),
        sa.Column("user_id", sa.String(50), nullable=False),
        sa.Column("created_date", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp()),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_index("ix_daily_reconciliations_truck_date", table_name="daily_reconciliations")
    op.drop_table("daily_reconciliations")
