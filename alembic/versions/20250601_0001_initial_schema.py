"""Initial schema: trucks, customers, truck loads, invoices, payments.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-06-01
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp()),
    ]


def upgrade() -> None:
    """Create the sales tables."""

    # =========================================================================
    # Table: trucks
    # =========================================================================
    op.create_table(
        "trucks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("truck_number", sa.String(50), nullable=False),
        sa.Column("driver_name", sa.String(100), nullable=False),
        sa.Column("driver_phone", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("truck_number"),
    )

    # =========================================================================
    # Table: customers
    # =========================================================================
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("customer_name", sa.String(100), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("address", sa.String(200), nullable=True),
        sa.Column("total_debt", sa.Numeric(18, 2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_customers_customer_name", "customers", ["customer_name"])

    # =========================================================================
    # Table: truck_loads
    # =========================================================================
    op.create_table(
        "truck_loads",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("truck_id", sa.Integer(), nullable=False),
        sa.Column("load_date", sa.Date(), nullable=False),
        sa.Column("total_weight", sa.Numeric(10, 2), nullable=False),
        sa.Column("cages_count", sa.Integer(), nullable=False),
        sa.Column("weight_per_cage", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["truck_id"], ["trucks.id"]),
    )
    op.create_index("ix_truck_loads_truck_date", "truck_loads", ["truck_id", "load_date"])

    # =========================================================================
    # Table: invoices
    # =========================================================================
    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("invoice_number", sa.String(20), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("truck_id", sa.Integer(), nullable=False),
        sa.Column("invoice_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("gross_weight", sa.Numeric(10, 2), nullable=False),
        sa.Column("cages_weight", sa.Numeric(10, 2), nullable=False),
        sa.Column("cages_count", sa.Integer(), nullable=False),
        sa.Column("net_weight", sa.Numeric(10, 2), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("final_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("previous_balance", sa.Numeric(18, 2), nullable=False),
        sa.Column("current_balance", sa.Numeric(18, 2), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["truck_id"], ["trucks.id"]),
    )

    # =========================================================================
    # Table: payments
    # =========================================================================
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.Integer(), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
    )


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_table("invoices")
    op.drop_index("ix_truck_loads_truck_date", table_name="truck_loads")
    op.drop_table("truck_loads")
    op.drop_index("ix_customers_customer_name", table_name="customers")
    op.drop_table("customers")
    op.drop_table("trucks")
