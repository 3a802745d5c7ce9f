"""SQLAlchemy ORM models for the poultry POS application.

The schema here must match the Alembic migration head: a fresh database is
created from this metadata and stamped at head.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base


class TimestampMixin:
    """Adds created_at and updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.current_timestamp()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        onupdate=func.current_timestamp(),
    )


class Truck(TimestampMixin, Base):
    """A delivery truck bringing live birds to the slaughterhouse."""

    __tablename__ = "trucks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    truck_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    driver_name: Mapped[str] = mapped_column(String(100), nullable=False)
    driver_phone: Mapped[Optional[str]] = mapped_column(String(20))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    loads: Mapped[list["TruckLoad"]] = relationship(back_populates="truck")


class Customer(TimestampMixin, Base):
    """A buyer of processed poultry."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(20))
    address: Mapped[Optional[str]] = mapped_column(String(200))
    total_debt: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    invoices: Mapped[list["Invoice"]] = relationship(back_populates="customer")
    payments: Mapped[list["Payment"]] = relationship(back_populates="customer")


class TruckLoad(TimestampMixin, Base):
    """Weighed load delivered by a truck on a given day."""

    __tablename__ = "truck_loads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    truck_id: Mapped[int] = mapped_column(ForeignKey("trucks.id"), nullable=False)
    load_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_weight: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    cages_count: Mapped[int] = mapped_column(Integer, nullable=False)
    weight_per_cage: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="LOADED", nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    truck: Mapped[Truck] = relationship(back_populates="loads")

    __table_args__ = (Index("ix_truck_loads_truck_date", "truck_id", "load_date"),)


class Invoice(TimestampMixin, Base):
    """Sale of weighed poultry to a customer."""

    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    truck_id: Mapped[int] = mapped_column(ForeignKey("trucks.id"), nullable=False)
    invoice_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    gross_weight: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    cages_weight: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    cages_count: Mapped[int] = mapped_column(Integer, nullable=False)
    net_weight: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    discount_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0, nullable=False)
    final_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    previous_balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=0, nullable=False)
    current_balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=0, nullable=False)

    customer: Mapped[Customer] = relationship(back_populates="invoices")


class Payment(TimestampMixin, Base):
    """Money received from a customer against their debt."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    invoice_id: Mapped[Optional[int]] = mapped_column(ForeignKey("invoices.id"))
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), default="CASH", nullable=False)
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    customer: Mapped[Customer] = relationship(back_populates="payments")


class DailyReconciliation(TimestampMixin, Base):
    """End-of-day comparison of loaded weight against sold weight per truck."""

    __tablename__ = "daily_reconciliations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    truck_id: Mapped[int] = mapped_column(ForeignKey("trucks.id"), nullable=False)
    reconciliation_date: Mapped[date] = mapped_column(Date, nullable=False)
    load_weight: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    sold_weight: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    wastage_weight: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    wastage_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="PENDING", nullable=False)

    __table_args__ = (
        Index("ix_daily_reconciliations_truck_date", "truck_id", "reconciliation_date", unique=True),
    )


class AuditLog(Base):
    """Append-only record of data changes."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(String(50), nullable=False)
    operation: Mapped[str] = mapped_column(String(20), nullable=False)
    old_values: Mapped[Optional[str]] = mapped_column(Text)
    new_values: Mapped[Optional[str]] = mapped_column(Text)
    user_id: Mapped[str] = mapped_column(String(50), nullable=False)
    created_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.current_timestamp()
    )


__all__ = [
    "Truck",
    "Customer",
    "TruckLoad",
    "Invoice",
    "Payment",
    "DailyReconciliation",
    "AuditLog",
]
