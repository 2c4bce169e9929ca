from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Date, DateTime, Float, ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from fuelsymphony.db import Base, new_id, utcnow

# text[] on the hosted Postgres, JSON elsewhere (SQLite in tests).
StringList = JSON().with_variant(ARRAY(Text), "postgresql")
JsonDocument = JSON().with_variant(JSONB(), "postgresql")
Money = Numeric(12, 2, asdecimal=False)
CalendarDate = date


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


class Station(TimestampMixin, Base):
    __tablename__ = "stations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True, default="")
    city: Mapped[str | None] = mapped_column(String(120), nullable=True, default="")
    state: Mapped[str | None] = mapped_column(String(120), nullable=True, default="")
    zip: Mapped[str | None] = mapped_column(String(20), nullable=True, default="")
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True, default="")
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")


class Profile(TimestampMixin, Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(40), nullable=False)
    station_id: Mapped[str | None] = mapped_column(ForeignKey("stations.id"), nullable=True, index=True)
    hourly_rate: Mapped[float | None] = mapped_column(Money, nullable=True)
    contact_number: Mapped[str | None] = mapped_column(String(40), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")


class Dispenser(TimestampMixin, Base):
    __tablename__ = "dispensers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    station_id: Mapped[str] = mapped_column(ForeignKey("stations.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    fuel_types: Mapped[list[str]] = mapped_column(StringList, nullable=False, default=list)


class FuelInventory(TimestampMixin, Base):
    __tablename__ = "fuel_inventory"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    station_id: Mapped[str] = mapped_column(ForeignKey("stations.id"), nullable=False, index=True)
    fuel_type: Mapped[str] = mapped_column(String(40), nullable=False)
    current_stock: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    capacity: Mapped[float] = mapped_column(Float, nullable=False)
    alert_threshold: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    price_per_liter: Mapped[float] = mapped_column(Money, nullable=False)
    cost_per_liter: Mapped[float] = mapped_column(Money, nullable=False)


class Product(TimestampMixin, Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    station_id: Mapped[str] = mapped_column(ForeignKey("stations.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(40), nullable=False)
    current_stock: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    alert_threshold: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    price: Mapped[float] = mapped_column(Money, nullable=False)
    cost: Mapped[float] = mapped_column(Money, nullable=False)


class Shift(TimestampMixin, Base):
    __tablename__ = "shifts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    station_id: Mapped[str] = mapped_column(ForeignKey("stations.id"), nullable=False, index=True)
    employee_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    dispensers: Mapped[list[str]] = mapped_column(StringList, nullable=False, default=list)
    starting_cash: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    ending_cash: Mapped[float | None] = mapped_column(Money, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")


class MeterReading(TimestampMixin, Base):
    __tablename__ = "meter_readings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    shift_id: Mapped[str] = mapped_column(ForeignKey("shifts.id"), nullable=False, index=True)
    dispenser_id: Mapped[str] = mapped_column(ForeignKey("dispensers.id"), nullable=False)
    fuel_type: Mapped[str] = mapped_column(String(40), nullable=False)
    start_reading: Mapped[float] = mapped_column(Float, nullable=False)
    end_reading: Mapped[float | None] = mapped_column(Float, nullable=True)


class Transaction(TimestampMixin, Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    station_id: Mapped[str] = mapped_column(ForeignKey("stations.id"), nullable=False, index=True)
    shift_id: Mapped[str] = mapped_column(ForeignKey("shifts.id"), nullable=False)
    customer_id: Mapped[str | None] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(40), nullable=False)
    total_amount: Mapped[float] = mapped_column(Money, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="completed")


class TransactionItem(TimestampMixin, Base):
    __tablename__ = "transaction_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    transaction_id: Mapped[str] = mapped_column(ForeignKey("transactions.id"), nullable=False, index=True)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    item_id: Mapped[str] = mapped_column(String(36), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit_price: Mapped[float] = mapped_column(Money, nullable=False)
    total_price: Mapped[float] = mapped_column(Money, nullable=False)


class Vehicle(TimestampMixin, Base):
    __tablename__ = "vehicles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    customer_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    make: Mapped[str] = mapped_column(String(80), nullable=False)
    model: Mapped[str] = mapped_column(String(80), nullable=False)
    year: Mapped[str] = mapped_column(String(4), nullable=False)
    license_plate: Mapped[str] = mapped_column(String(20), nullable=False)
    fuel_type: Mapped[str] = mapped_column(String(40), nullable=False)


class Invoice(TimestampMixin, Base):
    __tablename__ = "invoices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    customer_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    station_id: Mapped[str] = mapped_column(ForeignKey("stations.id"), nullable=False, index=True)
    invoice_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_amount: Mapped[float] = mapped_column(Money, nullable=False)
    discount: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    tax: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="unpaid")


class InvoiceItem(TimestampMixin, Base):
    __tablename__ = "invoice_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    invoice_id: Mapped[str] = mapped_column(ForeignKey("invoices.id"), nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit_price: Mapped[float] = mapped_column(Money, nullable=False)
    total_price: Mapped[float] = mapped_column(Money, nullable=False)


class Expense(TimestampMixin, Base):
    __tablename__ = "expenses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    station_id: Mapped[str] = mapped_column(ForeignKey("stations.id"), nullable=False, index=True)
    expense_type: Mapped[str] = mapped_column(String(40), nullable=False)
    amount: Mapped[float] = mapped_column(Money, nullable=False)
    date: Mapped[CalendarDate] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True, default="")


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(40), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JsonDocument, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
