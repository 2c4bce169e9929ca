from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, computed_field, field_validator, model_validator

from fuelsymphony.constants import EXPENSE_TYPES, FUEL_TYPES, PAYMENT_METHODS, PRODUCT_CATEGORIES, normalize_choice

EntityStatus = Literal["active", "inactive", "pending"]
DispenserStatus = Literal["active", "inactive", "maintenance"]
ShiftStatus = Literal["active", "completed", "cancelled"]
TransactionType = Literal["sale", "refund", "credit"]
TransactionStatus = Literal["completed", "pending", "cancelled"]
ItemType = Literal["fuel", "product"]
InvoiceStatus = Literal["paid", "unpaid", "overdue", "partially_paid"]
CalendarDate = date


def _blank_if_null(value: Any) -> Any:
    return "" if value is None else value


# Nullable text columns are read back as "".
NullableText = Annotated[str, BeforeValidator(_blank_if_null)]


class Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")


class Station(Record):
    id: str
    name: str
    address: NullableText = ""
    city: NullableText = ""
    state: NullableText = ""
    zip: NullableText = ""
    phone: NullableText = ""
    email: NullableText = ""
    status: EntityStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Profile(Record):
    id: str
    user_id: str | None = None
    full_name: NullableText = ""
    role: str
    station_id: str | None = None
    hourly_rate: float | None = None
    contact_number: str | None = None
    email: str | None = None
    address: str | None = None
    status: EntityStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Dispenser(Record):
    id: str
    station_id: str
    name: str
    status: DispenserStatus
    fuel_types: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class FuelInventory(Record):
    id: str
    station_id: str
    fuel_type: str
    current_stock: float
    capacity: float
    alert_threshold: float
    price_per_liter: float
    cost_per_liter: float
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_low(self) -> bool:
        return self.current_stock <= self.alert_threshold


class Product(Record):
    id: str
    station_id: str
    name: str
    category: str
    current_stock: float
    alert_threshold: float
    price: float
    cost: float
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Shift(Record):
    id: str
    station_id: str
    employee_id: str
    start_time: datetime
    end_time: datetime | None = None
    dispensers: list[str] = Field(default_factory=list)
    starting_cash: float
    ending_cash: float | None = None
    notes: NullableText = ""
    status: ShiftStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MeterReading(Record):
    id: str
    shift_id: str
    dispenser_id: str
    fuel_type: str
    start_reading: float
    end_reading: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Transaction(Record):
    id: str
    station_id: str
    shift_id: str
    customer_id: str | None = None
    transaction_type: TransactionType
    payment_method: str
    total_amount: float
    status: TransactionStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TransactionItem(Record):
    id: str
    transaction_id: str
    item_type: ItemType
    item_id: str
    quantity: float
    unit_price: float
    total_price: float
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Vehicle(Record):
    id: str
    customer_id: str
    make: str
    model: str
    year: str
    license_plate: str
    fuel_type: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Invoice(Record):
    id: str
    customer_id: str
    station_id: str
    invoice_number: str
    issue_date: date
    due_date: date
    total_amount: float
    discount: float = 0
    tax: float = 0
    status: InvoiceStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None


class InvoiceItem(Record):
    id: str
    invoice_id: str
    description: str
    quantity: float
    unit_price: float
    total_price: float
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Expense(Record):
    id: str
    station_id: str
    expense_type: str
    amount: float
    date: CalendarDate
    description: NullableText = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ActivityLog(Record):
    id: str
    user_id: str
    action: str
    entity_type: str
    entity_id: str
    details: dict[str, Any] | None = None
    created_at: datetime | None = None


# Write payloads


class StationWrite(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    phone: str = ""
    email: str = ""
    status: EntityStatus = "active"


class ProfileWrite(BaseModel):
    user_id: str = Field(min_length=1)
    full_name: str = Field(min_length=2, max_length=255)
    role: str
    station_id: str | None = None
    hourly_rate: float | None = Field(default=None, ge=0)
    contact_number: str | None = None
    email: str | None = None
    address: str | None = None
    status: EntityStatus = "active"


class ProfileStatusUpdate(BaseModel):
    status: EntityStatus


class DispenserWrite(BaseModel):
    station_id: str
    name: str = Field(min_length=1, max_length=120)
    status: DispenserStatus = "active"
    fuel_types: list[str] = Field(default_factory=list)

    @field_validator("fuel_types")
    @classmethod
    def _known_fuel_types(cls, value: list[str]) -> list[str]:
        return [normalize_choice(FUEL_TYPES, item) for item in value]


class ProductWrite(BaseModel):
    station_id: str
    name: str = Field(min_length=1, max_length=255)
    category: str
    current_stock: float = Field(default=0, ge=0)
    alert_threshold: float = Field(default=0, ge=0)
    price: float = Field(ge=0)
    cost: float = Field(ge=0)

    @field_validator("category")
    @classmethod
    def _known_category(cls, value: str) -> str:
        return normalize_choice(PRODUCT_CATEGORIES, value)


class FuelInventoryWrite(BaseModel):
    station_id: str
    fuel_type: str
    current_stock: float = Field(ge=0)
    capacity: float = Field(ge=1)
    alert_threshold: float = Field(ge=1)
    price_per_liter: float = Field(ge=0.01)
    cost_per_liter: float = Field(ge=0.01)

    @field_validator("fuel_type")
    @classmethod
    def _known_fuel_type(cls, value: str) -> str:
        return normalize_choice(FUEL_TYPES, value)

    @model_validator(mode="after")
    def _within_capacity(self) -> "FuelInventoryWrite":
        if self.current_stock > self.capacity:
            raise ValueError("Current stock cannot exceed capacity")
        if self.alert_threshold > self.capacity:
            raise ValueError("Alert threshold cannot exceed capacity")
        return self


class RestockRequest(BaseModel):
    amount: float = Field(gt=0)


class ShiftStartRequest(BaseModel):
    station_id: str
    employee_id: str
    dispensers: list[str] = Field(default_factory=list)
    starting_cash: float = Field(default=0, ge=0)
    notes: str = ""


class ShiftEndRequest(BaseModel):
    ending_cash: float = Field(ge=0)
    notes: str | None = None


class MeterReadingOpen(BaseModel):
    dispenser_id: str
    fuel_type: str
    start_reading: float = Field(ge=0)

    @field_validator("fuel_type")
    @classmethod
    def _known_fuel_type(cls, value: str) -> str:
        return normalize_choice(FUEL_TYPES, value)


class MeterReadingClose(BaseModel):
    end_reading: float = Field(ge=0)


class VehicleWrite(BaseModel):
    customer_id: str
    make: str = Field(min_length=1)
    model: str = Field(min_length=1)
    year: str = Field(pattern=r"^\d{4}$")
    license_plate: str = Field(min_length=1, max_length=20)
    fuel_type: str

    @field_validator("fuel_type")
    @classmethod
    def _known_fuel_type(cls, value: str) -> str:
        return normalize_choice(FUEL_TYPES, value)


class LineItemWrite(BaseModel):
    item_type: ItemType
    item_id: str
    quantity: float = Field(gt=0)
    unit_price: float = Field(ge=0)


class TransactionWrite(BaseModel):
    station_id: str
    shift_id: str
    customer_id: str | None = None
    transaction_type: TransactionType = "sale"
    payment_method: str = "cash"
    items: list[LineItemWrite] = Field(min_length=1)

    @field_validator("payment_method")
    @classmethod
    def _known_payment_method(cls, value: str) -> str:
        return normalize_choice(PAYMENT_METHODS, value)


class InvoiceLineWrite(BaseModel):
    description: str = Field(min_length=1)
    quantity: float = Field(gt=0)
    unit_price: float = Field(ge=0)


class InvoiceWrite(BaseModel):
    customer_id: str
    station_id: str
    invoice_number: str = Field(min_length=1, max_length=40)
    issue_date: date
    due_date: date
    discount: float = Field(default=0, ge=0)
    tax: float = Field(default=0, ge=0)
    items: list[InvoiceLineWrite] = Field(min_length=1)


class ExpenseWrite(BaseModel):
    station_id: str
    expense_type: str
    amount: float = Field(ge=0.01)
    date: CalendarDate
    description: str = ""

    @field_validator("expense_type")
    @classmethod
    def _known_expense_type(cls, value: str) -> str:
        return normalize_choice(EXPENSE_TYPES, value)


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


# Session and layout


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1)


class NavigationItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    path: str
    icon: str


class SessionUser(BaseModel):
    profile_id: str
    user_id: str
    full_name: str
    role: str
    station_id: str | None = None


class AuthResponse(BaseModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_in: int
    user: SessionUser
    navigation: list[NavigationItem]
    role_description: str


class ConnectionStatus(BaseModel):
    state: Literal["checking", "ready"]
    error: str | None = None


class Notification(BaseModel):
    level: Literal["success", "error", "warning", "info"]
    message: str


class LayoutShell(BaseModel):
    user: SessionUser
    navigation: list[NavigationItem]
    role_description: str
    connection: ConnectionStatus


class HookStateRead(BaseModel):
    data: Any = None
    loading: bool = False
    error: str | None = None


class PageResponse(BaseModel):
    page: str
    layout: LayoutShell
    data: dict[str, HookStateRead] = Field(default_factory=dict)
    notifications: list[Notification] = Field(default_factory=list)


class MutationResponse(BaseModel):
    success: bool
    data: Any = None
    error: str | None = None
    notifications: list[Notification] = Field(default_factory=list)


class ProvisionedUser(BaseModel):
    email: str
    password: str
    role: str


class ProvisioningResult(BaseModel):
    success: bool
    message: str | None = None
    users: list[ProvisionedUser] = Field(default_factory=list)
