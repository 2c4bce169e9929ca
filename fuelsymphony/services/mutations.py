from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from fuelsymphony.audit import log_activity
from fuelsymphony.db import utcnow
from fuelsymphony.errors import BackendError
from fuelsymphony.schemas import (
    Dispenser,
    DispenserWrite,
    Expense,
    ExpenseWrite,
    FuelInventory,
    FuelInventoryWrite,
    Invoice,
    InvoiceStatus,
    InvoiceWrite,
    MeterReading,
    MeterReadingClose,
    MeterReadingOpen,
    Product,
    ProductWrite,
    Profile,
    ProfileWrite,
    Shift,
    ShiftEndRequest,
    ShiftStartRequest,
    Station,
    StationWrite,
    Transaction,
    TransactionWrite,
    Vehicle,
    VehicleWrite,
)
from fuelsymphony.security import parse_role
from fuelsymphony.services.backend import BackendClient, Query, QueryResult, table
from fuelsymphony.services.notifications import Notifier

logger = logging.getLogger("fuelsymphony.mutations")

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class MutationContext:
    client: BackendClient
    notifier: Notifier
    actor_id: str
    request_id: str | None = None


def _entity_type(model: type[BaseModel]) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", model.__name__).lower()


def line_total(quantity: float, unit_price: float) -> float:
    return round(quantity * unit_price, 2)


async def _settle(pending: Awaitable[QueryResult[Any]]) -> QueryResult[Any]:
    try:
        return await pending
    except BackendError as exc:
        return QueryResult.failure(str(exc) or exc.__class__.__name__)


def _parse(model: type[T], row: Any) -> QueryResult[T]:
    try:
        return QueryResult.success(TypeAdapter(model).validate_python(row))
    except ValidationError as exc:
        logger.warning(
            "mutation_record_invalid",
            extra={"entity_type": _entity_type(model), "error_count": exc.error_count()},
        )
        return QueryResult.failure(f"Malformed {model.__name__} record")


def _reject(ctx: MutationContext, failure: str, message: str) -> QueryResult[Any]:
    ctx.notifier.error(f"{failure}: {message}")
    return QueryResult.failure(message)


async def _write_one(
    ctx: MutationContext,
    pending: Awaitable[QueryResult[Any]],
    model: type[T],
    *,
    success: str,
    failure: str,
    action: str,
    details: dict[str, Any] | None = None,
) -> QueryResult[T]:
    result = await _settle(pending)
    if not result.ok:
        return _reject(ctx, failure, result.error or "")
    if not result.data:
        return _reject(ctx, failure, f"{model.__name__} not found")

    parsed = _parse(model, result.data[0])
    if not parsed.ok or parsed.data is None:
        return _reject(ctx, failure, parsed.error or "")
    record = parsed.data
    ctx.notifier.success(success)
    await log_activity(
        ctx.client,
        actor_id=ctx.actor_id,
        action=action,
        entity_type=_entity_type(model),
        entity_id=str(getattr(record, "id")),
        details=details,
        request_id=ctx.request_id,
    )
    return QueryResult.success(record)


async def _delete_one(
    ctx: MutationContext,
    table_name: str,
    entity_id: str,
    *,
    entity_type: str,
    success: str,
    failure: str,
    action: str,
) -> QueryResult[None]:
    result = await _settle(ctx.client.delete(table(table_name).eq("id", entity_id)))
    if not result.ok:
        return _reject(ctx, failure, result.error or "")
    ctx.notifier.success(success)
    await log_activity(
        ctx.client,
        actor_id=ctx.actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        request_id=ctx.request_id,
    )
    return QueryResult.success(None)


async def _read_one(ctx: MutationContext, query: Query, model: type[T]) -> QueryResult[T]:
    result = await _settle(ctx.client.execute(query.single()))
    if not result.ok:
        return QueryResult.failure(result.error or "")
    return _parse(model, result.data)


# Stations


async def create_station(ctx: MutationContext, payload: StationWrite) -> QueryResult[Station]:
    return await _write_one(
        ctx,
        ctx.client.insert("stations", payload.model_dump()),
        Station,
        success="Station created successfully",
        failure="Failed to create station",
        action="STATION_CREATE",
    )


async def update_station(ctx: MutationContext, station_id: str, payload: StationWrite) -> QueryResult[Station]:
    return await _write_one(
        ctx,
        ctx.client.update(table("stations").eq("id", station_id), payload.model_dump()),
        Station,
        success="Station updated successfully",
        failure="Failed to update station",
        action="STATION_UPDATE",
    )


async def delete_station(ctx: MutationContext, station_id: str) -> QueryResult[None]:
    return await _delete_one(
        ctx,
        "stations",
        station_id,
        entity_type="station",
        success="Station deleted successfully",
        failure="Failed to delete station",
        action="STATION_DELETE",
    )


# Profiles


async def create_profile(ctx: MutationContext, payload: ProfileWrite) -> QueryResult[Profile]:
    if parse_role(payload.role) is None:
        return _reject(ctx, "Failed to create profile", f"Unrecognized role: {payload.role}")
    return await _write_one(
        ctx,
        ctx.client.insert("profiles", payload.model_dump()),
        Profile,
        success="Profile created successfully",
        failure="Failed to create profile",
        action="PROFILE_CREATE",
        details={"role": payload.role},
    )


async def update_profile(ctx: MutationContext, profile_id: str, payload: ProfileWrite) -> QueryResult[Profile]:
    if parse_role(payload.role) is None:
        return _reject(ctx, "Failed to update profile", f"Unrecognized role: {payload.role}")
    return await _write_one(
        ctx,
        ctx.client.update(table("profiles").eq("id", profile_id), payload.model_dump()),
        Profile,
        success="Profile updated successfully",
        failure="Failed to update profile",
        action="PROFILE_UPDATE",
        details={"role": payload.role},
    )


async def update_profile_status(ctx: MutationContext, profile_id: str, status: str) -> QueryResult[Profile]:
    return await _write_one(
        ctx,
        ctx.client.update(table("profiles").eq("id", profile_id), {"status": status}),
        Profile,
        success="User status updated successfully",
        failure="Failed to update user status",
        action="PROFILE_STATUS_UPDATE",
        details={"status": status},
    )


# Dispensers


async def create_dispenser(ctx: MutationContext, payload: DispenserWrite) -> QueryResult[Dispenser]:
    return await _write_one(
        ctx,
        ctx.client.insert("dispensers", payload.model_dump()),
        Dispenser,
        success="Dispenser created successfully",
        failure="Failed to create dispenser",
        action="DISPENSER_CREATE",
    )


async def update_dispenser(ctx: MutationContext, dispenser_id: str, payload: DispenserWrite) -> QueryResult[Dispenser]:
    return await _write_one(
        ctx,
        ctx.client.update(table("dispensers").eq("id", dispenser_id), payload.model_dump()),
        Dispenser,
        success="Dispenser updated successfully",
        failure="Failed to update dispenser",
        action="DISPENSER_UPDATE",
    )


async def delete_dispenser(ctx: MutationContext, dispenser_id: str) -> QueryResult[None]:
    return await _delete_one(
        ctx,
        "dispensers",
        dispenser_id,
        entity_type="dispenser",
        success="Dispenser deleted successfully",
        failure="Failed to delete dispenser",
        action="DISPENSER_DELETE",
    )


# Inventory


async def create_product(ctx: MutationContext, payload: ProductWrite) -> QueryResult[Product]:
    return await _write_one(
        ctx,
        ctx.client.insert("products", payload.model_dump()),
        Product,
        success="Product created successfully",
        failure="Failed to create product",
        action="PRODUCT_CREATE",
    )


async def restock_fuel(ctx: MutationContext, inventory_id: str, amount: float) -> QueryResult[FuelInventory]:
    failure = "Failed to restock fuel"
    current = await _read_one(ctx, table("fuel_inventory").eq("id", inventory_id), FuelInventory)
    if not current.ok or current.data is None:
        return _reject(ctx, failure, current.error or "FuelInventory not found")
    new_stock = current.data.current_stock + amount
    if new_stock > current.data.capacity:
        return _reject(ctx, failure, f"Restock would exceed tank capacity of {current.data.capacity:g} L")
    return await _write_one(
        ctx,
        ctx.client.update(
            table("fuel_inventory").eq("id", inventory_id),
            {"current_stock": new_stock, "updated_at": utcnow()},
        ),
        FuelInventory,
        success="Fuel restocked successfully",
        failure=failure,
        action="FUEL_RESTOCK",
        details={"amount": amount, "previous_stock": current.data.current_stock},
    )


async def restock_product(ctx: MutationContext, product_id: str, amount: float) -> QueryResult[Product]:
    failure = "Failed to restock product"
    current = await _read_one(ctx, table("products").eq("id", product_id), Product)
    if not current.ok or current.data is None:
        return _reject(ctx, failure, current.error or "Product not found")
    new_stock = current.data.current_stock + amount
    return await _write_one(
        ctx,
        ctx.client.update(
            table("products").eq("id", product_id),
            {"current_stock": new_stock, "updated_at": utcnow()},
        ),
        Product,
        success="Product restocked successfully",
        failure=failure,
        action="PRODUCT_RESTOCK",
        details={"amount": amount, "previous_stock": current.data.current_stock},
    )


async def create_fuel_inventory(ctx: MutationContext, payload: FuelInventoryWrite) -> QueryResult[FuelInventory]:
    failure = "Failed to add fuel inventory"
    existing = await _settle(
        ctx.client.execute(
            table("fuel_inventory").eq("station_id", payload.station_id).eq("fuel_type", payload.fuel_type).count()
        )
    )
    if not existing.ok:
        return _reject(ctx, failure, existing.error or "")
    if existing.count:
        return _reject(ctx, failure, f"{payload.fuel_type} already exists in your inventory")
    return await _write_one(
        ctx,
        ctx.client.insert("fuel_inventory", payload.model_dump()),
        FuelInventory,
        success="Fuel inventory added successfully",
        failure=failure,
        action="FUEL_INVENTORY_CREATE",
        details={"fuel_type": payload.fuel_type},
    )


async def update_fuel_inventory(
    ctx: MutationContext,
    inventory_id: str,
    payload: FuelInventoryWrite,
) -> QueryResult[FuelInventory]:
    return await _write_one(
        ctx,
        ctx.client.update(
            table("fuel_inventory").eq("id", inventory_id),
            {**payload.model_dump(), "updated_at": utcnow()},
        ),
        FuelInventory,
        success="Fuel inventory updated successfully",
        failure="Failed to update fuel inventory",
        action="FUEL_INVENTORY_UPDATE",
    )


# Shifts


async def start_shift(ctx: MutationContext, payload: ShiftStartRequest) -> QueryResult[Shift]:
    values = payload.model_dump()
    values.update({"start_time": utcnow(), "end_time": None, "ending_cash": None, "status": "active"})
    return await _write_one(
        ctx,
        ctx.client.insert("shifts", values),
        Shift,
        success="Shift started successfully",
        failure="Failed to start shift",
        action="SHIFT_START",
        details={"dispensers": payload.dispensers},
    )


async def _close_shift(
    ctx: MutationContext,
    shift_id: str,
    values: dict[str, Any],
    *,
    success: str,
    failure: str,
    action: str,
) -> QueryResult[Shift]:
    current = await _read_one(ctx, table("shifts").eq("id", shift_id), Shift)
    if not current.ok or current.data is None:
        return _reject(ctx, failure, current.error or "Shift not found")
    if current.data.status != "active":
        return _reject(ctx, failure, f"Shift is {current.data.status}, only active shifts can be closed")
    # The status filter keeps a concurrent close from being overwritten.
    query = table("shifts").eq("id", shift_id).eq("status", "active")
    return await _write_one(
        ctx,
        ctx.client.update(query, values),
        Shift,
        success=success,
        failure=failure,
        action=action,
    )


async def end_shift(ctx: MutationContext, shift_id: str, payload: ShiftEndRequest) -> QueryResult[Shift]:
    values: dict[str, Any] = {
        "end_time": utcnow(),
        "ending_cash": payload.ending_cash,
        "status": "completed",
    }
    if payload.notes is not None:
        values["notes"] = payload.notes
    return await _close_shift(
        ctx,
        shift_id,
        values,
        success="Shift ended successfully",
        failure="Failed to end shift",
        action="SHIFT_END",
    )


async def cancel_shift(ctx: MutationContext, shift_id: str) -> QueryResult[Shift]:
    return await _close_shift(
        ctx,
        shift_id,
        {"end_time": utcnow(), "status": "cancelled"},
        success="Shift cancelled",
        failure="Failed to cancel shift",
        action="SHIFT_CANCEL",
    )


async def open_meter_reading(
    ctx: MutationContext,
    shift_id: str,
    payload: MeterReadingOpen,
) -> QueryResult[MeterReading]:
    values = payload.model_dump()
    values.update({"shift_id": shift_id, "end_reading": None})
    return await _write_one(
        ctx,
        ctx.client.insert("meter_readings", values),
        MeterReading,
        success="Meter reading recorded",
        failure="Failed to record meter reading",
        action="METER_READING_OPEN",
    )


async def close_meter_reading(
    ctx: MutationContext,
    reading_id: str,
    payload: MeterReadingClose,
) -> QueryResult[MeterReading]:
    failure = "Failed to close meter reading"
    current = await _read_one(ctx, table("meter_readings").eq("id", reading_id), MeterReading)
    if not current.ok or current.data is None:
        return _reject(ctx, failure, current.error or "MeterReading not found")
    if payload.end_reading < current.data.start_reading:
        return _reject(ctx, failure, "End reading cannot be lower than the start reading")
    return await _write_one(
        ctx,
        ctx.client.update(table("meter_readings").eq("id", reading_id), {"end_reading": payload.end_reading}),
        MeterReading,
        success="Meter reading closed",
        failure=failure,
        action="METER_READING_CLOSE",
        details={"litres": payload.end_reading - current.data.start_reading},
    )


# Sales and billing


async def create_vehicle(ctx: MutationContext, payload: VehicleWrite) -> QueryResult[Vehicle]:
    return await _write_one(
        ctx,
        ctx.client.insert("vehicles", payload.model_dump()),
        Vehicle,
        success="Vehicle added successfully",
        failure="Failed to add vehicle",
        action="VEHICLE_CREATE",
    )


async def delete_vehicle(ctx: MutationContext, vehicle_id: str) -> QueryResult[None]:
    return await _delete_one(
        ctx,
        "vehicles",
        vehicle_id,
        entity_type="vehicle",
        success="Vehicle removed successfully",
        failure="Failed to remove vehicle",
        action="VEHICLE_DELETE",
    )


async def create_transaction(ctx: MutationContext, payload: TransactionWrite) -> QueryResult[Transaction]:
    items = [
        {**item.model_dump(), "total_price": line_total(item.quantity, item.unit_price)}
        for item in payload.items
    ]
    header = payload.model_dump(exclude={"items"})
    header.update({"total_amount": round(sum(item["total_price"] for item in items), 2), "status": "completed"})

    result = await _write_one(
        ctx,
        ctx.client.insert("transactions", header),
        Transaction,
        success="Transaction created successfully",
        failure="Failed to create transaction",
        action="TRANSACTION_CREATE",
        details={"items": len(items)},
    )
    if not result.ok or result.data is None:
        return result

    # Not transactional: a failed line insert leaves the header in place.
    lines = await _settle(
        ctx.client.insert("transaction_items", [{**item, "transaction_id": result.data.id} for item in items])
    )
    if not lines.ok:
        return _reject(ctx, "Failed to save transaction items", lines.error or "")
    return result


async def create_invoice(ctx: MutationContext, payload: InvoiceWrite) -> QueryResult[Invoice]:
    if payload.due_date < payload.issue_date:
        return _reject(ctx, "Failed to create invoice", "Due date cannot be before the issue date")
    items = [
        {**item.model_dump(), "total_price": line_total(item.quantity, item.unit_price)}
        for item in payload.items
    ]
    subtotal = sum(item["total_price"] for item in items)
    header = payload.model_dump(exclude={"items"})
    header.update(
        {
            "total_amount": round(subtotal - payload.discount + payload.tax, 2),
            "status": "unpaid",
        }
    )

    result = await _write_one(
        ctx,
        ctx.client.insert("invoices", header),
        Invoice,
        success="Invoice created successfully",
        failure="Failed to create invoice",
        action="INVOICE_CREATE",
        details={"invoice_number": payload.invoice_number},
    )
    if not result.ok or result.data is None:
        return result

    lines = await _settle(
        ctx.client.insert("invoice_items", [{**item, "invoice_id": result.data.id} for item in items])
    )
    if not lines.ok:
        return _reject(ctx, "Failed to save invoice items", lines.error or "")
    return result


async def update_invoice_status(ctx: MutationContext, invoice_id: str, status: InvoiceStatus) -> QueryResult[Invoice]:
    return await _write_one(
        ctx,
        ctx.client.update(table("invoices").eq("id", invoice_id), {"status": status}),
        Invoice,
        success="Invoice status updated",
        failure="Failed to update invoice status",
        action="INVOICE_STATUS_UPDATE",
        details={"status": status},
    )


# Expenses


async def create_expense(ctx: MutationContext, payload: ExpenseWrite) -> QueryResult[Expense]:
    return await _write_one(
        ctx,
        ctx.client.insert("expenses", payload.model_dump()),
        Expense,
        success="Expense added successfully",
        failure="Failed to add expense",
        action="EXPENSE_CREATE",
        details={"expense_type": payload.expense_type, "amount": payload.amount},
    )


async def update_expense(ctx: MutationContext, expense_id: str, payload: ExpenseWrite) -> QueryResult[Expense]:
    return await _write_one(
        ctx,
        ctx.client.update(
            table("expenses").eq("id", expense_id),
            {**payload.model_dump(), "updated_at": utcnow()},
        ),
        Expense,
        success="Expense updated successfully",
        failure="Failed to update expense",
        action="EXPENSE_UPDATE",
        details={"expense_type": payload.expense_type, "amount": payload.amount},
    )
