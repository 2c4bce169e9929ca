from __future__ import annotations

from datetime import date
from typing import Any, TypeVar

from pydantic import TypeAdapter

from fuelsymphony.schemas import (
    ActivityLog,
    Dispenser,
    Expense,
    FuelInventory,
    Invoice,
    MeterReading,
    Product,
    Profile,
    Shift,
    Station,
    Vehicle,
)
from fuelsymphony.security import UserRole
from fuelsymphony.services.backend import BackendClient, Query, QueryResult, table
from fuelsymphony.services.fetch_hook import FetchHook, Operation
from fuelsymphony.services.notifications import Notifier

T = TypeVar("T")

_STATIONS = TypeAdapter(list[Station])
_STATION = TypeAdapter(Station)
_PROFILES = TypeAdapter(list[Profile])
_PROFILE = TypeAdapter(Profile)
_DISPENSERS = TypeAdapter(list[Dispenser])
_FUEL_INVENTORY = TypeAdapter(list[FuelInventory])
_PRODUCTS = TypeAdapter(list[Product])
_SHIFTS = TypeAdapter(list[Shift])
_METER_READINGS = TypeAdapter(list[MeterReading])
_INVOICES = TypeAdapter(list[Invoice])
_VEHICLES = TypeAdapter(list[Vehicle])
_EXPENSES = TypeAdapter(list[Expense])
_ACTIVITY_LOGS = TypeAdapter(list[ActivityLog])


def reader(client: BackendClient, query: Query, adapter: TypeAdapter[T]) -> Operation[T]:
    async def operation() -> QueryResult[T]:
        result = await client.execute(query)
        return result.map(adapter.validate_python)

    return operation


def _use(
    client: BackendClient,
    query: Query,
    adapter: TypeAdapter[T],
    *,
    notifier: Notifier,
    label: str,
    dependencies: tuple[Any, ...] = (),
    enabled: bool = True,
) -> FetchHook[T]:
    hook: FetchHook[T] = FetchHook(reader(client, query, adapter), notifier=notifier, label=label, enabled=enabled)
    hook.mount(dependencies)
    return hook


def use_stations(client: BackendClient, *, notifier: Notifier) -> FetchHook[list[Station]]:
    return _use(client, table("stations").order("name"), _STATIONS, notifier=notifier, label="stations")


def use_station(client: BackendClient, station_id: str | None, *, notifier: Notifier) -> FetchHook[Station]:
    return _use(
        client,
        table("stations").eq("id", station_id).single(),
        _STATION,
        notifier=notifier,
        label="station",
        dependencies=(station_id,),
        enabled=bool(station_id),
    )


def use_profiles(client: BackendClient, *, notifier: Notifier) -> FetchHook[list[Profile]]:
    return _use(client, table("profiles").order("full_name"), _PROFILES, notifier=notifier, label="profiles")


def use_profile(client: BackendClient, profile_id: str | None, *, notifier: Notifier) -> FetchHook[Profile]:
    return _use(
        client,
        table("profiles").eq("id", profile_id).single(),
        _PROFILE,
        notifier=notifier,
        label="profile",
        dependencies=(profile_id,),
        enabled=bool(profile_id),
    )


def use_admins(client: BackendClient, *, notifier: Notifier) -> FetchHook[list[Profile]]:
    query = table("profiles").eq("role", UserRole.ADMIN.value).order("full_name")
    return _use(client, query, _PROFILES, notifier=notifier, label="admins")


def _station_profiles(
    client: BackendClient,
    station_id: str | None,
    role: UserRole,
    *,
    notifier: Notifier,
    label: str,
) -> FetchHook[list[Profile]]:
    query = table("profiles").eq("role", role.value).eq("station_id", station_id).order("full_name")
    return _use(
        client,
        query,
        _PROFILES,
        notifier=notifier,
        label=label,
        dependencies=(station_id,),
        enabled=bool(station_id),
    )


def use_employees(client: BackendClient, station_id: str | None, *, notifier: Notifier) -> FetchHook[list[Profile]]:
    return _station_profiles(client, station_id, UserRole.EMPLOYEE, notifier=notifier, label="employees")


def use_customers(client: BackendClient, station_id: str | None, *, notifier: Notifier) -> FetchHook[list[Profile]]:
    return _station_profiles(client, station_id, UserRole.CREDIT_CUSTOMER, notifier=notifier, label="customers")


def use_dispensers(client: BackendClient, station_id: str | None, *, notifier: Notifier) -> FetchHook[list[Dispenser]]:
    return _use(
        client,
        table("dispensers").eq("station_id", station_id).order("name"),
        _DISPENSERS,
        notifier=notifier,
        label="dispensers",
        dependencies=(station_id,),
        enabled=bool(station_id),
    )


def use_fuel_inventory(
    client: BackendClient,
    station_id: str | None,
    *,
    notifier: Notifier,
) -> FetchHook[list[FuelInventory]]:
    return _use(
        client,
        table("fuel_inventory").eq("station_id", station_id).order("fuel_type"),
        _FUEL_INVENTORY,
        notifier=notifier,
        label="fuel inventory",
        dependencies=(station_id,),
        enabled=bool(station_id),
    )


def use_products(client: BackendClient, station_id: str | None, *, notifier: Notifier) -> FetchHook[list[Product]]:
    return _use(
        client,
        table("products").eq("station_id", station_id).order("name"),
        _PRODUCTS,
        notifier=notifier,
        label="products",
        dependencies=(station_id,),
        enabled=bool(station_id),
    )


def use_active_shifts(client: BackendClient, station_id: str | None, *, notifier: Notifier) -> FetchHook[list[Shift]]:
    query = table("shifts").eq("station_id", station_id).eq("status", "active").order("start_time", descending=True)
    return _use(
        client,
        query,
        _SHIFTS,
        notifier=notifier,
        label="active shifts",
        dependencies=(station_id,),
        enabled=bool(station_id),
    )


def use_employee_shifts(client: BackendClient, employee_id: str | None, *, notifier: Notifier) -> FetchHook[list[Shift]]:
    return _use(
        client,
        table("shifts").eq("employee_id", employee_id).order("start_time", descending=True),
        _SHIFTS,
        notifier=notifier,
        label="shifts",
        dependencies=(employee_id,),
        enabled=bool(employee_id),
    )


def use_meter_readings(
    client: BackendClient,
    shift_id: str | None,
    *,
    notifier: Notifier,
) -> FetchHook[list[MeterReading]]:
    return _use(
        client,
        table("meter_readings").eq("shift_id", shift_id).order("created_at"),
        _METER_READINGS,
        notifier=notifier,
        label="meter readings",
        dependencies=(shift_id,),
        enabled=bool(shift_id),
    )


def use_customer_invoices(
    client: BackendClient,
    customer_id: str | None,
    *,
    notifier: Notifier,
) -> FetchHook[list[Invoice]]:
    return _use(
        client,
        table("invoices").eq("customer_id", customer_id).order("issue_date", descending=True),
        _INVOICES,
        notifier=notifier,
        label="invoices",
        dependencies=(customer_id,),
        enabled=bool(customer_id),
    )


def use_customer_vehicles(
    client: BackendClient,
    customer_id: str | None,
    *,
    notifier: Notifier,
) -> FetchHook[list[Vehicle]]:
    return _use(
        client,
        table("vehicles").eq("customer_id", customer_id).order("license_plate"),
        _VEHICLES,
        notifier=notifier,
        label="vehicles",
        dependencies=(customer_id,),
        enabled=bool(customer_id),
    )


def use_station_expenses(
    client: BackendClient,
    station_id: str | None,
    start_date: date | None,
    end_date: date | None,
    *,
    notifier: Notifier,
) -> FetchHook[list[Expense]]:
    query = (
        table("expenses")
        .eq("station_id", station_id)
        .gte("date", start_date)
        .lte("date", end_date)
        .order("date", descending=True)
    )
    return _use(
        client,
        query,
        _EXPENSES,
        notifier=notifier,
        label="expenses",
        dependencies=(station_id, start_date, end_date),
        enabled=bool(station_id and start_date and end_date),
    )


def use_activity_logs(
    client: BackendClient,
    *,
    notifier: Notifier,
    entity_type: str | None = None,
    limit: int = 100,
) -> FetchHook[list[ActivityLog]]:
    query = table("activity_logs")
    if entity_type:
        query = query.eq("entity_type", entity_type)
    query = query.order("created_at", descending=True).limit(limit)
    return _use(
        client,
        query,
        _ACTIVITY_LOGS,
        notifier=notifier,
        label="activity logs",
        dependencies=(entity_type, limit),
    )
