from __future__ import annotations

from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query

from fuelsymphony.constants import (
    EXPENSE_TYPES,
    FUEL_TYPES,
    PAYMENT_METHODS,
    PRODUCT_CATEGORIES,
    TRANSACTION_TYPES,
    as_options,
)
from fuelsymphony.routers.common import ensure_shift_access, get_backend, load_target, page_layout, render_page
from fuelsymphony.schemas import HookStateRead, LayoutShell, PageResponse
from fuelsymphony.security import UserRole, parse_role
from fuelsymphony.services import entity_hooks as hooks
from fuelsymphony.services.backend import BackendClient
from fuelsymphony.services.notifications import Notifier

router = APIRouter(tags=["pages"])


async def _dashboard(layout: LayoutShell, client: BackendClient) -> PageResponse:
    notifier = Notifier()
    user = layout.user
    role = parse_role(user.role)

    if role is UserRole.SUPER_ADMIN:
        return await render_page(
            "dashboard",
            layout,
            notifier,
            stations=hooks.use_stations(client, notifier=notifier),
            admins=hooks.use_admins(client, notifier=notifier),
        )
    if role is UserRole.ADMIN:
        today = date.today()
        return await render_page(
            "dashboard",
            layout,
            notifier,
            station=hooks.use_station(client, user.station_id, notifier=notifier),
            fuel_inventory=hooks.use_fuel_inventory(client, user.station_id, notifier=notifier),
            active_shifts=hooks.use_active_shifts(client, user.station_id, notifier=notifier),
            expenses=hooks.use_station_expenses(
                client,
                user.station_id,
                today - timedelta(days=30),
                today,
                notifier=notifier,
            ),
        )
    if role is UserRole.EMPLOYEE:
        return await render_page(
            "dashboard",
            layout,
            notifier,
            station=hooks.use_station(client, user.station_id, notifier=notifier),
            shifts=hooks.use_employee_shifts(client, user.profile_id, notifier=notifier),
        )
    return await render_page(
        "dashboard",
        layout,
        notifier,
        invoices=hooks.use_customer_invoices(client, user.profile_id, notifier=notifier),
        vehicles=hooks.use_customer_vehicles(client, user.profile_id, notifier=notifier),
    )


@router.get("/", response_model=PageResponse)
async def index_page(
    layout: LayoutShell = Depends(page_layout("/")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    return await _dashboard(layout, client)


@router.get("/dashboard", response_model=PageResponse)
async def dashboard_page(
    layout: LayoutShell = Depends(page_layout("/dashboard")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    return await _dashboard(layout, client)


# Super Admin


@router.get("/stations", response_model=PageResponse)
async def stations_page(
    layout: LayoutShell = Depends(page_layout("/stations")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    return await render_page("stations", layout, notifier, stations=hooks.use_stations(client, notifier=notifier))


@router.get("/stations/new", response_model=PageResponse)
async def station_create_page(layout: LayoutShell = Depends(page_layout("/stations"))) -> PageResponse:
    return PageResponse(page="station_form", layout=layout, data={"mode": HookStateRead(data="create")})


@router.get("/stations/{station_id}", response_model=PageResponse)
async def station_edit_page(
    station_id: str,
    layout: LayoutShell = Depends(page_layout("/stations")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    return await render_page(
        "station_form",
        layout,
        notifier,
        station=hooks.use_station(client, station_id, notifier=notifier),
    )


@router.get("/admins", response_model=PageResponse)
async def admins_page(
    layout: LayoutShell = Depends(page_layout("/admins")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    return await render_page(
        "admins",
        layout,
        notifier,
        admins=hooks.use_admins(client, notifier=notifier),
        stations=hooks.use_stations(client, notifier=notifier),
    )


@router.get("/admins/new", response_model=PageResponse)
async def admin_create_page(
    layout: LayoutShell = Depends(page_layout("/admins")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    return await render_page(
        "admin_form",
        layout,
        notifier,
        stations=hooks.use_stations(client, notifier=notifier),
    )


@router.get("/admins/{profile_id}", response_model=PageResponse)
async def admin_edit_page(
    profile_id: str,
    layout: LayoutShell = Depends(page_layout("/admins")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    return await render_page(
        "admin_form",
        layout,
        notifier,
        profile=hooks.use_profile(client, profile_id, notifier=notifier),
        stations=hooks.use_stations(client, notifier=notifier),
    )


@router.get("/logs", response_model=PageResponse)
async def activity_logs_page(
    entity_type: str | None = Query(default=None, max_length=64),
    limit: int = Query(default=100, ge=1, le=500),
    layout: LayoutShell = Depends(page_layout("/logs")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    return await render_page(
        "activity_logs",
        layout,
        notifier,
        logs=hooks.use_activity_logs(client, notifier=notifier, entity_type=entity_type, limit=limit),
    )


@router.get("/settings/test-users", response_model=PageResponse)
async def test_users_page(layout: LayoutShell = Depends(page_layout("/settings"))) -> PageResponse:
    return PageResponse(page="test_users", layout=layout)


# Station Admin


@router.get("/employees", response_model=PageResponse)
async def employees_page(
    layout: LayoutShell = Depends(page_layout("/employees")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    return await render_page(
        "employees",
        layout,
        notifier,
        employees=hooks.use_employees(client, layout.user.station_id, notifier=notifier),
    )


@router.get("/customers", response_model=PageResponse)
async def customers_page(
    layout: LayoutShell = Depends(page_layout("/customers")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    return await render_page(
        "customers",
        layout,
        notifier,
        customers=hooks.use_customers(client, layout.user.station_id, notifier=notifier),
    )


@router.get("/dispensers", response_model=PageResponse)
async def dispensers_page(
    layout: LayoutShell = Depends(page_layout("/dispensers")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    return await render_page(
        "dispensers",
        layout,
        notifier,
        options={"fuel_types": as_options(FUEL_TYPES)},
        dispensers=hooks.use_dispensers(client, layout.user.station_id, notifier=notifier),
    )


@router.get("/inventory", response_model=PageResponse)
async def inventory_page(
    layout: LayoutShell = Depends(page_layout("/inventory")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    station_id = layout.user.station_id
    return await render_page(
        "inventory",
        layout,
        notifier,
        options={
            "fuel_types": as_options(FUEL_TYPES),
            "product_categories": as_options(PRODUCT_CATEGORIES),
        },
        fuel_inventory=hooks.use_fuel_inventory(client, station_id, notifier=notifier),
        products=hooks.use_products(client, station_id, notifier=notifier),
    )


@router.get("/finances", response_model=PageResponse)
async def finances_page(
    start_date: date | None = None,
    end_date: date | None = None,
    layout: LayoutShell = Depends(page_layout("/finances")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    end = end_date or date.today()
    start = start_date or end - timedelta(days=30)
    return await render_page(
        "finances",
        layout,
        notifier,
        options={"expense_types": as_options(EXPENSE_TYPES)},
        expenses=hooks.use_station_expenses(client, layout.user.station_id, start, end, notifier=notifier),
    )


# Employee


@router.get("/shifts", response_model=PageResponse)
async def shifts_page(
    layout: LayoutShell = Depends(page_layout("/shifts")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    user = layout.user
    return await render_page(
        "shifts",
        layout,
        notifier,
        shifts=hooks.use_employee_shifts(client, user.profile_id, notifier=notifier),
        dispensers=hooks.use_dispensers(client, user.station_id, notifier=notifier),
    )


@router.get("/shifts/{shift_id}/meter-readings", response_model=PageResponse)
async def meter_readings_page(
    shift_id: str,
    layout: LayoutShell = Depends(page_layout("/shifts")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    ensure_shift_access(layout.user, await load_target(client, "shifts", shift_id, label="Shift"))
    notifier = Notifier()
    return await render_page(
        "meter_readings",
        layout,
        notifier,
        meter_readings=hooks.use_meter_readings(client, shift_id, notifier=notifier),
    )


@router.get("/sales", response_model=PageResponse)
async def sales_page(
    layout: LayoutShell = Depends(page_layout("/sales")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    station_id = layout.user.station_id
    return await render_page(
        "sales",
        layout,
        notifier,
        options={
            "payment_methods": as_options(PAYMENT_METHODS),
            "transaction_types": as_options(TRANSACTION_TYPES),
        },
        fuel_inventory=hooks.use_fuel_inventory(client, station_id, notifier=notifier),
        products=hooks.use_products(client, station_id, notifier=notifier),
        customers=hooks.use_customers(client, station_id, notifier=notifier),
    )


@router.get("/profile", response_model=PageResponse)
async def profile_page(
    layout: LayoutShell = Depends(page_layout("/profile")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    return await render_page(
        "profile",
        layout,
        notifier,
        profile=hooks.use_profile(client, layout.user.profile_id, notifier=notifier),
    )


# Credit Customer


@router.get("/invoices", response_model=PageResponse)
async def invoices_page(
    layout: LayoutShell = Depends(page_layout("/invoices")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    return await render_page(
        "invoices",
        layout,
        notifier,
        invoices=hooks.use_customer_invoices(client, layout.user.profile_id, notifier=notifier),
    )


@router.get("/vehicles", response_model=PageResponse)
async def vehicles_page(
    layout: LayoutShell = Depends(page_layout("/vehicles")),
    client: BackendClient = Depends(get_backend),
) -> PageResponse:
    notifier = Notifier()
    return await render_page(
        "vehicles",
        layout,
        notifier,
        options={"fuel_types": as_options(FUEL_TYPES)},
        vehicles=hooks.use_customer_vehicles(client, layout.user.profile_id, notifier=notifier),
    )
