from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from fuelsymphony.errors import ApiError
from fuelsymphony.routers.common import (
    ensure_owner,
    ensure_shift_access,
    ensure_station_scope,
    get_backend,
    load_scoped,
    load_target,
    mutation_context,
    mutation_response,
    require_station,
)
from fuelsymphony.schemas import (
    DispenserWrite,
    ExpenseWrite,
    FuelInventoryWrite,
    InvoiceStatusUpdate,
    InvoiceWrite,
    MeterReadingClose,
    MeterReadingOpen,
    ProductWrite,
    ProfileStatusUpdate,
    ProfileWrite,
    RestockRequest,
    SessionUser,
    ShiftEndRequest,
    ShiftStartRequest,
    StationWrite,
    TransactionWrite,
    VehicleWrite,
)
from fuelsymphony.security import UserRole, get_app_settings, require_page, require_roles
from fuelsymphony.services import mutations
from fuelsymphony.services.backend import BackendClient
from fuelsymphony.services.notifications import Notifier
from fuelsymphony.services.provisioning import provision_test_users
from fuelsymphony.settings import Settings

router = APIRouter(tags=["actions"])


# Stations


@router.post("/stations")
async def create_station(
    payload: StationWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/stations")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.create_station(ctx, payload), ctx.notifier, status_code=201)


@router.put("/stations/{station_id}")
async def update_station(
    station_id: str,
    payload: StationWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/stations")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.update_station(ctx, station_id, payload), ctx.notifier)


@router.delete("/stations/{station_id}")
async def delete_station(
    station_id: str,
    request: Request,
    user: SessionUser = Depends(require_page("/stations")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.delete_station(ctx, station_id), ctx.notifier)


# Admins


@router.post("/admins")
async def create_admin(
    payload: ProfileWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/admins")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ctx = mutation_context(request, client, user)
    admin = payload.model_copy(update={"role": UserRole.ADMIN.value})
    return mutation_response(await mutations.create_profile(ctx, admin), ctx.notifier, status_code=201)


@router.put("/admins/{profile_id}")
async def update_admin(
    profile_id: str,
    payload: ProfileWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/admins")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.update_profile(ctx, profile_id, payload), ctx.notifier)


@router.patch("/admins/{profile_id}/status")
async def update_admin_status(
    profile_id: str,
    payload: ProfileStatusUpdate,
    request: Request,
    user: SessionUser = Depends(require_page("/admins")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.update_profile_status(ctx, profile_id, payload.status), ctx.notifier)


# Station staff and customers


@router.post("/employees")
async def create_employee(
    payload: ProfileWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/employees")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    station_id = require_station(user)
    ctx = mutation_context(request, client, user)
    employee = payload.model_copy(update={"role": UserRole.EMPLOYEE.value, "station_id": station_id})
    return mutation_response(await mutations.create_profile(ctx, employee), ctx.notifier, status_code=201)


@router.patch("/employees/{profile_id}/status")
async def update_employee_status(
    profile_id: str,
    payload: ProfileStatusUpdate,
    request: Request,
    user: SessionUser = Depends(require_page("/employees")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    await load_scoped(client, user, "profiles", profile_id, label="Employee")
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.update_profile_status(ctx, profile_id, payload.status), ctx.notifier)


@router.post("/customers")
async def create_customer(
    payload: ProfileWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/customers")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    station_id = require_station(user)
    ctx = mutation_context(request, client, user)
    customer = payload.model_copy(update={"role": UserRole.CREDIT_CUSTOMER.value, "station_id": station_id})
    return mutation_response(await mutations.create_profile(ctx, customer), ctx.notifier, status_code=201)


# Dispensers


@router.post("/dispensers")
async def create_dispenser(
    payload: DispenserWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/dispensers")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ensure_station_scope(user, payload.station_id)
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.create_dispenser(ctx, payload), ctx.notifier, status_code=201)


@router.put("/dispensers/{dispenser_id}")
async def update_dispenser(
    dispenser_id: str,
    payload: DispenserWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/dispensers")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    await load_scoped(client, user, "dispensers", dispenser_id, label="Dispenser")
    ensure_station_scope(user, payload.station_id)
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.update_dispenser(ctx, dispenser_id, payload), ctx.notifier)


@router.delete("/dispensers/{dispenser_id}")
async def delete_dispenser(
    dispenser_id: str,
    request: Request,
    user: SessionUser = Depends(require_page("/dispensers")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    await load_scoped(client, user, "dispensers", dispenser_id, label="Dispenser")
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.delete_dispenser(ctx, dispenser_id), ctx.notifier)


# Inventory


@router.post("/inventory/fuel")
async def create_fuel_inventory(
    payload: FuelInventoryWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/inventory")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ensure_station_scope(user, payload.station_id)
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.create_fuel_inventory(ctx, payload), ctx.notifier, status_code=201)


@router.put("/inventory/fuel/{inventory_id}")
async def update_fuel_inventory(
    inventory_id: str,
    payload: FuelInventoryWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/inventory")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    await load_scoped(client, user, "fuel_inventory", inventory_id, label="Fuel inventory")
    ensure_station_scope(user, payload.station_id)
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.update_fuel_inventory(ctx, inventory_id, payload), ctx.notifier)


@router.post("/inventory/products")
async def create_product(
    payload: ProductWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/inventory")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ensure_station_scope(user, payload.station_id)
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.create_product(ctx, payload), ctx.notifier, status_code=201)


@router.post("/inventory/fuel/{inventory_id}/restock")
async def restock_fuel(
    inventory_id: str,
    payload: RestockRequest,
    request: Request,
    user: SessionUser = Depends(require_page("/inventory")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    await load_scoped(client, user, "fuel_inventory", inventory_id, label="Fuel inventory")
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.restock_fuel(ctx, inventory_id, payload.amount), ctx.notifier)


@router.post("/inventory/products/{product_id}/restock")
async def restock_product(
    product_id: str,
    payload: RestockRequest,
    request: Request,
    user: SessionUser = Depends(require_page("/inventory")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    await load_scoped(client, user, "products", product_id, label="Product")
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.restock_product(ctx, product_id, payload.amount), ctx.notifier)


# Finances


@router.post("/finances/invoices")
async def create_invoice(
    payload: InvoiceWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/finances")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ensure_station_scope(user, payload.station_id)
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.create_invoice(ctx, payload), ctx.notifier, status_code=201)


@router.patch("/finances/invoices/{invoice_id}/status")
async def update_invoice_status(
    invoice_id: str,
    payload: InvoiceStatusUpdate,
    request: Request,
    user: SessionUser = Depends(require_page("/finances")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    await load_scoped(client, user, "invoices", invoice_id, label="Invoice")
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.update_invoice_status(ctx, invoice_id, payload.status), ctx.notifier)


@router.post("/finances/expenses")
async def create_expense(
    payload: ExpenseWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/finances")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ensure_station_scope(user, payload.station_id)
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.create_expense(ctx, payload), ctx.notifier, status_code=201)


@router.put("/finances/expenses/{expense_id}")
async def update_expense(
    expense_id: str,
    payload: ExpenseWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/finances")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    await load_scoped(client, user, "expenses", expense_id, label="Expense")
    ensure_station_scope(user, payload.station_id)
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.update_expense(ctx, expense_id, payload), ctx.notifier)


# Shifts


@router.post("/shifts")
async def start_shift(
    payload: ShiftStartRequest,
    request: Request,
    user: SessionUser = Depends(require_page("/shifts")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    station_id = require_station(user)
    ctx = mutation_context(request, client, user)
    own = payload.model_copy(update={"employee_id": user.profile_id, "station_id": station_id})
    return mutation_response(await mutations.start_shift(ctx, own), ctx.notifier, status_code=201)


@router.post("/shifts/{shift_id}/end")
async def end_shift(
    shift_id: str,
    payload: ShiftEndRequest,
    request: Request,
    user: SessionUser = Depends(require_page("/shifts")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ensure_shift_access(user, await load_target(client, "shifts", shift_id, label="Shift"))
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.end_shift(ctx, shift_id, payload), ctx.notifier)


@router.post("/shifts/{shift_id}/cancel")
async def cancel_shift(
    shift_id: str,
    request: Request,
    user: SessionUser = Depends(require_page("/shifts")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ensure_shift_access(user, await load_target(client, "shifts", shift_id, label="Shift"))
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.cancel_shift(ctx, shift_id), ctx.notifier)


@router.post("/shifts/{shift_id}/meter-readings")
async def open_meter_reading(
    shift_id: str,
    payload: MeterReadingOpen,
    request: Request,
    user: SessionUser = Depends(require_page("/shifts")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ensure_shift_access(user, await load_target(client, "shifts", shift_id, label="Shift"))
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.open_meter_reading(ctx, shift_id, payload), ctx.notifier, status_code=201)


@router.post("/shifts/{shift_id}/meter-readings/{reading_id}/close")
async def close_meter_reading(
    shift_id: str,
    reading_id: str,
    payload: MeterReadingClose,
    request: Request,
    user: SessionUser = Depends(require_page("/shifts")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    reading = await load_target(client, "meter_readings", reading_id, label="Meter reading")
    if reading.get("shift_id") != shift_id:
        raise ApiError(status_code=404, code="NOT_FOUND", message="Meter reading not found.")
    ensure_shift_access(user, await load_target(client, "shifts", shift_id, label="Shift"))
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.close_meter_reading(ctx, reading_id, payload), ctx.notifier)


# Sales


@router.post("/sales")
async def create_sale(
    payload: TransactionWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/sales")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ensure_station_scope(user, payload.station_id)
    shift = await load_target(client, "shifts", payload.shift_id, label="Shift")
    ensure_shift_access(user, shift)
    if shift.get("station_id") != payload.station_id:
        raise ApiError(status_code=403, code="STATION_SCOPE", message="Shift belongs to another station.")
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.create_transaction(ctx, payload), ctx.notifier, status_code=201)


# Vehicles


@router.post("/vehicles")
async def create_vehicle(
    payload: VehicleWrite,
    request: Request,
    user: SessionUser = Depends(require_page("/vehicles")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    ctx = mutation_context(request, client, user)
    own = payload.model_copy(update={"customer_id": user.profile_id})
    return mutation_response(await mutations.create_vehicle(ctx, own), ctx.notifier, status_code=201)


@router.delete("/vehicles/{vehicle_id}")
async def delete_vehicle(
    vehicle_id: str,
    request: Request,
    user: SessionUser = Depends(require_page("/vehicles")),
    client: BackendClient = Depends(get_backend),
) -> JSONResponse:
    vehicle = await load_target(client, "vehicles", vehicle_id, label="Vehicle")
    ensure_owner(user, vehicle.get("customer_id"))
    ctx = mutation_context(request, client, user)
    return mutation_response(await mutations.delete_vehicle(ctx, vehicle_id), ctx.notifier)


# Settings


@router.post("/settings/test-users")
async def create_test_users(
    user: SessionUser = Depends(require_roles(UserRole.SUPER_ADMIN)),
    client: BackendClient = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    notifier = Notifier()
    result = await provision_test_users(client, notifier=notifier, function_name=settings.test_users_function)
    return mutation_response(result, notifier)
