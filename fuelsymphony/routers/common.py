from __future__ import annotations

from typing import Any, Callable, Mapping

from fastapi import Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from fuelsymphony.errors import ApiError
from fuelsymphony.schemas import (
    ConnectionStatus,
    HookStateRead,
    LayoutShell,
    MutationResponse,
    PageResponse,
    SessionUser,
)
from fuelsymphony.security import UserRole, describe_role, navigation_for, parse_role, require_page
from fuelsymphony.services.backend import BackendClient, QueryResult, table
from fuelsymphony.services.connection_gate import ConnectionGate
from fuelsymphony.services.fetch_hook import FetchHook
from fuelsymphony.services.mutations import MutationContext
from fuelsymphony.services.notifications import Notifier


def get_backend(request: Request) -> BackendClient:
    return request.app.state.backend


def get_connection_gate(request: Request) -> ConnectionGate:
    return request.app.state.connection_gate


def connection_status(gate: ConnectionGate) -> ConnectionStatus:
    return ConnectionStatus(state=gate.state, error=gate.error)


def build_layout(user: SessionUser, gate: ConnectionGate) -> LayoutShell:
    return LayoutShell(
        user=user,
        navigation=navigation_for(user.role),
        role_description=describe_role(user.role) or "",
        connection=connection_status(gate),
    )


def page_layout(path: str) -> Callable[..., LayoutShell]:
    def _dependency(
        user: SessionUser = Depends(require_page(path)),
        gate: ConnectionGate = Depends(get_connection_gate),
    ) -> LayoutShell:
        return build_layout(user, gate)

    return _dependency


async def render_page(
    page: str,
    layout: LayoutShell,
    notifier: Notifier,
    *,
    options: Mapping[str, Any] | None = None,
    **hooks: FetchHook[Any],
) -> PageResponse:
    data: dict[str, HookStateRead] = {name: HookStateRead(data=value) for name, value in (options or {}).items()}
    try:
        for name, hook in hooks.items():
            state = await hook.settled()
            data[name] = HookStateRead(data=state.data, loading=state.loading, error=state.error)
    finally:
        for hook in hooks.values():
            hook.unmount()
    return PageResponse(page=page, layout=layout, data=data, notifications=notifier.drain())


def mutation_context(request: Request, client: BackendClient, user: SessionUser) -> MutationContext:
    return MutationContext(
        client=client,
        notifier=Notifier(),
        actor_id=user.profile_id,
        request_id=getattr(request.state, "request_id", None),
    )


def mutation_response(result: QueryResult[Any], notifier: Notifier, *, status_code: int = 200) -> JSONResponse:
    payload = MutationResponse(
        success=result.ok,
        data=result.data,
        error=result.error,
        notifications=notifier.drain(),
    )
    return JSONResponse(
        status_code=status_code if result.ok else 400,
        content=jsonable_encoder(payload),
    )


def ensure_station_scope(user: SessionUser, station_id: str | None) -> None:
    if parse_role(user.role) is UserRole.SUPER_ADMIN:
        return
    if not user.station_id or user.station_id != station_id:
        raise ApiError(
            status_code=403,
            code="STATION_SCOPE",
            message="Station is outside your assignment.",
            details={"station_id": station_id},
        )


def require_station(user: SessionUser) -> str:
    if not user.station_id:
        raise ApiError(status_code=409, code="NO_STATION", message="No station is assigned to this account.")
    return user.station_id


async def load_target(client: BackendClient, table_name: str, row_id: str, *, label: str) -> dict[str, Any]:
    result = await client.execute(table(table_name).eq("id", row_id).limit(1))
    if not result.ok:
        raise ApiError(status_code=502, code="BACKEND_ERROR", message=result.error or "Backend error.")
    rows = result.data or []
    if not rows:
        raise ApiError(status_code=404, code="NOT_FOUND", message=f"{label} not found.", details={"id": row_id})
    return rows[0]


async def load_scoped(
    client: BackendClient,
    user: SessionUser,
    table_name: str,
    row_id: str,
    *,
    label: str,
) -> dict[str, Any]:
    row = await load_target(client, table_name, row_id, label=label)
    ensure_station_scope(user, row.get("station_id"))
    return row


def ensure_shift_access(user: SessionUser, shift: dict[str, Any]) -> None:
    ensure_station_scope(user, shift.get("station_id"))
    if parse_role(user.role) is UserRole.EMPLOYEE and shift.get("employee_id") != user.profile_id:
        raise ApiError(status_code=403, code="NOT_OWNER", message="Shift belongs to another employee.")


def ensure_owner(user: SessionUser, owner_id: str | None) -> None:
    if owner_id != user.profile_id:
        raise ApiError(status_code=403, code="NOT_OWNER", message="Record belongs to another account.")
