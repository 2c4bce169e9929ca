from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from fuelsymphony.errors import ApiError
from fuelsymphony.routers.common import build_layout, connection_status, get_backend, get_connection_gate
from fuelsymphony.schemas import AuthResponse, LayoutShell, LoginRequest, Profile, SessionUser
from fuelsymphony.security import (
    create_access_token,
    describe_role,
    get_app_settings,
    navigation_for,
    parse_role,
    require_user,
    session_user_from_claims,
)
from fuelsymphony.services.backend import BackendClient, table
from fuelsymphony.services.connection_gate import ConnectionGate
from fuelsymphony.settings import Settings

logger = logging.getLogger("fuelsymphony.auth")

router = APIRouter(tags=["auth"])


@router.get("/login")
def login_page(
    settings: Settings = Depends(get_app_settings),
    gate: ConnectionGate = Depends(get_connection_gate),
) -> dict[str, Any]:
    # Rendered outside the authenticated layout.
    return {
        "page": "login",
        "app_name": settings.app_name,
        "connection": connection_status(gate).model_dump(),
    }


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    client: BackendClient = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    email = payload.email.strip().lower()
    request_id = getattr(request.state, "request_id", None)
    request.state.actor = "system"
    request.state.actor_id = "system"

    identity = await client.sign_in(email, payload.password)
    if not identity.ok or not identity.data:
        logger.warning(
            "login_failed",
            extra={"request_id": request_id, "email": email, "reason": identity.error},
        )
        raise ApiError(status_code=401, code="INVALID_CREDENTIALS", message="Invalid credentials.")

    user_id = str(identity.data.get("user_id") or "")
    found = await client.execute(table("profiles").eq("user_id", user_id).single())
    if not found.ok or not found.data:
        logger.warning(
            "login_profile_missing",
            extra={"request_id": request_id, "user_id": user_id, "error": found.error},
        )
        raise ApiError(status_code=403, code="PROFILE_NOT_FOUND", message="No profile is linked to this account.")

    try:
        profile = Profile.model_validate(found.data)
    except ValidationError as exc:
        raise ApiError(status_code=502, code="BACKEND_ERROR", message="Profile record is malformed.") from exc

    role = parse_role(profile.role)
    if role is None:
        raise ApiError(status_code=403, code="UNKNOWN_ROLE", message="Unrecognized role.")
    if profile.status != "active":
        raise ApiError(status_code=403, code="ACCOUNT_INACTIVE", message="Account is not active.")

    token, expires_in, claims = create_access_token(settings, profile)
    user = session_user_from_claims(claims)
    request.state.actor = user.role
    request.state.actor_id = user.profile_id
    logger.info(
        "login_success",
        extra={"request_id": request_id, "profile_id": profile.id, "role": role.value},
    )
    return AuthResponse(
        access_token=token,
        expires_in=expires_in,
        user=user,
        navigation=navigation_for(role),
        role_description=describe_role(role) or "",
    )


@router.get("/me", response_model=LayoutShell)
def me(
    user: SessionUser = Depends(require_user),
    gate: ConnectionGate = Depends(get_connection_gate),
) -> LayoutShell:
    return build_layout(user, gate)
