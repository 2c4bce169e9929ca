from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from fuelsymphony.errors import ApiError, BackendError
from fuelsymphony.schemas import NavigationItem, Profile, SessionUser
from fuelsymphony.services.backend import QueryResult, table
from fuelsymphony.settings import Settings

logger = logging.getLogger("fuelsymphony.security")
bearer_scheme = HTTPBearer(auto_error=False)


class UserRole(str, enum.Enum):
    SUPER_ADMIN = "Super Admin"
    ADMIN = "Admin"
    EMPLOYEE = "Employee"
    CREDIT_CUSTOMER = "Credit Customer"


USER_ROLE_DESCRIPTIONS: dict[UserRole, str] = {
    UserRole.SUPER_ADMIN: "Manage all fuel stations, admins, and system-wide settings",
    UserRole.ADMIN: "Manage a specific fuel station, employees, and finances",
    UserRole.EMPLOYEE: "Handle daily operations and sales at a fuel station",
    UserRole.CREDIT_CUSTOMER: "View invoices and consumption statistics",
}

SIDEBAR_ITEMS: dict[UserRole, tuple[NavigationItem, ...]] = {
    UserRole.SUPER_ADMIN: (
        NavigationItem(label="Dashboard", path="/dashboard", icon="LayoutDashboard"),
        NavigationItem(label="Stations", path="/stations", icon="Building"),
        NavigationItem(label="Admins", path="/admins", icon="Users"),
        NavigationItem(label="Reports", path="/reports", icon="BarChart"),
        NavigationItem(label="Activity Logs", path="/logs", icon="HistoryIcon"),
        NavigationItem(label="Settings", path="/settings", icon="Settings"),
    ),
    UserRole.ADMIN: (
        NavigationItem(label="Dashboard", path="/dashboard", icon="LayoutDashboard"),
        NavigationItem(label="Employees", path="/employees", icon="Users"),
        NavigationItem(label="Customers", path="/customers", icon="User"),
        NavigationItem(label="Dispensers", path="/dispensers", icon="Gauge"),
        NavigationItem(label="Inventory", path="/inventory", icon="Package"),
        NavigationItem(label="Finances", path="/finances", icon="DollarSign"),
        NavigationItem(label="Reports", path="/reports", icon="FileText"),
        NavigationItem(label="Settings", path="/settings", icon="Settings"),
    ),
    UserRole.EMPLOYEE: (
        NavigationItem(label="Dashboard", path="/dashboard", icon="LayoutDashboard"),
        NavigationItem(label="My Shifts", path="/shifts", icon="Clock"),
        NavigationItem(label="Sales", path="/sales", icon="ShoppingCart"),
        NavigationItem(label="My Profile", path="/profile", icon="User"),
    ),
    UserRole.CREDIT_CUSTOMER: (
        NavigationItem(label="Dashboard", path="/dashboard", icon="LayoutDashboard"),
        NavigationItem(label="Invoices", path="/invoices", icon="FileText"),
        NavigationItem(label="Vehicles", path="/vehicles", icon="Car"),
        NavigationItem(label="My Profile", path="/profile", icon="User"),
    ),
}

# Reachable by every recognised role.
COMMON_PATHS: frozenset[str] = frozenset({"/", "/dashboard"})


def parse_role(value: Any) -> UserRole | None:
    if isinstance(value, UserRole):
        return value
    if not isinstance(value, str):
        return None
    try:
        return UserRole(value)
    except ValueError:
        return None


def navigation_for(role: UserRole | str | None) -> list[NavigationItem]:
    parsed = parse_role(role)
    if parsed is None:
        return []
    return list(SIDEBAR_ITEMS.get(parsed, ()))


def describe_role(role: UserRole | str | None) -> str | None:
    parsed = parse_role(role)
    if parsed is None:
        return None
    return USER_ROLE_DESCRIPTIONS.get(parsed)


def _section(path: str) -> str:
    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return "/"
    return f"/{segments[0]}"


def can_access(role: UserRole | str | None, path: str) -> bool:
    if parse_role(role) is None:
        return False
    section = _section(path)
    if section in COMMON_PATHS:
        return True
    return any(_section(item.path) == section for item in navigation_for(role))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(settings: Settings, profile: Profile) -> tuple[str, int, dict[str, Any]]:
    now = _utcnow()
    expires_in = settings.access_token_minutes * 60
    claims = {
        "sub": profile.id,
        "user_id": profile.user_id,
        "full_name": profile.full_name,
        "role": profile.role,
        "station_id": profile.station_id,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        "jti": str(uuid4()),
        "typ": "access",
    }
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    return token, expires_in, claims


def decode_token(settings: Settings, token: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.") from exc

    if payload.get("typ") != "access":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token type is invalid.")

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token subject is invalid.")

    return payload


def session_user_from_claims(claims: Mapping[str, Any]) -> SessionUser:
    role = parse_role(claims.get("role"))
    if role is None:
        raise ApiError(status_code=403, code="UNKNOWN_ROLE", message="Unrecognized role.")
    return SessionUser(
        profile_id=str(claims["sub"]),
        user_id=str(claims.get("user_id") or ""),
        full_name=str(claims.get("full_name") or ""),
        role=role.value,
        station_id=claims.get("station_id"),
    )


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def _reload_session(request: Request, claims: Mapping[str, Any]) -> Mapping[str, Any]:
    """Overlay the stored profile on the token claims.

    A missing or inactive profile revokes the session. When the backend cannot
    answer, the token claims are trusted until they expire.
    """
    client = getattr(request.app.state, "backend", None)
    if client is None:
        return claims
    try:
        result = await client.execute(table("profiles").eq("id", claims["sub"]).limit(1))
    except BackendError as exc:
        result = QueryResult.failure(str(exc))
    if not result.ok:
        logger.warning(
            "session_profile_check_skipped",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "actor_id": claims["sub"],
                "error": result.error,
            },
        )
        return claims

    rows = result.data or []
    if not rows:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Account no longer exists.")
    profile = rows[0]
    if profile.get("status") != "active":
        raise ApiError(status_code=403, code="ACCOUNT_INACTIVE", message="Account is not active.")
    return {
        **claims,
        "user_id": profile.get("user_id"),
        "full_name": profile.get("full_name"),
        "role": profile.get("role"),
        "station_id": profile.get("station_id"),
    }


async def require_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_app_settings),
) -> SessionUser:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Missing bearer token.")

    claims = await _reload_session(request, decode_token(settings, credentials.credentials))
    user = session_user_from_claims(claims)

    request.state.actor = user.role
    request.state.actor_id = user.profile_id
    return user


def require_page(path: str) -> Callable[..., SessionUser]:
    def _dependency(user: SessionUser = Depends(require_user)) -> SessionUser:
        if not can_access(user.role, path):
            raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")
        return user

    return _dependency


def require_roles(*roles: UserRole) -> Callable[..., SessionUser]:
    allowed = frozenset(roles)

    def _dependency(user: SessionUser = Depends(require_user)) -> SessionUser:
        if parse_role(user.role) not in allowed:
            raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")
        return user

    return _dependency
