from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Callable, Generic, Mapping, Sequence, TypeVar

import httpx
from pydantic_core import to_jsonable_python
from sqlalchemy import Table, delete, func, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import ColumnElement

from fuelsymphony.db import create_db_engine
from fuelsymphony.errors import BackendUnavailableError
from fuelsymphony.models import Base
from fuelsymphony.settings import Settings

logger = logging.getLogger("fuelsymphony.backend")

T = TypeVar("T")
U = TypeVar("U")

FILTER_OPERATORS: frozenset[str] = frozenset({"eq", "neq", "gt", "gte", "lt", "lte", "is", "in"})
SINGLE_ROW_ERROR = "JSON object requested, multiple (or no) rows returned"
OBJECT_MEDIA_TYPE = "application/vnd.pgrst.object+json"


@dataclass(frozen=True, slots=True)
class Filter:
    column: str
    operator: str
    value: Any


@dataclass(frozen=True, slots=True)
class Order:
    column: str
    descending: bool = False


@dataclass(frozen=True, slots=True)
class Query:
    table: str
    columns: str = "*"
    filters: tuple[Filter, ...] = ()
    order_by: tuple[Order, ...] = ()
    limit_rows: int | None = None
    single_row: bool = False
    count_only: bool = False

    def select(self, columns: str) -> Query:
        return replace(self, columns=columns)

    def where(self, column: str, operator: str, value: Any) -> Query:
        if operator not in FILTER_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {operator}")
        return replace(self, filters=(*self.filters, Filter(column, operator, value)))

    def eq(self, column: str, value: Any) -> Query:
        if value is None:
            return self.where(column, "is", None)
        return self.where(column, "eq", value)

    def neq(self, column: str, value: Any) -> Query:
        return self.where(column, "neq", value)

    def gte(self, column: str, value: Any) -> Query:
        return self.where(column, "gte", value)

    def lte(self, column: str, value: Any) -> Query:
        return self.where(column, "lte", value)

    def in_(self, column: str, values: Sequence[Any]) -> Query:
        return self.where(column, "in", tuple(values))

    def order(self, column: str, *, descending: bool = False) -> Query:
        return replace(self, order_by=(*self.order_by, Order(column, descending)))

    def limit(self, count: int) -> Query:
        if count < 1:
            raise ValueError("limit must be positive")
        return replace(self, limit_rows=count)

    def single(self) -> Query:
        return replace(self, single_row=True)

    def count(self) -> Query:
        return replace(self, count_only=True)


def table(name: str) -> Query:
    return Query(table=name)


@dataclass(frozen=True, slots=True)
class QueryResult(Generic[T]):
    data: T | None = None
    error: str | None = None
    count: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T | None = None, *, count: int | None = None) -> QueryResult[T]:
        return cls(data=data, error=None, count=count)

    @classmethod
    def failure(cls, message: str) -> QueryResult[T]:
        return cls(data=None, error=message or "Unknown backend error", count=None)

    def map(self, transform: Callable[[T], U]) -> QueryResult[U]:
        if not self.ok:
            return QueryResult(data=None, error=self.error, count=None)
        if self.data is None:
            return QueryResult(data=None, error=None, count=self.count)
        return QueryResult(data=transform(self.data), error=None, count=self.count)


class BackendClient(ABC):
    name: str = "abstract"

    @abstractmethod
    async def execute(self, query: Query) -> QueryResult[Any]:
        raise NotImplementedError

    @abstractmethod
    async def insert(
        self,
        table_name: str,
        values: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> QueryResult[list[dict[str, Any]]]:
        raise NotImplementedError

    @abstractmethod
    async def update(self, query: Query, values: Mapping[str, Any]) -> QueryResult[list[dict[str, Any]]]:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, query: Query) -> QueryResult[None]:
        raise NotImplementedError

    @abstractmethod
    async def invoke(self, function_name: str, payload: Mapping[str, Any] | None = None) -> QueryResult[Any]:
        raise NotImplementedError

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> QueryResult[dict[str, Any]]:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


def _as_rows(values: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    if isinstance(values, Mapping):
        return [dict(values)]
    return [dict(item) for item in values]


def _require_filters(query: Query, action: str) -> None:
    if not query.filters:
        raise ValueError(f"Refusing to {action} {query.table} without filters")


# REST surface of the hosted service


def _encode_scalar(value: Any, *, quote: bool = False) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    text = str(value)
    if quote and any(char in text for char in ',()"'):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def encode_filter(item: Filter) -> tuple[str, str]:
    if item.operator == "in":
        values = ",".join(_encode_scalar(value, quote=True) for value in item.value)
        return item.column, f"in.({values})"
    return item.column, f"{item.operator}.{_encode_scalar(item.value)}"


def rest_params(query: Query, *, include_select: bool = True) -> list[tuple[str, str]]:
    params: list[tuple[str, str]] = []
    if include_select:
        params.append(("select", query.columns.replace(" ", "")))
    params.extend(encode_filter(item) for item in query.filters)
    if query.order_by:
        params.append(
            (
                "order",
                ",".join(f"{item.column}.{'desc' if item.descending else 'asc'}" for item in query.order_by),
            )
        )
    if query.limit_rows is not None:
        params.append(("limit", str(query.limit_rows)))
    return params


def parse_content_range(value: str | None) -> int | None:
    if not value or "/" not in value:
        return None
    total = value.rsplit("/", 1)[-1].strip()
    return int(total) if total.isdigit() else None


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in ("message", "error_description", "msg", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    text = response.text.strip() if response.content else ""
    return text or f"HTTP {response.status_code}"


class RestBackendClient(BackendClient):
    name = "rest"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"apikey": api_key, "Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            logger.warning(
                "backend_unreachable",
                extra={"method": method, "url": url, "error_type": exc.__class__.__name__},
            )
            raise BackendUnavailableError(str(exc) or exc.__class__.__name__, backend=self.name) from exc
        logger.debug(
            "backend_request",
            extra={"method": method, "url": url, "status_code": response.status_code},
        )
        return response

    async def execute(self, query: Query) -> QueryResult[Any]:
        url = f"/rest/v1/{query.table}"
        params = rest_params(query)
        if query.count_only:
            response = await self._send("HEAD", url, params=params, headers={"Prefer": "count=exact"})
            if response.is_error:
                return QueryResult.failure(_error_message(response))
            return QueryResult.success(None, count=parse_content_range(response.headers.get("content-range")))

        headers = {"Accept": OBJECT_MEDIA_TYPE} if query.single_row else {}
        response = await self._send("GET", url, params=params, headers=headers)
        if response.is_error:
            return QueryResult.failure(_error_message(response))
        return QueryResult.success(response.json())

    async def insert(
        self,
        table_name: str,
        values: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> QueryResult[list[dict[str, Any]]]:
        response = await self._send(
            "POST",
            f"/rest/v1/{table_name}",
            json=to_jsonable_python(_as_rows(values)),
            headers={"Prefer": "return=representation"},
        )
        if response.is_error:
            return QueryResult.failure(_error_message(response))
        return QueryResult.success(response.json())

    async def update(self, query: Query, values: Mapping[str, Any]) -> QueryResult[list[dict[str, Any]]]:
        _require_filters(query, "update")
        response = await self._send(
            "PATCH",
            f"/rest/v1/{query.table}",
            params=rest_params(query),
            json=to_jsonable_python(dict(values)),
            headers={"Prefer": "return=representation"},
        )
        if response.is_error:
            return QueryResult.failure(_error_message(response))
        return QueryResult.success(response.json())

    async def delete(self, query: Query) -> QueryResult[None]:
        _require_filters(query, "delete")
        response = await self._send(
            "DELETE",
            f"/rest/v1/{query.table}",
            params=rest_params(query, include_select=False),
        )
        if response.is_error:
            return QueryResult.failure(_error_message(response))
        return QueryResult.success(None)

    async def invoke(self, function_name: str, payload: Mapping[str, Any] | None = None) -> QueryResult[Any]:
        response = await self._send(
            "POST",
            f"/functions/v1/{function_name}",
            json=to_jsonable_python(dict(payload or {})),
        )
        if response.is_error:
            return QueryResult.failure(_error_message(response))
        if not response.content:
            return QueryResult.success(None)
        return QueryResult.success(response.json())

    async def sign_in(self, email: str, password: str) -> QueryResult[dict[str, Any]]:
        response = await self._send(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if response.is_error:
            return QueryResult.failure(_error_message(response))
        user = response.json().get("user") or {}
        if not user.get("id"):
            return QueryResult.failure("Sign-in response did not include a user.")
        return QueryResult.success({"user_id": str(user["id"]), "email": user.get("email")})

    async def aclose(self) -> None:
        await self._http.aclose()


# Direct database connection


class _QueryShapeError(Exception):
    pass


def _column(source: Table, name: str) -> ColumnElement[Any]:
    column = source.c.get(name)
    if column is None:
        raise _QueryShapeError(f"column {source.name}.{name} does not exist")
    return column


def _condition(source: Table, item: Filter) -> ColumnElement[bool]:
    column = _column(source, item.column)
    if item.operator == "eq":
        return column == item.value
    if item.operator == "neq":
        return column != item.value
    if item.operator == "gt":
        return column > item.value
    if item.operator == "gte":
        return column >= item.value
    if item.operator == "lt":
        return column < item.value
    if item.operator == "lte":
        return column <= item.value
    if item.operator == "is":
        return column.is_(item.value)
    return column.in_(list(item.value))


class SqlBackendClient(BackendClient):
    name = "sql"

    def __init__(self, engine: Engine, tables: Mapping[str, Table] | None = None) -> None:
        self._engine = engine
        self._tables = dict(tables if tables is not None else Base.metadata.tables)

    def _table(self, name: str) -> Table:
        source = self._tables.get(name)
        if source is None:
            raise _QueryShapeError(f'relation "public.{name}" does not exist')
        return source

    def _where(self, statement: Any, source: Table, query: Query) -> Any:
        for item in query.filters:
            statement = statement.where(_condition(source, item))
        return statement

    def _execute_sync(self, query: Query) -> QueryResult[Any]:
        try:
            source = self._table(query.table)
            if query.count_only:
                statement = self._where(select(func.count()).select_from(source), source, query)
                with self._engine.connect() as connection:
                    total = connection.execute(statement).scalar_one()
                return QueryResult.success(None, count=int(total))

            if query.columns.strip() == "*":
                columns = list(source.columns)
            else:
                columns = [_column(source, name.strip()) for name in query.columns.split(",") if name.strip()]
            statement = self._where(select(*columns), source, query)
            for item in query.order_by:
                column = _column(source, item.column)
                statement = statement.order_by(column.desc() if item.descending else column.asc())
            if query.limit_rows is not None:
                statement = statement.limit(query.limit_rows)
            with self._engine.connect() as connection:
                rows = [dict(row) for row in connection.execute(statement).mappings()]
        except _QueryShapeError as exc:
            return QueryResult.failure(str(exc))
        except SQLAlchemyError as exc:
            logger.warning("backend_sql_error", extra={"table": query.table, "error_type": exc.__class__.__name__})
            return QueryResult.failure(str(getattr(exc, "orig", None) or exc))

        if query.single_row:
            if len(rows) != 1:
                return QueryResult.failure(SINGLE_ROW_ERROR)
            return QueryResult.success(rows[0])
        return QueryResult.success(rows)

    def _write_sync(self, build: Callable[[], Any], parameters: list[dict[str, Any]] | None = None) -> QueryResult[Any]:
        try:
            statement = build()
            with self._engine.begin() as connection:
                if parameters is None:
                    result = connection.execute(statement)
                else:
                    result = connection.execute(statement, parameters)
                rows = [dict(row) for row in result.mappings()] if result.returns_rows else None
        except _QueryShapeError as exc:
            return QueryResult.failure(str(exc))
        except SQLAlchemyError as exc:
            logger.warning("backend_sql_write_error", extra={"error_type": exc.__class__.__name__})
            return QueryResult.failure(str(getattr(exc, "orig", None) or exc))
        return QueryResult.success(rows)

    async def execute(self, query: Query) -> QueryResult[Any]:
        return await asyncio.to_thread(self._execute_sync, query)

    async def insert(
        self,
        table_name: str,
        values: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> QueryResult[list[dict[str, Any]]]:
        rows = _as_rows(values)

        def build() -> Any:
            source = self._table(table_name)
            return insert(source).returning(*source.columns, sort_by_parameter_order=True)

        return await asyncio.to_thread(self._write_sync, build, rows)

    async def update(self, query: Query, values: Mapping[str, Any]) -> QueryResult[list[dict[str, Any]]]:
        _require_filters(query, "update")

        def build() -> Any:
            source = self._table(query.table)
            statement = self._where(update(source), source, query)
            return statement.values(**dict(values)).returning(*source.columns)

        return await asyncio.to_thread(self._write_sync, build)

    async def delete(self, query: Query) -> QueryResult[None]:
        _require_filters(query, "delete")

        def build() -> Any:
            source = self._table(query.table)
            return self._where(delete(source), source, query)

        result = await asyncio.to_thread(self._write_sync, build)
        return QueryResult(data=None, error=result.error)

    async def invoke(self, function_name: str, payload: Mapping[str, Any] | None = None) -> QueryResult[Any]:
        return QueryResult.failure(f"Remote function {function_name} is not available on a direct database connection.")

    async def sign_in(self, email: str, password: str) -> QueryResult[dict[str, Any]]:
        return QueryResult.failure("Password sign-in is not available on a direct database connection.")

    async def aclose(self) -> None:
        await asyncio.to_thread(self._engine.dispose)


def create_backend_client(settings: Settings) -> BackendClient:
    if settings.backend == "sql":
        return SqlBackendClient(create_db_engine(settings.database_url or ""))
    return RestBackendClient(
        settings.supabase_url,
        settings.supabase_anon_key,
        timeout=settings.request_timeout_seconds,
    )
