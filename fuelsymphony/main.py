from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from fuelsymphony.errors import ApiError, BackendError, error_response
from fuelsymphony.logging_utils import setup_json_logging
from fuelsymphony.routers import actions, auth, pages
from fuelsymphony.services.backend import BackendClient, create_backend_client
from fuelsymphony.services.connection_gate import ConnectionGate
from fuelsymphony.settings import Settings, get_cors_origins, get_settings

logger = logging.getLogger("fuelsymphony.request")
lifecycle_logger = logging.getLogger("fuelsymphony.lifecycle")

HTTP_ERROR_CODES = {
    401: "INVALID_TOKEN",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def create_app(settings: Settings | None = None, backend: BackendClient | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_json_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app_instance: FastAPI) -> AsyncIterator[None]:
        client = backend or create_backend_client(settings)
        gate = ConnectionGate(client)
        app_instance.state.backend = client
        app_instance.state.connection_gate = gate
        lifecycle_logger.info("app_starting", extra={"backend": client.name})
        await gate.run()
        try:
            yield
        finally:
            # Injected clients belong to the caller.
            if backend is None:
                await client.aclose()
            lifecycle_logger.info("app_stopped", extra={"backend": client.name})

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(settings),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        request.state.actor = getattr(request.state, "actor", "anonymous")
        request.state.actor_id = getattr(request.state, "actor_id", None)

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-Id"] = request_id
            return response
        finally:
            latency_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.info(
                "request_complete",
                extra={
                    "request_id": request_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": status_code,
                    "latency_ms": latency_ms,
                    "actor": getattr(request.state, "actor", "anonymous"),
                    "actor_id": getattr(request.state, "actor_id", None),
                },
            )

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        return error_response(
            request,
            status_code=exc.status_code,
            code=exc.code,
            message=exc.message,
            details=exc.details,
        )

    @app.exception_handler(BackendError)
    async def handle_backend_error(request: Request, exc: BackendError) -> JSONResponse:
        logger.warning(
            "backend_error",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "path": request.url.path,
                "error_type": exc.__class__.__name__,
                "backend": exc.backend,
            },
        )
        return error_response(
            request,
            status_code=503,
            code="BACKEND_UNAVAILABLE",
            message="Backend service is unavailable.",
            details={"backend": exc.backend} if exc.backend else None,
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        status_code = exc.status_code
        code = HTTP_ERROR_CODES.get(status_code, "HTTP_ERROR")
        if status_code == 404:
            message = "Page not found."
        else:
            message = str(exc.detail) if exc.detail else "Request failed."
        return error_response(
            request,
            status_code=status_code,
            code=code,
            message=message,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(
            request,
            status_code=422,
            code="VALIDATION_ERROR",
            message="Request payload is invalid.",
            details={
                "fields": [
                    {"loc": ".".join(str(part) for part in item.get("loc", ())), "msg": item.get("msg", "")}
                    for item in exc.errors()
                ]
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unhandled_error",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "path": request.url.path,
                "method": request.method,
            },
        )
        return error_response(
            request,
            status_code=500,
            code="INTERNAL_ERROR",
            message="Unexpected server error.",
        )

    @app.get("/health")
    def health(request: Request) -> dict[str, Any]:
        gate: ConnectionGate | None = getattr(request.app.state, "connection_gate", None)
        return {
            "status": "ok",
            "backend": settings.backend,
            "connection": gate.outcome.to_dict() if gate is not None else {"state": "checking"},
        }

    app.include_router(auth.router)
    app.include_router(actions.router)
    app.include_router(pages.router)
    return app
