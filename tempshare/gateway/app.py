"""FastAPI application factory.

- File API: /api/v1/files/*
- healthz:  liveness check
- metrics:  prometheus exposition

Every error leaves the service as ``{"error": code, "message": msg}``.
Backend failures collapse to a generic 500 so storage paths and bucket
names never reach the caller; the details go to the structured log.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from tempshare import __version__
from tempshare.gateway.api.files import create_files_router
from tempshare.gateway.metrics.golden_signals import golden_signals_middleware
from tempshare.shared.errors import (
    NotFoundError,
    RangeNotSatisfiableError,
    StorageError,
    TempShareError,
    ValidationError,
)
from tempshare.shared.logging.error_handler import log_structured_error
from tempshare.shared.trace_context import trace_context

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    from tempshare.placement.service import FileShareService

logger = logging.getLogger(__name__)

_INTERNAL_MESSAGE = "An unexpected error occurred."


def _error(status_code: int, code: str, message: str, **kwargs: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": code, "message": message},
        **kwargs,
    )


def create_app(
    *,
    service: FileShareService,
    cors_origins: list[str] | tuple[str, ...] | None = None,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager[None]] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: File share service backing the file routes.
        cors_origins: Allowed CORS origins; CORS is off when empty.
        lifespan: Async context manager factory for startup/shutdown lifecycle.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="tempshare",
        description="Temporary file sharing with expiry encoded in the file reference",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.service = service

    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(cors_origins),
            allow_methods=["GET", "POST", "PUT"],
            allow_headers=["Content-Type", "Range", "X-Request-ID"],
            expose_headers=["Accept-Ranges", "Content-Range", "Content-Length", "X-Request-ID"],
        )

    # -- Error handlers --

    @app.exception_handler(ValidationError)
    async def _validation_error(_: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, exc.code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'invalid value')}" if location else "Invalid request"
        return _error(400, "VALIDATION", message)

    @app.exception_handler(NotFoundError)
    async def _not_found(_: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, exc.code, str(exc))

    @app.exception_handler(RangeNotSatisfiableError)
    async def _range_not_satisfiable(_: Request, exc: RangeNotSatisfiableError) -> JSONResponse:
        return _error(
            416,
            exc.code,
            "Requested range not satisfiable.",
            headers={"Content-Range": f"bytes */{exc.total_length}"},
        )

    @app.exception_handler(StorageError)
    async def _storage_error(request: Request, exc: StorageError) -> JSONResponse:
        log_structured_error(logger, exc, context={"route": request.url.path})
        return _error(500, exc.code, _INTERNAL_MESSAGE)

    @app.exception_handler(TempShareError)
    async def _tempshare_error(request: Request, exc: TempShareError) -> JSONResponse:
        log_structured_error(logger, exc, context={"route": request.url.path})
        return _error(500, "UNKNOWN", _INTERNAL_MESSAGE)

    # -- Override Starlette default HTTP errors for uniform {error, message} schema --
    @app.exception_handler(StarletteHTTPException)
    async def _http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        code_map = {
            404: "NOT_FOUND",
            405: "METHOD_NOT_ALLOWED",
        }
        return _error(
            exc.status_code,
            code_map.get(exc.status_code, "HTTP_ERROR"),
            exc.detail or f"HTTP {exc.status_code}",
        )

    # -- Request middleware (the last one registered runs first) --

    app.middleware("http")(golden_signals_middleware)

    @app.middleware("http")
    async def trace_id_middleware(request: Request, call_next: Any) -> Response:
        with trace_context(request.headers.get("x-request-id")) as trace_id:
            response = await call_next(request)
        response.headers["X-Request-ID"] = trace_id
        return response

    # -- System routes --

    @app.get("/healthz", tags=["system"])
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/metrics", tags=["system"], include_in_schema=False)
    async def metrics() -> Response:
        from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST,
        )

    # -- File API: /api/v1/files/* --

    app.include_router(create_files_router(service=service))

    return app
