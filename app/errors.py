"""Structured error handlers with request_id correlation.

Every error response includes a consistent envelope:
    {
        "error": "Human-readable message",
        "code": "error_code",
        "request_id": "uuid"
    }

``error`` is what browser code shows inline; ``code`` is for machines.
"""
from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.services.errors import ServiceError

logger = logging.getLogger(__name__)


def _get_request_id(request: Request) -> str:
    """Extract request_id set by ObservabilityMiddleware."""
    return getattr(request.state, "request_id", "unknown")


def error_payload(message: str, code: str, request_id: str | None = None) -> dict:
    payload: dict = {"error": message, "code": code}
    if request_id is not None:
        payload["request_id"] = request_id
    return payload


def error_response(request: Request, status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_payload(message, code, _get_request_id(request)),
    )


def register_error_handlers(app: object) -> None:
    @app.exception_handler(HTTPException)  # type: ignore[arg-type]
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
        elif isinstance(detail, str):
            message = detail
        return error_response(request, exc.status_code, message, code)

    @app.exception_handler(ServiceError)  # type: ignore[arg-type]
    async def service_error_handler(
        request: Request, exc: ServiceError
    ) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "%s on %s %s: %s",
            exc.__class__.__name__,
            request.method,
            request.url.path,
            exc.message,
            extra={"request_id": _get_request_id(request)},
        )
        return error_response(request, exc.status_code, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)  # type: ignore[arg-type]
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        request_id = _get_request_id(request)
        logger.warning(
            "Validation error on %s %s: %s",
            request.method,
            request.url.path,
            exc.errors(),
            extra={"request_id": request_id},
        )
        return JSONResponse(
            status_code=422,
            content={
                **error_payload("Validation error", "validation_error", request_id),
                "details": exc.errors(),
            },
        )

    @app.exception_handler(Exception)  # type: ignore[arg-type]
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        request_id = _get_request_id(request)
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            extra={"request_id": request_id},
        )
        return error_response(request, 500, "Internal server error", "internal_error")
