"""Exception handlers: every error leaves the service in one JSON shape.

    {"error": {"kind": "<kind>", "message": "<text>"}, "request_id": "<id>"}

``kind`` is stable and machine-readable, ``message`` is for humans.
Anything that is not a DomainError is logged with its stack trace and
rendered as a generic internal error; driver and storage messages never
reach the client.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lms.core.errors import DomainError, ErrorKind
from lms.middleware.request_context import request_id_var

logger = logging.getLogger(__name__)

STATUS_BY_KIND: dict[str, int] = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
    "validation": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "unauthorized": status.HTTP_401_UNAUTHORIZED,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "internal": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_KIND_BY_STATUS: dict[int, str] = {v: k for k, v in STATUS_BY_KIND.items()}


def _request_id(request: Request) -> str:
    req_id = request_id_var.get("-")
    if req_id == "-":
        req_id = request.headers.get("x-request-id", "-")
    return req_id


def error_response(
    request: Request,
    status_code: int,
    kind: ErrorKind | str,
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {"kind": kind, "message": message},
            "request_id": _request_id(request),
        },
        headers=headers,
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(
            "%s %s failed: %s",
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc.__cause__ is not None,
            extra={"error_kind": exc.kind},
        )
    else:
        logger.info(
            "%s %s rejected: %s",
            request.method,
            request.url.path,
            exc.message,
            extra={"error_kind": exc.kind},
        )
    headers = {"WWW-Authenticate": "Bearer"} if exc.kind == "unauthorized" else None
    return error_response(request, status_code, exc.kind, exc.message, headers)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    kind = _KIND_BY_STATUS.get(exc.status_code, "http_error")
    message = (
        str(exc.detail)
        if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
        else "internal error"
    )
    return error_response(
        request, exc.status_code, kind, message, getattr(exc, "headers", None)
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    logger.info(
        "%s %s invalid body: %d error(s)",
        request.method,
        request.url.path,
        len(errors),
        extra={"error_kind": "validation"},
    )
    message = "invalid request"
    if errors:
        first = errors[0]
        message = first.get("msg", "invalid value")
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        if where:
            message = f"{where}: {message}"
    return error_response(
        request, status.HTTP_422_UNPROCESSABLE_ENTITY, "validation", message
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled %s on %s %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        extra={"error_kind": "internal"},
    )
    return error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "internal", "internal error"
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
