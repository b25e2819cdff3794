"""
Translate exceptions into JSON error responses.

Errors propagate unchanged from where they are raised until one of these
handlers turns them into the standard envelope:
{"success": false, "error": {code, message, timestamp, path, method}}.
Outside development, 5xx responses never carry stack traces or details.
"""

import logging
import traceback
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cugino.core.config import get_settings
from cugino.core.errors import AppError

logger = logging.getLogger("cugino.errors")

GENERIC_SERVER_ERROR = "An internal error occurred"

_HTTP_STATUS_CODES = {
    400: "VALIDATION_ERROR",
    401: "AUTHENTICATION_ERROR",
    403: "AUTHORIZATION_ERROR",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT_ERROR",
}


def _caller_id(request: Request) -> int | None:
    identity = getattr(request.state, "identity", None)
    return getattr(identity, "id", None)


def _log_error(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    exc: BaseException | None = None,
    details: Any = None,
) -> None:
    caller = _caller_id(request)
    extra: dict[str, Any] = {
        "path": request.url.path,
        "method": request.method,
        "status_code": status_code,
        "error_code": code,
        "user_id": caller,
    }
    if status_code >= 500:
        if details is not None:
            extra["details"] = str(details)[:500]
        logger.error(
            "%s %s failed (status=%s user_id=%s): %s",
            request.method,
            request.url.path,
            status_code,
            caller,
            message,
            extra=extra,
            exc_info=exc,
        )
    else:
        logger.warning(
            "%s %s rejected (status=%s user_id=%s): %s",
            request.method,
            request.url.path,
            status_code,
            caller,
            message,
            extra=extra,
        )


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    *,
    exc: BaseException | None = None,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the error envelope, hiding 5xx internals outside development."""
    _log_error(request, status_code, code, message, exc=exc, details=details)

    development = get_settings().is_development
    if status_code >= 500 and not development:
        message = GENERIC_SERVER_ERROR

    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "timestamp": datetime.now(UTC).isoformat(),
        "path": request.url.path,
        "method": request.method,
    }
    if status_code < 500 and details is not None:
        error["details"] = details
    if status_code >= 500 and development:
        error["details"] = details
        if exc is not None:
            error["stack"] = "".join(traceback.format_exception(exc))

    if status_code == 401:
        headers = {**(headers or {}), "WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"success": False, "error": error}),
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return error_response(
        request,
        exc.status_code,
        exc.code,
        exc.message,
        exc=exc if exc.status_code >= 500 else None,
        details=exc.details,
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return error_response(
        request,
        400,
        "VALIDATION_ERROR",
        "Request validation failed",
        details=jsonable_encoder(exc.errors()),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        message = f"Route {request.method} {request.url.path} not found"
    else:
        message = str(exc.detail)
    code = _HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
    return error_response(request, exc.status_code, code, message, headers=exc.headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return error_response(request, 500, "INTERNAL_ERROR", str(exc) or type(exc).__name__, exc=exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
