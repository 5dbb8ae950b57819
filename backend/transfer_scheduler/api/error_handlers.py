"""Error Handlers - maps transfer errors and malformed requests to the JSON error envelope.

Invariants:
    - Every error body has the shape {"error": {code, message, category, severity, ...}}
    - TransferError keeps its own http_status; its context ids reach the log record
    - RequestValidationError -> 400, one detail per offending camelCase field
    - Exception (catch-all) -> 500, never leaks internal details

Design Decisions:
    - Client-side domain errors (4xx) log at WARNING; store and chain outages at ERROR
    - Field paths drop the request location ("body", "query", "path") and report it
      separately, so clients can match details against their own payload keys
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from transfer_scheduler.core.errors import TransferError, ErrorSeverity

logger = logging.getLogger(__name__)

_REQUEST_LOCATIONS = ("body", "query", "path", "header")
_VALUE_ERROR_PREFIX = "Value error, "


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_transfer_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_transfer_error_handler(app: FastAPI) -> None:

    @app.exception_handler(TransferError)
    async def transfer_error_handler(request: Request, exc: TransferError):
        log = logger.warning if exc.http_status < 500 else logger.error
        log(
            f"{exc.code} on {request.method} {request.url.path}: {exc.message}",
            extra=_context_extra(exc, request),
        )
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(),
        )


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        details = [_validation_detail(e) for e in exc.errors()]
        logger.warning(
            f"Rejected {request.method} {request.url.path}: "
            f"{', '.join(d['field'] for d in details)}",
            extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": "Invalid request data",
                    "category": "validation",
                    "severity": ErrorSeverity.ERROR.value,
                    "details": details,
                },
            },
        )


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}: {exc}",
            extra={"error_code": "INTERNAL_ERROR", "path": request.url.path},
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "category": "internal",
                    "severity": ErrorSeverity.CRITICAL.value,
                },
            },
        )


def _context_extra(exc: TransferError, request: Request) -> dict:
    extra = {"error_code": exc.code, "path": request.url.path}
    if exc.context is not None:
        for key in ("transfer_id", "recurring_id", "user_address"):
            value = getattr(exc.context, key)
            if value is not None:
                extra[key] = value
    return extra


def _validation_detail(error: dict) -> dict:
    """One pydantic error -> {field, location, message, type}."""
    loc = [str(part) for part in error["loc"]]
    location = loc.pop(0) if loc and loc[0] in _REQUEST_LOCATIONS else None
    message = error["msg"]
    if message.startswith(_VALUE_ERROR_PREFIX):
        message = message[len(_VALUE_ERROR_PREFIX):]
    return {
        "field": ".".join(loc) or location or "request",
        "location": location,
        "message": message,
        "type": error["type"],
    }
