"""Error Handlers — map every failure to the broker's JSON error envelope.

Invariants:
    - NexusError → its own http_status and to_response() body
    - RequestValidationError → 400 VALIDATION_ERROR, one detail per bad field
    - Anything else → 500 INTERNAL_ERROR with no exception text in the body
    - Log level follows the error's severity: client mistakes never log as ERROR

Design Decisions:
    - Handlers are module-level coroutines registered with add_exception_handler,
      so tests can call them without building an app
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from nexus.core.errors import ErrorCategory, ErrorSeverity, NexusError

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}

# Request locations FastAPI prefixes onto validation paths
_LOCATIONS = {"body", "query", "path", "header", "cookie"}


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(NexusError, handle_nexus_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)


async def handle_nexus_error(request: Request, exc: NexusError) -> JSONResponse:
    level = _LOG_LEVELS.get(exc.severity, logging.ERROR)
    if exc.http_status < 500:
        level = min(level, logging.WARNING)
    logger.log(
        level,
        f"{exc.code} on {request.method} {request.url.path}: {exc.message}",
        extra={
            "error_code": exc.code,
            "path": request.url.path,
            "status_code": exc.http_status,
            "provider": exc.context.provider,
        },
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def handle_validation_error(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    details = [_validation_detail(e) for e in exc.errors()]
    logger.info(
        f"Rejected request on {request.url.path}: "
        f"{', '.join(d['field'] or d['location'] for d in details)}",
        extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request data",
                "category": ErrorCategory.VALIDATION.value,
                "severity": ErrorSeverity.WARNING.value,
                "details": details,
            },
        },
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=exc,
        extra={"error_code": "INTERNAL_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "category": ErrorCategory.INTERNAL.value,
                "severity": ErrorSeverity.CRITICAL.value,
            },
        },
    )


def _validation_detail(error: dict) -> dict:
    loc = [str(part) for part in error.get("loc", ())]
    location = loc[0] if loc and loc[0] in _LOCATIONS else "body"
    field_path = loc[1:] if loc and loc[0] in _LOCATIONS else loc
    return {
        "location": location,
        "field": ".".join(field_path),
        "message": error.get("msg", ""),
        "type": error.get("type", ""),
    }
