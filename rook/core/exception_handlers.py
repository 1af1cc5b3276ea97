"""
Error-to-response mapping for the Rook API.

WHY: Services and DAOs raise AppException subclasses (ticket not found,
insufficient role, oversized attachment). Every one of them, plus request
validation failures and stray HTTP errors, leaves the API in the same JSON
shape: {error, message, status_code, details}. Unexpected errors are logged
with a traceback and answered with a generic 500.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from rook.core.exceptions import AppException


logger = logging.getLogger(__name__)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom AppException and its subclasses.

    WHY: NotFound/Forbidden/Validation errors are raised deep in services
    and DAOs; this is the single place they become HTTP responses.
    """
    if exc.status_code >= 500:
        # WHY: 5xx AppExceptions (StorageError) wrap a real fault worth a traceback
        logger.error(
            f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.message}",
            exc_info=exc.__cause__ or exc,
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    WHY: Enum and required-field validation for tickets happens at the
    boundary; callers get field-level messages with a 400 status.
    """
    errors = []
    for error in exc.errors():
        errors.append(
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
        )

    return JSONResponse(
        status_code=400,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "status_code": 400,
            "details": {"errors": errors},
        },
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """
    Handle Starlette HTTP exceptions.

    WHY: Some HTTP exceptions (404, 405, missing bearer token) are raised by
    Starlette/FastAPI before reaching our routes.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "HTTPException",
            "message": exc.detail,
            "status_code": exc.status_code,
            "details": None,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler for unexpected exceptions.

    WHY: Storage and driver errors must never leak their text to the client
    (OWASP A04). The full traceback goes to the log, tagged with the
    request id by the logging filter; the client gets a generic message.
    """
    logger.exception(
        f"Unhandled {exc.__class__.__name__} on {request.method} {request.url.path}",
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "InternalServerError",
            "message": "An unexpected error occurred",
            "status_code": 500,
            "details": None,
        },
    )
