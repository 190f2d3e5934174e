"""
Global Exception Handlers

Centralized exception handling so every error leaves the API in the same
envelope as successful responses.

Error Response Format:
{
    "status": "fail",
    "message": "Invalid or expired MFA code",
    "error_code": "MFA_INVALID_CODE"
}

``status`` is "fail" for client errors (4xx) and "error" for server
errors (5xx). Server errors never carry internal details.
"""

import logging
from typing import Any, Union

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from backoffice.exceptions import BackofficeError, ErrorCode

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "Something went wrong. Please try again later."


def envelope_status(status_code: int) -> str:
    return "fail" if 400 <= status_code < 500 else "error"


def create_error_response(
    status_code: int,
    message: str,
    error_code: str | ErrorCode | None = None,
    errors: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    """
    Create a standardized error response.

    Args:
        status_code: HTTP status code
        message: Human-readable error message
        error_code: Machine-readable error code
        errors: Field-level validation errors

    Returns:
        JSONResponse in the API envelope
    """
    content: dict[str, Any] = {
        "status": envelope_status(status_code),
        "message": message,
    }

    if error_code:
        content["error_code"] = error_code.value if isinstance(error_code, ErrorCode) else error_code

    if errors:
        content["errors"] = errors

    return JSONResponse(status_code=status_code, content=content)


def get_http_error_code(status_code: int) -> str:
    """Map HTTP status codes to error codes for HTTPException."""
    error_code_map = {
        400: ErrorCode.VALIDATION_FAILED.value,
        401: ErrorCode.AUTH_FAILED.value,
        403: ErrorCode.AUTH_PERMISSION_DENIED.value,
        404: ErrorCode.RESOURCE_NOT_FOUND.value,
        405: ErrorCode.VALIDATION_FAILED.value,
        409: ErrorCode.VALIDATION_DUPLICATE_RESOURCE.value,
        422: ErrorCode.VALIDATION_FAILED.value,
        429: ErrorCode.RATE_LIMIT_EXCEEDED.value,
        500: ErrorCode.INTERNAL_ERROR.value,
    }
    return error_code_map.get(status_code, ErrorCode.UNKNOWN_ERROR.value)


async def backoffice_exception_handler(request: Request, exc: BackofficeError) -> JSONResponse:
    """
    Handle the custom exception hierarchy.

    Operational (4xx) errors are returned as-is. Internal (5xx) errors are
    logged with their details; the response carries only the exception's
    fixed message, never its details. Unexpected exceptions get the generic
    message in ``unhandled_exception_handler``.
    """
    if exc.is_operational:
        logger.info(
            f"{type(exc).__name__}: {exc.message}",
            extra={"status_code": exc.status_code, "path": request.url.path},
        )
        return create_error_response(exc.status_code, exc.message, exc.error_code)

    logger.error(
        f"{type(exc).__name__}: {exc.message}",
        exc_info=exc,
        extra={"status_code": exc.status_code, "path": request.url.path, "details": exc.details},
    )
    return create_error_response(exc.status_code, exc.message, exc.error_code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle standard HTTP exceptions (404 for unknown routes, 405, ...)."""
    logger.warning(
        f"HTTPException: {exc.detail}",
        extra={"status_code": exc.status_code, "path": request.url.path},
    )

    message = str(exc.detail)
    if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
        message = f"Cannot find {request.url.path} on this server"

    return create_error_response(exc.status_code, message, get_http_error_code(exc.status_code))


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    """Handle Pydantic validation errors."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        errors.append({"field": field, "message": error["msg"]})

    logger.info(f"Validation error on {request.url.path}", extra={"errors": errors})

    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation failed",
        ErrorCode.VALIDATION_FAILED,
        errors=errors,
    )


def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Synchronous: SlowAPIMiddleware only calls sync handlers for default limits."""
    logger.warning(f"Rate limit exceeded on {request.url.path}: {exc.detail}")
    return create_error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Too many requests, please try again later.",
        ErrorCode.RATE_LIMIT_EXCEEDED,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without exposing internal details."""
    logger.error(
        f"Unhandled exception: {str(exc)}",
        exc_info=True,
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        GENERIC_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR,
    )


def register_exception_handlers(app) -> None:
    """
    Register all exception handlers with the FastAPI app.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(BackofficeError, backoffice_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)

    # Catch-all for unexpected exceptions
    app.add_exception_handler(Exception, unhandled_exception_handler)

    logger.info("Exception handlers registered successfully")
