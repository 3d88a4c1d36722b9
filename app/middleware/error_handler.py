"""Error handling middleware."""

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import AppException

logger = structlog.get_logger(__name__)


def _error_body(request: Request, error: str, message: str) -> dict:
    """Build the JSON body shared by all error responses."""
    return {
        "error": error,
        "message": message,
        "path": str(request.url),
    }


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom application exceptions.

    Server-side failures (5xx) are logged; client errors are not.

    Args:
        request: Request object
        exc: Application exception

    Returns:
        JSON error response
    """
    if exc.status_code >= 500:
        logger.warning(
            "app_exception",
            error=exc.__class__.__name__,
            message=exc.message,
            path=request.url.path,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.__class__.__name__, exc.message),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, "HTTPException", exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle validation errors.

    Args:
        request: Request object
        exc: Validation exception

    Returns:
        JSON error response with validation details
    """
    content = _error_body(request, "ValidationError", "Request validation failed")
    content["details"] = jsonable_errors(exc)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=content,
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Strip non-serializable context (e.g. raised ValueErrors) from error details."""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if not isinstance(error.get("input"), str | int | float | bool | dict | list | None):
            error.pop("input", None)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "InternalServerError", "An unexpected error occurred"),
    )
