"""Error handling middleware.

Errors escaping the scheduling agent are rendered with the same envelope the
agent returns, so clients branch on ``success``/``error_kind`` everywhere.
"""

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import (
    AppException,
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from app.schemas.appointments import ErrorKind, SchedulingResult

logger = structlog.get_logger()


def _error_kind(exc: AppException) -> ErrorKind:
    """Map an application exception to its result error kind."""
    if isinstance(exc, ValidationException):
        return ErrorKind.VALIDATION
    if isinstance(exc, NotFoundException):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, InvalidTransitionException):
        return ErrorKind.INVALID_TRANSITION
    if isinstance(exc, ConflictException):
        return ErrorKind.CONFLICT
    return ErrorKind.STORAGE


def _envelope(status_code: int, kind: ErrorKind, message: str) -> JSONResponse:
    result = SchedulingResult.failure(kind, message)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom application exceptions.

    Args:
        request: Request object
        exc: Application exception

    Returns:
        JSON error response
    """
    return _envelope(exc.status_code, _error_kind(exc), exc.message)


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Handle HTTP exceptions.

    Args:
        request: Request object
        exc: HTTP exception

    Returns:
        JSON error response
    """
    kind = ErrorKind.NOT_FOUND if exc.status_code == 404 else ErrorKind.VALIDATION
    return _envelope(exc.status_code, kind, str(exc.detail))


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle request validation errors raised before the agent runs.

    Args:
        request: Request object
        exc: Validation exception

    Returns:
        JSON error response naming the offending fields
    """
    details = ", ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return _envelope(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorKind.VALIDATION,
        f"Validation error: {details}",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Args:
        request: Request object
        exc: Exception

    Returns:
        JSON error response
    """
    logger.exception("unhandled_exception", path=request.url.path)
    return _envelope(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorKind.STORAGE,
        "An unexpected error occurred",
    )
