import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Error body returned by every failing endpoint."""

    error: str
    detail: str | None = None
    status_code: int
    request_id: str | None = None


class AppError(Exception):
    """Base application exception. Carries the HTTP status it maps to."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(AppError):
    """Requested entity does not exist in the caller's organization."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class ForbiddenError(AppError):
    """Caller lacks the role or organization scope for the operation."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


class ConflictError(AppError):
    """Entity is not in a state that allows the requested transition."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class ConfigurationError(AppError):
    """A scheduler or policy setting is out of range or malformed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


class QueueNotFoundError(AppError):
    """A job was sent to a queue that was never declared."""

    def __init__(self, name: str) -> None:
        self.queue_name = name
        super().__init__(f"Queue {name!r} does not exist", status_code=status.HTTP_400_BAD_REQUEST)


class InvalidJobPayloadError(AppError):
    """A job payload failed validation before reaching its handler."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


def _error_body(request: Request, error: str, detail: str | None, status_code: int) -> dict:
    return ErrorResponse(
        error=error,
        detail=detail,
        status_code=status_code,
        request_id=getattr(request.state, "request_id", None),
    ).model_dump()


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, type(exc).__name__, exc.message, exc.status_code),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(request, "ValidationError", str(exc.errors()), status.HTTP_422_UNPROCESSABLE_ENTITY),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Map application and request validation errors to ErrorResponse bodies."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
